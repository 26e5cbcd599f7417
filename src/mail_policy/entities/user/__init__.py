# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""User entity: identity records and credentials."""

from .table import UsersTable, hash_password, verify_password

__all__ = ["UsersTable", "hash_password", "verify_password"]
