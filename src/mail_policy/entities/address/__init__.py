# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Address entity: local address directory."""

from .table import AddressesTable

__all__ = ["AddressesTable"]
