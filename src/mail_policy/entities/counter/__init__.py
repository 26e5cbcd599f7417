# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Counter entity: fixed-window rate counters."""

from .table import CountersTable

__all__ = ["CountersTable"]
