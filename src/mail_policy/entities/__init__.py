# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Domain entities of the policy database.

Each subdirectory contains a ``table.py`` with the SQL table manager.
"""

from .address.table import AddressesTable
from .archive.table import ArchiveTable
from .counter.table import CountersTable
from .user.table import UsersTable

__all__ = [
    "AddressesTable",
    "ArchiveTable",
    "CountersTable",
    "UsersTable",
]
