# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Archive entity: stored copies of submitted mail."""

from .table import ArchiveTable

__all__ = ["ArchiveTable"]
