# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Logging utilities for the mail submission policy engine.

This module provides a centralized logging helper. The actual logging setup
(level, handlers, format) is configured via ``configure_logging()`` in the
entry point to avoid duplicate handlers.

Example:
    Typical usage in a module::

        from mail_policy.logger import get_logger

        logger = get_logger("Rewrite")
        logger.info("%s RWENVELOPE ...", envelope.id)
"""

import logging
import os

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str = "MailPolicy") -> logging.Logger:
    """Retrieve a logger for a log category.

    Categories mirror the audit trail of the policy engine (``Rewrite``,
    ``Sender``, ``SRS``, ``Auth``, ``Archive``). The returned logger is a
    child of ``mail_policy`` so a single configuration applies to all.

    Args:
        name: The category name. Defaults to "MailPolicy".

    Returns:
        A ``logging.Logger`` instance bound to the given category.
    """
    return logging.getLogger(f"mail_policy.{name}")


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once, for CLI and embedding entry points.

    Args:
        level: Level name. Falls back to ``MSA_LOG_LEVEL`` then INFO.
    """
    level_name = (level or os.getenv("MSA_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        force=True,
    )
