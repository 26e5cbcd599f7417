# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration loader for the policy engine.

Settings come from an INI-style configuration file, with environment
variables as fallbacks. Priority: config file > environment > defaults.

Example:
    Configuration file format (policy.ini)::

        [server]
        hostname = mx.example.com

        [storage]
        db_path = /var/lib/mail-policy/policy.db
        redis_url = redis://localhost:6379/2

        [srs]
        secret = change-me
        rewrite_domain = fwd.example.com
        max_age_days = 21

        [routing]
        interfaces = feeder, msa
        forwarder = forwarder
        mx = 127.0.0.1, 127.0.0.2
        mx_port = 24
        zone_address = local

        [limits]
        window_seconds = 86400
        counter_prefix = rcpt:

        [archive]
        enabled = true
        queue_size = 1000

    Loading::

        config = load_policy_config("/etc/mail-policy/policy.ini")
"""

from __future__ import annotations

import configparser
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .logger import get_logger
from .policy_config import (
    ArchiveConfig,
    LimitsConfig,
    PolicyConfig,
    RoutingConfig,
    SRSConfig,
)

logger = get_logger("ConfigLoader")


def _as_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _as_bool(value: str) -> bool:
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean '{value}'")


# (section, option) -> (environment variable, parser)
SETTINGS: dict[tuple[str, str], tuple[str, Callable[[str], Any]]] = {
    ("server", "hostname"): ("MSA_HOSTNAME", str),
    ("server", "original_from_header"): ("MSA_ORIGINAL_FROM_HEADER", str),
    ("storage", "db_path"): ("MSA_DB_PATH", str),
    ("storage", "redis_url"): ("MSA_REDIS_URL", str),
    ("srs", "secret"): ("MSA_SRS_SECRET", str),
    ("srs", "rewrite_domain"): ("MSA_SRS_REWRITE_DOMAIN", str),
    ("srs", "max_age_days"): ("MSA_SRS_MAX_AGE_DAYS", int),
    ("routing", "interfaces"): ("MSA_INTERFACES", _as_list),
    ("routing", "forwarder"): ("MSA_FORWARDER", str),
    ("routing", "mx"): ("MSA_MX", _as_list),
    ("routing", "mx_port"): ("MSA_MX_PORT", int),
    ("routing", "zone_address"): ("MSA_ZONE_ADDRESS", str),
    ("limits", "window_seconds"): ("MSA_WINDOW_SECONDS", int),
    ("limits", "counter_prefix"): ("MSA_COUNTER_PREFIX", str),
    ("archive", "enabled"): ("MSA_ARCHIVE_ENABLED", _as_bool),
    ("archive", "queue_size"): ("MSA_ARCHIVE_QUEUE_SIZE", int),
}


def _read_settings(config_path: str | None) -> dict[tuple[str, str], Any]:
    values: dict[tuple[str, str], Any] = {}

    for key, (env_var, parse) in SETTINGS.items():
        env_value = os.environ.get(env_var)
        if env_value is None:
            continue
        try:
            values[key] = parse(env_value)
        except (ValueError, TypeError):
            logger.warning("Invalid value for %s, using default", env_var)

    if config_path and Path(config_path).exists():
        parser = configparser.ConfigParser()
        parser.read(config_path)
        for key, (_, parse) in SETTINGS.items():
            section, option = key
            if not parser.has_option(section, option):
                continue
            raw = parser.get(section, option).strip()
            try:
                values[key] = parse(raw)
            except (ValueError, TypeError):
                logger.warning("Invalid value for [%s] %s, ignoring", section, option)
    elif config_path:
        logger.warning("Config file %s not found, using environment and defaults", config_path)

    return values


def load_policy_config(config_path: str | None = None) -> PolicyConfig:
    """Load the policy configuration.

    Environment variables (all prefixed with MSA_):
        MSA_HOSTNAME, MSA_ORIGINAL_FROM_HEADER, MSA_DB_PATH, MSA_REDIS_URL,
        MSA_SRS_SECRET, MSA_SRS_REWRITE_DOMAIN, MSA_SRS_MAX_AGE_DAYS,
        MSA_INTERFACES, MSA_FORWARDER, MSA_MX, MSA_MX_PORT, MSA_ZONE_ADDRESS,
        MSA_WINDOW_SECONDS, MSA_COUNTER_PREFIX, MSA_ARCHIVE_ENABLED,
        MSA_ARCHIVE_QUEUE_SIZE

    Args:
        config_path: Optional path to an INI file.

    Returns:
        PolicyConfig with parsed settings, using defaults for missing values.
    """
    values = _read_settings(config_path)

    def pick(section: str, option: str, default: Any) -> Any:
        value = values.get((section, option))
        return default if value in (None, "") else value

    srs_defaults = SRSConfig()
    routing_defaults = RoutingConfig()
    limits_defaults = LimitsConfig()
    archive_defaults = ArchiveConfig()
    defaults = PolicyConfig()

    return PolicyConfig(
        hostname=pick("server", "hostname", defaults.hostname),
        db_path=pick("storage", "db_path", defaults.db_path),
        redis_url=pick("storage", "redis_url", defaults.redis_url),
        original_from_header=pick("server", "original_from_header", defaults.original_from_header),
        srs=SRSConfig(
            secret=pick("srs", "secret", srs_defaults.secret),
            rewrite_domain=pick("srs", "rewrite_domain", srs_defaults.rewrite_domain),
            max_age_days=pick("srs", "max_age_days", srs_defaults.max_age_days),
        ),
        routing=RoutingConfig(
            interfaces=pick("routing", "interfaces", routing_defaults.interfaces),
            forwarder=pick("routing", "forwarder", routing_defaults.forwarder),
            mx=pick("routing", "mx", routing_defaults.mx),
            mx_port=pick("routing", "mx_port", routing_defaults.mx_port),
            zone_address=pick("routing", "zone_address", routing_defaults.zone_address),
        ),
        limits=LimitsConfig(
            window_seconds=pick("limits", "window_seconds", limits_defaults.window_seconds),
            counter_prefix=pick("limits", "counter_prefix", limits_defaults.counter_prefix),
        ),
        archive=ArchiveConfig(
            enabled=pick("archive", "enabled", archive_defaults.enabled),
            queue_size=pick("archive", "queue_size", archive_defaults.queue_size),
        ),
    )


__all__ = ["SETTINGS", "load_policy_config"]
