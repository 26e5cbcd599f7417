"""Tests for policy configuration loading from INI files and environment."""

import socket

import pytest

from mail_policy.config_loader import SETTINGS, load_policy_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for env_var, _ in SETTINGS.values():
        monkeypatch.delenv(env_var, raising=False)


def test_defaults_without_file_or_environment():
    config = load_policy_config()

    assert config.hostname == socket.gethostname()
    assert config.db_path == "/data/policy.db"
    assert config.redis_url is None
    assert config.original_from_header == "X-Original-From"
    assert config.srs.secret is None
    assert config.srs.max_age_days == 21
    assert config.routing.interfaces == ["*"]
    assert config.routing.all_interfaces
    assert config.routing.mx == []
    assert config.limits.window_seconds == 86400
    assert config.limits.counter_prefix == "rcpt:"
    assert config.archive.enabled is True
    assert config.archive.queue_size == 1000


def test_environment_variables_are_parsed(monkeypatch):
    monkeypatch.setenv("MSA_HOSTNAME", "msa.example.net")
    monkeypatch.setenv("MSA_SRS_SECRET", "s3cret")
    monkeypatch.setenv("MSA_INTERFACES", "feeder, msa")
    monkeypatch.setenv("MSA_MX", "127.0.0.1,127.0.0.2")
    monkeypatch.setenv("MSA_MX_PORT", "24")
    monkeypatch.setenv("MSA_ARCHIVE_ENABLED", "no")

    config = load_policy_config()

    assert config.hostname == "msa.example.net"
    assert config.srs.secret == "s3cret"
    assert config.routing.interfaces == ["feeder", "msa"]
    assert not config.routing.all_interfaces
    assert config.routing.mx == ["127.0.0.1", "127.0.0.2"]
    assert config.routing.mx_port == 24
    assert config.archive.enabled is False


def test_config_file_overrides_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("MSA_HOSTNAME", "env.example.net")
    monkeypatch.setenv("MSA_FORWARDER", "env-forwarder")
    config_file = tmp_path / "policy.ini"
    config_file.write_text("""
[server]
hostname = file.example.net

[storage]
db_path = /tmp/policy.db
redis_url = redis://localhost:6379/2

[srs]
secret = change-me
rewrite_domain = fwd.example.com

[limits]
window_seconds = 3600
""")

    config = load_policy_config(str(config_file))

    assert config.hostname == "file.example.net"
    assert config.routing.forwarder == "env-forwarder"
    assert config.db_path == "/tmp/policy.db"
    assert config.redis_url == "redis://localhost:6379/2"
    assert config.srs.rewrite_domain == "fwd.example.com"
    assert config.limits.window_seconds == 3600


def test_invalid_values_are_ignored(tmp_path, monkeypatch):
    monkeypatch.setenv("MSA_MX_PORT", "twenty-four")
    config_file = tmp_path / "policy.ini"
    config_file.write_text("""
[limits]
window_seconds = forever

[archive]
enabled = maybe
""")

    config = load_policy_config(str(config_file))

    assert config.routing.mx_port is None
    assert config.limits.window_seconds == 86400
    assert config.archive.enabled is True


def test_missing_file_falls_back_to_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("MSA_ZONE_ADDRESS", "local")

    config = load_policy_config(str(tmp_path / "missing.ini"))

    assert config.routing.zone_address == "local"


def test_empty_values_keep_defaults(tmp_path):
    config_file = tmp_path / "policy.ini"
    config_file.write_text("""
[server]
original_from_header =
""")

    config = load_policy_config(str(config_file))
    assert config.original_from_header == "X-Original-From"
