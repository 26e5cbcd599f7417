"""Tests for Received header rendering."""

from datetime import datetime, timezone

from mail_policy.headers import HeaderCollection
from mail_policy.models import Envelope, TlsInfo
from mail_policy.received import build_received_header

WHEN = datetime(2016, 8, 3, 11, 32, 7, tzinfo=timezone.utc)
DATE = "Wed, 03 Aug 2016 11:32:07 +0000"


def make_envelope(**kwargs):
    values = {
        "id": "abc123",
        "sender": "alice@example.com",
        "recipients": ["bob@example.org"],
        "transhost": "mail.example.com",
        "origin": "203.0.113.5",
        "transtype": "ESMTP",
        "time": WHEN,
        "headers": HeaderCollection(),
    }
    values.update(kwargs)
    return Envelope(**values)


def test_ip_only_single_recipient():
    header = build_received_header(make_envelope(), "msa.example.net")
    assert header == (
        "Received: from mail.example.com [203.0.113.5]\r\n"
        " by msa.example.net with ESMTP id abc123\r\n"
        " for <bob@example.org>;\r\n"
        f" {DATE}"
    )


def test_ip_and_hostname_authenticated_with_tls():
    envelope = make_envelope(
        originhost="client.example.org",
        user="alice",
        transtype="ESMTPSA",
        recipients=["bob@example.org", "carol@example.org"],
        tls=TlsInfo(version="TLSv1.3", name="TLS_AES_256_GCM_SHA384"),
    )
    header = build_received_header(envelope, "msa.example.net")
    assert header == (
        "Received: from mail.example.com ([203.0.113.5] client.example.org)\r\n"
        " (Authenticated sender: alice)\r\n"
        " by msa.example.net with ESMTPSA id abc123\r\n"
        " (version=TLSv1.3 cipher=TLS_AES_256_GCM_SHA384);\r\n"
        f" {DATE}"
    )


def test_hostname_only():
    envelope = make_envelope(origin=None, originhost="client.example.org", recipients=[])
    header = build_received_header(envelope, "msa.example.net")
    assert header == (
        "Received: from mail.example.com client.example.org\r\n"
        " by msa.example.net with ESMTP id abc123;\r\n"
        f" {DATE}"
    )


def test_bracketed_hostname_is_ignored():
    envelope = make_envelope(originhost="[203.0.113.5]", user="alice")
    header = build_received_header(envelope, "msa.example.net")
    assert header.startswith(
        "Received: from mail.example.com [203.0.113.5] (Authenticated sender: alice)\r\n"
        " by msa.example.net"
    )


def test_no_origin_renders_localhost():
    envelope = make_envelope(transhost=None, origin=None)
    header = build_received_header(envelope, "msa.example.net")
    assert header.startswith("Received: from localhost\r\n by msa.example.net ")


def test_naive_time_is_taken_as_utc():
    envelope = make_envelope(time=datetime(2016, 8, 3, 11, 32, 7))
    assert build_received_header(envelope, "h").endswith(DATE)
