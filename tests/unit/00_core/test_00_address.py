"""Tests for address canonicalization and From: parsing."""

import pytest

from mail_policy.address import (
    Mailbox,
    address_domain,
    format_address,
    normalize_address,
    parse_first_address,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("alice@example.com", "alice@example.com"),
        ("Alice@Example.COM", "alice@example.com"),
        ("alice+newsletter@example.com", "alice@example.com"),
        ("  Bob+x+y@Example.ORG  ", "bob@example.org"),
        ("John.Doe+news@XN--BCHER-KVA.Example", "john.doe@bücher.example"),
        ("Jose\u0301@example.com", "jos\u00e9@example.com"),
        ("strange@local@example.com", "strange@local@example.com"),
    ],
)
def test_normalize_address(raw, expected):
    assert normalize_address(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "Alice+tag@Example.com",
        "John.Doe+news@XN--BCHER-KVA.Example",
        "josé@bücher.example",
        "  spaced @ Example.com ",
    ],
)
def test_normalize_address_is_idempotent(raw):
    once = normalize_address(raw)
    assert normalize_address(once) == once


@pytest.mark.parametrize("empty", [None, "", {}, {"address": ""}, ("Alice", None), 42])
def test_normalize_address_missing_input_returns_empty(empty):
    assert normalize_address(empty) == ""


def test_normalize_address_accepts_pairs_and_mappings():
    assert normalize_address(("Alice", "Alice+x@Example.com")) == "alice@example.com"
    assert normalize_address({"name": "Bob", "address": "BOB@example.org"}) == "bob@example.org"
    assert normalize_address(Mailbox("Carol", "Carol@Example.net")) == "carol@example.net"


def test_normalize_address_with_names():
    assert normalize_address(("Alice", "Alice+x@Example.com"), with_names=True) == {
        "name": "Alice",
        "address": "alice@example.com",
    }
    assert normalize_address("bob@example.org", with_names=True) == {
        "name": "",
        "address": "bob@example.org",
    }
    assert normalize_address(None, with_names=True) == {"name": "", "address": ""}


def test_address_domain():
    assert address_domain("Bob@Example.ORG") == "example.org"
    assert address_domain("a@b@c.example") == "c.example"
    assert address_domain("") == ""


def test_parse_first_address_with_display_name():
    mailbox = parse_first_address('"Alice Smith" <alice@example.com>, bob@example.org')
    assert mailbox == Mailbox("Alice Smith", "alice@example.com")


def test_parse_first_address_bare():
    assert parse_first_address("bob@example.org") == Mailbox("", "bob@example.org")


def test_parse_first_address_group_yields_empty_mailbox():
    assert parse_first_address("undisclosed-recipients:;") == Mailbox("", "")


@pytest.mark.parametrize("value", [None, "", "   "])
def test_parse_first_address_empty(value):
    assert parse_first_address(value) is None


def test_format_address():
    assert format_address(Mailbox("", "alice@example.com")) == "alice@example.com"
    assert format_address(Mailbox("Alice Smith", "alice@example.com")) == "Alice Smith <alice@example.com>"
    encoded = format_address(Mailbox("Zoë", "zoe@example.com"))
    assert encoded.startswith("=?utf-8?")
    assert encoded.endswith("<zoe@example.com>")


def test_format_address_with_internationalized_address():
    assert format_address(Mailbox("Carl", "jürgen@bücher.example")) == "Carl <jürgen@bücher.example>"
    assert format_address(Mailbox("Smith, J.", "jürgen@bücher.example")) == '"Smith, J." <jürgen@bücher.example>'
