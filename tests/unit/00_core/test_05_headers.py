"""Tests for the ordered header collection."""

from mail_policy.headers import HeaderCollection

RAW = (
    b"From: Alice\r\n <alice@example.com>\r\n"
    b"To: bob@example.org\r\n"
    b"Received: first\r\n"
    b"Received: second\r\n"
    b"Subject: hello\r\n"
    b"\r\n"
    b"body text\r\n"
)


def test_parse_stops_at_body_and_unfolds_on_read():
    headers = HeaderCollection.parse(RAW)
    assert len(headers) == 5
    assert headers.get_first("from") == "Alice <alice@example.com>"
    assert headers.get("RECEIVED") == ["first", "second"]
    assert headers.get_first("x-missing") == ""
    assert headers.has("subject")
    assert not headers.has("body text")


def test_update_replaces_first_and_drops_duplicates():
    headers = HeaderCollection.parse(RAW)
    headers.update("received", "only")
    assert headers.get("Received") == ["only"]
    assert [key for key, _ in headers] == ["From", "To", "Received", "Subject"]


def test_update_prepends_missing_header():
    headers = HeaderCollection.parse(RAW)
    headers.update("X-Original-From", "c@example.net")
    assert list(headers)[0] == ("X-Original-From", "c@example.net")


def test_add_positions():
    headers = HeaderCollection([("Subject", "hi")])
    headers.add("X-Top", "1")
    headers.add("X-Bottom", ["a@example.com", "b@example.com"], index=None)
    assert list(headers) == [
        ("X-Top", "1"),
        ("Subject", "hi"),
        ("X-Bottom", "a@example.com, b@example.com"),
    ]


def test_remove():
    headers = HeaderCollection.parse(RAW)
    headers.remove("received")
    assert not headers.has("Received")
    assert len(headers) == 3


def test_build_renders_crlf_block():
    headers = HeaderCollection([("From", "alice@example.com"), ("Subject", "hi")])
    assert headers.build() == b"From: alice@example.com\r\nSubject: hi\r\n\r\n"
    assert HeaderCollection().build() == b"\r\n"


def test_build_keeps_folding_of_untouched_values():
    headers = HeaderCollection.parse(RAW)
    assert headers.build().startswith(b"From: Alice\r\n <alice@example.com>\r\nTo: ")
