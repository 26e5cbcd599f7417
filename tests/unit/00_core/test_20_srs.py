"""Tests for Sender Rewriting Scheme aliases."""

import pytest

from mail_policy.errors import ExpiredToken, InvalidOrTamperedToken, SRSError
from mail_policy.srs import Err, Ok, SRSRewriter

DAY = 86400


class Clock:
    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return Clock(1_700_000_000)


@pytest.fixture
def rewriter(clock):
    return SRSRewriter("test-secret", clock=clock)


def alias_of(result):
    assert isinstance(result, Ok), result
    return result.value


@pytest.mark.parametrize(
    "local, domain",
    [
        ("alice", "example.com"),
        ("first.last", "sub.example.org"),
        ("with-dash", "my-domain.example"),
        ("weird=local", "example.net"),
        ("srs0=foo", "example.org"),
        ("srs1=bar", "example.org"),
    ],
)
def test_rewrite_then_reverse_round_trip(rewriter, local, domain):
    alias = alias_of(rewriter.rewrite(local, domain))
    assert alias.startswith("SRS0=")
    assert alias.endswith(f"={domain}={local}")
    assert rewriter.reverse(alias) == (local, domain)
    assert rewriter.reverse(f"{alias}@fwd.example.net") == (local, domain)


def test_rewrite_is_deterministic_within_a_day(rewriter):
    assert rewriter.rewrite("alice", "example.com") == rewriter.rewrite("alice", "example.com")


def test_hash_is_case_insensitive(rewriter):
    alias = alias_of(rewriter.rewrite("alice", "example.com"))
    prefix, hash_, rest = alias.split("=", 2)
    assert rewriter.reverse(f"{prefix}={hash_.swapcase()}={rest}") == ("alice", "example.com")


def test_lowercased_alias_is_reversed(rewriter):
    alias = alias_of(rewriter.rewrite("alice", "example.com"))
    assert rewriter.reverse(alias.lower()) == ("alice", "example.com")


def test_tampered_hash_is_rejected(rewriter):
    alias = alias_of(rewriter.rewrite("alice", "example.com"))
    hash_ = alias[5:9]
    replacement = "0" if hash_[0].lower() != "0" else "1"
    tampered = alias[:5] + replacement + alias[6:]
    with pytest.raises(InvalidOrTamperedToken):
        rewriter.reverse(tampered)


def test_tampered_address_is_rejected(rewriter):
    alias = alias_of(rewriter.rewrite("alice", "example.com"))
    with pytest.raises(InvalidOrTamperedToken):
        rewriter.reverse(alias.replace("=alice", "=mallory"))


def test_other_secret_is_rejected(rewriter, clock):
    alias = alias_of(rewriter.rewrite("alice", "example.com"))
    with pytest.raises(InvalidOrTamperedToken):
        SRSRewriter("another-secret", clock=clock).reverse(alias)


def test_expired_alias(rewriter, clock):
    alias = alias_of(rewriter.rewrite("alice", "example.com"))
    clock.now += 21 * DAY
    assert rewriter.reverse(alias) == ("alice", "example.com")
    clock.now += 1 * DAY
    with pytest.raises(ExpiredToken):
        rewriter.reverse(alias)


@pytest.mark.parametrize("alias", ["alice", "SRS0=abcd", "SRS0=abcd=AA=example.com", "SRS1=abcd"])
def test_malformed_aliases(rewriter, alias):
    with pytest.raises(InvalidOrTamperedToken):
        rewriter.reverse(alias)


def test_rewriting_an_srs0_alias_produces_srs1(rewriter, clock):
    first_hop = SRSRewriter("first-secret", clock=clock)
    srs0 = alias_of(first_hop.rewrite("alice", "example.com"))

    srs1 = alias_of(rewriter.rewrite(srs0, "first.example"))
    assert srs1.startswith("SRS1=")
    assert srs1.endswith(f"=first.example={srs0[4:]}")

    # a bounce goes back to the first forwarder, which reverses its own alias
    local, host = rewriter.reverse(srs1)
    assert (local, host) == (srs0, "first.example")
    assert first_hop.reverse(local) == ("alice", "example.com")


def test_rewriting_an_srs1_alias_keeps_the_first_hop(rewriter, clock):
    srs0 = alias_of(SRSRewriter("first-secret", clock=clock).rewrite("alice", "example.com"))
    srs1 = alias_of(SRSRewriter("second-secret", clock=clock).rewrite(srs0, "first.example"))

    again = alias_of(rewriter.rewrite(srs1, "second.example"))
    assert again.startswith("SRS1=")
    assert rewriter.reverse(again) == (srs0, "first.example")


@pytest.mark.parametrize(
    "local, domain",
    [("", "example.com"), ("alice", ""), ("alice", "bad=domain.example"), ("alice", "a@b")],
)
def test_rewrite_failures_are_results(rewriter, local, domain):
    result = rewriter.rewrite(local, domain)
    assert isinstance(result, Err)
    assert result.reason


def test_dash_separator(clock):
    rewriter = SRSRewriter("test-secret", separator="-", clock=clock)
    alias = alias_of(rewriter.rewrite("alice", "example.com"))
    assert alias.startswith("SRS0-")
    assert rewriter.reverse(alias) == ("alice", "example.com")


def test_invalid_construction():
    with pytest.raises(SRSError):
        SRSRewriter("")
    with pytest.raises(SRSError):
        SRSRewriter("secret", separator="+")
