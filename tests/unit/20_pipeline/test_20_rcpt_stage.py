"""Tests for the smtp:rcpt_to stage (recipient rate limit)."""

import time

import pytest

from mail_policy.errors import UserNotFound
from mail_policy.metrics import PolicyMetrics
from mail_policy.models import Envelope, RecipientCheck
from mail_policy.pipeline import CONTINUE, HOOK_RCPT, Deny, Fail, SubmissionPolicyPipeline
from mail_policy.stores import CounterHit, CounterStore, SqlIdentityStore

LIMIT_MESSAGE = "You reached a daily sending limit for your account"


class BrokenCounterStore(CounterStore):
    async def check_and_incr(self, key, cost, ceiling, window):
        raise ConnectionError("counter store unavailable")


def rcpt(envelope, address="bob@example.org"):
    return RecipientCheck(envelope=envelope, address=address)


@pytest.mark.asyncio
async def test_recipients_up_to_the_cap_are_accepted(policy_db, policy_config, caplog):
    caplog.set_level("INFO", logger="mail_policy")
    metrics = PolicyMetrics()
    pipeline = SubmissionPolicyPipeline.from_db(policy_config, policy_db, metrics=metrics)
    envelope = Envelope(id="env1", user="alice")

    decisions = [await pipeline.run(HOOK_RCPT, rcpt(envelope, f"r{i}@example.org")) for i in range(4)]

    assert decisions[:3] == [CONTINUE, CONTINUE, CONTINUE]
    denied = decisions[3]
    assert isinstance(denied, Deny)
    assert denied.code == 550
    assert denied.reason.startswith(f"{LIMIT_MESSAGE}. Limit expires in ")
    assert "RCPTACCEPT" in caplog.text
    assert "RCPTDENY" in caplog.text

    output = metrics.generate_latest().decode()
    assert "msa_rcpt_denied_total 1.0" in output
    assert 'msa_decisions_total{hook="smtp:rcpt_to",outcome="deny"} 1.0' in output


@pytest.mark.asyncio
async def test_counter_is_keyed_by_user_id(policy_db, policy_config):
    pipeline = SubmissionPolicyPipeline.from_db(policy_config, policy_db)
    alice = await policy_db.get_user("alice")

    await pipeline.run(HOOK_RCPT, rcpt(Envelope(id="env1", user="alice")))
    await pipeline.run(HOOK_RCPT, rcpt(Envelope(id="env2", user="ALICE")))

    row = await policy_db.counters.get(f"rcpt:{alice['id']}", int(time.time()))
    assert row["value"] == 2


@pytest.mark.asyncio
async def test_limit_spans_messages(policy_db, policy_config):
    pipeline = SubmissionPolicyPipeline.from_db(policy_config, policy_db)

    for i in range(3):
        await pipeline.run(HOOK_RCPT, rcpt(Envelope(id=f"env{i}", user="alice")))
    decision = await pipeline.run(HOOK_RCPT, rcpt(Envelope(id="env9", user="alice")))
    assert isinstance(decision, Deny)


class ExhaustedCounterStore(CounterStore):
    async def check_and_incr(self, key, cost, ceiling, window):
        return CounterHit(applied=False, value=ceiling, ttl=0)


@pytest.mark.asyncio
async def test_denial_without_ttl_has_no_expiry_hint(policy_db, policy_config):
    pipeline = SubmissionPolicyPipeline(
        policy_config, SqlIdentityStore(policy_db), ExhaustedCounterStore()
    )
    decision = await pipeline.run(HOOK_RCPT, rcpt(Envelope(id="env1", user="alice")))
    assert decision == Deny(550, LIMIT_MESSAGE)


@pytest.mark.asyncio
async def test_zero_window_never_denies(policy_db, policy_config):
    policy_config.limits.window_seconds = 0
    await policy_db.users.update_fields((await policy_db.get_user("alice"))["id"], {"recipients": 1})
    pipeline = SubmissionPolicyPipeline.from_db(policy_config, policy_db)
    envelope = Envelope(id="env1", user="alice")

    decisions = [await pipeline.run(HOOK_RCPT, rcpt(envelope)) for _ in range(2)]
    assert decisions == [CONTINUE, CONTINUE]


@pytest.mark.asyncio
async def test_unlimited_user(policy_db, policy_config):
    pipeline = SubmissionPolicyPipeline.from_db(policy_config, policy_db)
    envelope = Envelope(id="env1", user="carol")

    for _ in range(10):
        assert await pipeline.run(HOOK_RCPT, rcpt(envelope)) == CONTINUE
    assert await policy_db.counters.select() == []


@pytest.mark.asyncio
async def test_identity_errors_fail(policy_db, policy_config):
    pipeline = SubmissionPolicyPipeline.from_db(policy_config, policy_db)
    decision = await pipeline.run(HOOK_RCPT, rcpt(Envelope(id="env1", user="nobody")))

    assert isinstance(decision, Fail)
    assert isinstance(decision.cause, UserNotFound)


@pytest.mark.asyncio
async def test_counter_errors_fail(policy_db, policy_config):
    pipeline = SubmissionPolicyPipeline(
        policy_config, SqlIdentityStore(policy_db), BrokenCounterStore()
    )
    decision = await pipeline.run(HOOK_RCPT, rcpt(Envelope(id="env1", user="alice")))

    assert isinstance(decision, Fail)
    assert isinstance(decision.cause, ConnectionError)


@pytest.mark.asyncio
async def test_other_interfaces_are_not_counted(policy_db, policy_config):
    pipeline = SubmissionPolicyPipeline.from_db(policy_config, policy_db)
    envelope = Envelope(id="env1", user="alice", interface="mx")

    for _ in range(5):
        assert await pipeline.run(HOOK_RCPT, rcpt(envelope)) == CONTINUE
    assert await policy_db.counters.select() == []
