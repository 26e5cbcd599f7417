"""Tests for the host hook bridge."""

import asyncio

import pytest

from mail_policy.errors import SMTPResponseError, UserNotFound
from mail_policy.hooks import HookBridge
from mail_policy.models import AuthRequest, Envelope, RecipientCheck
from mail_policy.pipeline import HOOK_AUTH, HOOK_HEADERS, HOOK_RCPT, SubmissionPolicyPipeline


class FakeApp:
    def __init__(self):
        self.hooks = {}

    def add_hook(self, name, callback):
        self.hooks.setdefault(name, []).append(callback)


@pytest.fixture
def pipeline(policy_db, policy_config):
    return SubmissionPolicyPipeline.from_db(policy_config, policy_db)


async def invoke(app, bridge, hook, ctx):
    results = []
    app.hooks[hook][0](ctx, results.append)
    await bridge.drain()
    await asyncio.sleep(0)
    return results


@pytest.mark.asyncio
async def test_install_registers_every_active_hook(pipeline):
    app = FakeApp()
    names = HookBridge(pipeline).install(app)

    assert names == pipeline.hooks
    assert set(app.hooks) == set(names)
    assert all(len(callbacks) == 1 for callbacks in app.hooks.values())


@pytest.mark.asyncio
async def test_fetch_hook_is_skipped_without_mx(policy_db, policy_config):
    policy_config.routing.mx = []
    app = FakeApp()
    HookBridge(SubmissionPolicyPipeline.from_db(policy_config, policy_db)).install(app)
    assert "sender:fetch" not in app.hooks


@pytest.mark.asyncio
async def test_continue_completes_without_error(pipeline):
    app = FakeApp()
    bridge = HookBridge(pipeline)
    bridge.install(app)
    auth = AuthRequest(username="ALICE", password="wonderland")

    assert await invoke(app, bridge, HOOK_AUTH, auth) == [None]
    assert auth.username == "alice"


@pytest.mark.asyncio
async def test_denial_carries_the_response_code(pipeline):
    app = FakeApp()
    bridge = HookBridge(pipeline)
    bridge.install(app)

    [error] = await invoke(app, bridge, HOOK_AUTH, AuthRequest(username="alice", password="bad"))

    assert isinstance(error, SMTPResponseError)
    assert error.response_code == 535
    assert error.name == "SMTPResponse"
    assert str(error) == "Authentication failed"


@pytest.mark.asyncio
async def test_recipient_denial_is_delivered_on_the_next_iteration(pipeline):
    bridge = HookBridge(pipeline)
    envelope = Envelope(id="env1", user="alice")
    for _ in range(3):
        await bridge.dispatch(HOOK_RCPT, RecipientCheck(envelope, "bob@example.org"), lambda err: None)

    results = []
    await bridge.dispatch(HOOK_RCPT, RecipientCheck(envelope, "bob@example.org"), results.append)
    assert results == []

    await asyncio.sleep(0)
    [error] = results
    assert error.response_code == 550
    assert str(error).startswith("You reached a daily sending limit for your account")


@pytest.mark.asyncio
async def test_failure_passes_the_original_exception(pipeline):
    app = FakeApp()
    bridge = HookBridge(pipeline)
    bridge.install(app)

    [error] = await invoke(app, bridge, HOOK_HEADERS, Envelope(id="env1", user="nobody"))
    assert isinstance(error, UserNotFound)
