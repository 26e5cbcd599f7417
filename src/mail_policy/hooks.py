# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Bridge between the pipeline and a callback-style host MTA.

The host registers plugin callbacks with ``add_hook(name, callback)`` and
invokes them as ``callback(ctx, done)``; ``done(err)`` resumes the host,
``done(None)`` meaning "proceed". The bridge runs each pipeline stage as a
task on the running loop and translates its decision:

- ``Continue`` -> ``done(None)``
- ``Deny``     -> ``done(SMTPResponseError(reason, code))``
- ``Fail``     -> ``done(cause)``

Recipient denials are handed back on the next loop iteration instead of
inline.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Protocol

from .errors import SMTPResponseError
from .logger import get_logger
from .pipeline import HOOK_RCPT, Continue, Deny, Fail, SubmissionPolicyPipeline

logger = get_logger("Hooks")

Done = Callable[[BaseException | None], Any]
Handler = Callable[[Any, Done], None]


class HookHost(Protocol):
    def add_hook(self, name: str, callback: Handler) -> Any: ...


class HookBridge:
    """Registers the pipeline stages with a host.

    Example:
        bridge = HookBridge(pipeline)
        bridge.install(app)
    """

    def __init__(self, pipeline: SubmissionPolicyPipeline):
        self.pipeline = pipeline
        self._tasks: set[asyncio.Task[None]] = set()

    def install(self, app: HookHost) -> list[str]:
        """Register a handler for every active hook. Returns the hook names."""
        hooks = self.pipeline.hooks
        for hook in hooks:
            app.add_hook(hook, self.handler(hook))
        logger.info("Registered hooks: %s", ", ".join(hooks))
        return hooks

    def handler(self, hook: str) -> Handler:
        """Build the ``(ctx, done)`` callback for ``hook``."""

        def callback(ctx: Any, done: Done) -> None:
            task = asyncio.get_running_loop().create_task(self.dispatch(hook, ctx, done))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return callback

    async def dispatch(self, hook: str, ctx: Any, done: Done) -> None:
        """Run ``hook`` and complete the host callback with its decision."""
        decision = await self.pipeline.run(hook, ctx)
        match decision:
            case Continue():
                done(None)
            case Deny(code=code, reason=reason):
                error = SMTPResponseError(reason, code)
                if hook == HOOK_RCPT:
                    asyncio.get_running_loop().call_soon(done, error)
                else:
                    done(error)
            case Fail(cause=cause):
                done(cause)

    async def drain(self) -> None:
        """Wait for in-flight handlers."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


__all__ = ["HookBridge", "HookHost"]
