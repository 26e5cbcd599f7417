# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Background archival of sent mail.

The queue hook composes the archive record and hands it to ``ArchiveWorker``,
then returns to the host right away: the sink write happens on a separate
task, so its success or failure never affects the submission. Outcomes are
only logged and counted.
"""

from __future__ import annotations

import asyncio

from .logger import get_logger
from .metrics import PolicyMetrics
from .models import ArchiveRecord
from .stores.base import ArchiveSink

logger = get_logger("Rewrite")


class ArchiveWorker:
    """Single consumer task writing queued records to an ``ArchiveSink``.

    Example:
        worker = ArchiveWorker(SqlArchiveSink(db))
        await worker.start()
        worker.submit(record)
        await worker.join()
        await worker.stop()
    """

    def __init__(
        self,
        sink: ArchiveSink,
        queue_size: int = 1000,
        metrics: PolicyMetrics | None = None,
    ):
        self.sink = sink
        self.metrics = metrics
        self._queue: asyncio.Queue[ArchiveRecord] = asyncio.Queue(maxsize=queue_size)
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        """Start the consumer task."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="archive-worker")
        logger.debug("Archive worker started")

    async def stop(self, drain: bool = True) -> None:
        """Stop the consumer task.

        Args:
            drain: Wait for queued records to be written first.
        """
        if self._task is None:
            return
        if drain and self.running:
            await self._queue.join()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("Archive worker stopped")

    async def join(self) -> None:
        """Wait until every submitted record has been processed."""
        await self._queue.join()

    def submit(self, record: ArchiveRecord) -> bool:
        """Queue a record without waiting. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            logger.error(
                "%s MSAUPLFAIL user=%s error=archive queue full",
                record.envelope_id, record.username,
            )
            self._count("dropped")
            return False
        self._update_pending()
        return True

    async def _run(self) -> None:
        while True:
            record = await self._queue.get()
            try:
                await self.store(record)
            finally:
                self._queue.task_done()
                self._update_pending()

    async def store(self, record: ArchiveRecord) -> None:
        """Write one record to the sink, logging the outcome."""
        try:
            result = await self.sink.add(record)
        except Exception as exc:
            logger.error(
                "%s MSAUPLFAIL user=%s error=%s", record.envelope_id, record.username, exc
            )
            self._count("failed")
            return

        if result is not None:
            logger.info(
                "%s MSAUPLSUCC user=%s uid=%s", record.envelope_id, record.username, result.uid
            )
            self._count("stored")
        else:
            logger.info(
                "%s MSAUPLSKIP user=%s message=already exists",
                record.envelope_id, record.username,
            )
            self._count("duplicate")

    def _count(self, status: str) -> None:
        if self.metrics:
            self.metrics.inc_archive(status)

    def _update_pending(self) -> None:
        if self.metrics:
            self.metrics.set_archive_pending(self._queue.qsize())


__all__ = ["ArchiveWorker"]
