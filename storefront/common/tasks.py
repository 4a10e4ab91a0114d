"""Background runner for best-effort remote sync jobs."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Literal

logger = logging.getLogger(__name__)

SyncJob = Callable[[], Awaitable[object]]
FailureHook = Callable[[str, BaseException], None]


class SyncTaskRunner:
    """Runs sync jobs off the caller's path and swallows their failures.

    In ``serialized`` mode every key (one per cart) gets a FIFO queue drained
    by a single worker, so jobs for the same cart apply in submission order.
    In ``concurrent`` mode each job is an independent task and completion
    order is not guaranteed.
    """

    def __init__(
        self,
        *,
        mode: Literal["serialized", "concurrent"] = "serialized",
        on_failure: FailureHook | None = None,
    ) -> None:
        self._mode = mode
        self._on_failure = on_failure
        self._queues: dict[str, asyncio.Queue[tuple[str, SyncJob] | None]] = {}
        self._workers: dict[str, asyncio.Task[None]] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def mode(self) -> str:
        return self._mode

    def submit(self, key: str, operation: str, job: SyncJob) -> bool:
        """Schedule ``job`` without waiting for it. Returns False if dropped."""

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Dropping %s sync for %s: no running event loop", operation, key)
            return False

        if self._mode == "concurrent":
            task = loop.create_task(self._run(key, operation, job))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return True

        queue = self._queues.get(key)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[key] = queue
            self._workers[key] = loop.create_task(self._worker(key, queue))
        queue.put_nowait((operation, job))
        return True

    async def _worker(self, key: str, queue: asyncio.Queue[tuple[str, SyncJob] | None]) -> None:
        while True:
            entry = await queue.get()
            try:
                if entry is None:
                    return
                operation, job = entry
                await self._run(key, operation, job)
            finally:
                queue.task_done()

    async def _run(self, key: str, operation: str, job: SyncJob) -> None:
        try:
            await job()
        except Exception as exc:
            logger.exception("Remote %s sync failed for %s", operation, key)
            if self._on_failure is not None:
                self._on_failure(operation, exc)

    async def drain(self) -> None:
        """Wait until every job submitted so far has finished."""

        for queue in list(self._queues.values()):
            await queue.join()
        while self._tasks:
            pending = list(self._tasks)
            await asyncio.gather(*pending, return_exceptions=True)
            self._tasks.difference_update(pending)

    async def close(self) -> None:
        await self.drain()
        for queue in self._queues.values():
            queue.put_nowait(None)
        await asyncio.gather(*self._workers.values(), return_exceptions=True)
        self._queues.clear()
        self._workers.clear()
