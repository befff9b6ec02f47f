"""Serialized outbound task queues that pace calls to the platform.

Both queues run exactly one task at a time in submission order. Each
``submit`` call returns once its task has settled, handing the result (or
terminal exception) back to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from group_shield.dispatch.errors import RateLimitedError, translate_error

logger = logging.getLogger(__name__)

T = TypeVar("T")
Action = Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class QueuedTask:
    """One unit of work; owned by the queue until its future settles."""

    action: Action
    future: asyncio.Future[Any]
    label: str = ""
    attempts: int = 0


class SerialQueue(ABC):
    """FIFO of pending tasks drained by a single consumer task."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._pending: deque[QueuedTask] = deque()
        self._draining = False
        self._drainer: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._pending)

    async def submit(self, action: Callable[[], Awaitable[T]], label: str = "") -> T:
        """Enqueue *action* and wait for its outcome."""
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._pending.append(QueuedTask(action, future, label))
        self._ensure_draining()
        return await future

    async def join(self) -> None:
        """Wait until everything submitted so far has settled."""
        while self._drainer is not None and not self._drainer.done():
            await asyncio.shield(self._drainer)
            # woken submitters may queue follow-up work, e.g. failsafe DMs
            await asyncio.sleep(0)

    def _ensure_draining(self) -> None:
        if self._draining:
            return
        self._draining = True
        self._drainer = asyncio.create_task(self._drain(), name=f"{self.name}-queue")

    async def _drain(self) -> None:
        try:
            while self._pending:
                task = self._pending.popleft()
                if task.future.done():
                    continue
                await self._wait_turn()
                await self._run(task)
        finally:
            self._draining = False

    @abstractmethod
    async def _wait_turn(self) -> None:
        """Pause until the pacing rule allows the next task to start."""
        ...

    @abstractmethod
    async def _run(self, task: QueuedTask) -> None:
        """Execute *task* and settle its future (or put it back)."""
        ...

    @staticmethod
    def _settle(task: QueuedTask, result: Any = None, error: BaseException | None = None) -> None:
        if task.future.done():
            return
        if error is not None:
            task.future.set_exception(error)
        else:
            task.future.set_result(result)


class ModerationQueue(SerialQueue):
    """Account and message actions: a fixed pause after each task completes."""

    def __init__(self, delay_ms: int = 350) -> None:
        super().__init__("moderation")
        self._delay = delay_ms / 1000
        self._last_finished: float | None = None

    async def _wait_turn(self) -> None:
        if self._last_finished is None:
            return
        remaining = self._delay - (asyncio.get_running_loop().time() - self._last_finished)
        if remaining > 0:
            await asyncio.sleep(remaining)

    async def _run(self, task: QueuedTask) -> None:
        loop = asyncio.get_running_loop()
        try:
            result = await task.action()
        except Exception as exc:
            logger.debug("Moderation task %s raised %r", task.label or "-", exc)
            self._settle(task, error=exc)
        else:
            self._settle(task, result)
        finally:
            self._last_finished = loop.time()


class AuditQueue(SerialQueue):
    """Audit-log sends: spaced from the start of the previous successful send.

    A rate-limited send sleeps for the server-provided retry-after and is
    put back at the front, so it is never dropped or overtaken.
    """

    def __init__(self, interval_ms: int = 1000) -> None:
        super().__init__("audit")
        self._interval = interval_ms / 1000
        self._last_sent_start: float | None = None

    async def _wait_turn(self) -> None:
        if self._last_sent_start is None:
            return
        elapsed = asyncio.get_running_loop().time() - self._last_sent_start
        if elapsed < self._interval:
            await asyncio.sleep(self._interval - elapsed)

    async def _run(self, task: QueuedTask) -> None:
        started = asyncio.get_running_loop().time()
        task.attempts += 1
        try:
            result = await task.action()
        except Exception as exc:
            error = translate_error(exc)
            if isinstance(error, RateLimitedError):
                logger.warning(
                    "Audit send rate-limited, retrying in %.1fs (attempt=%d)",
                    error.retry_after,
                    task.attempts,
                )
                await asyncio.sleep(error.retry_after)
                self._pending.appendleft(task)
                return
            logger.error("Audit send failed: %s", error)
            self._settle(task, error=error)
            return
        self._last_sent_start = started
        self._settle(task, result)
