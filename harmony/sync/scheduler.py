"""Poll-driven refresh of the conversation list and the open thread."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger

from harmony.sync.connection_service import ConnectionRequestService
from harmony.sync.errors import NotAuthenticated, SyncError
from harmony.sync.messaging import MessagingService
from harmony.sync.thread_cache import MessageThreadCache, ReconcileResult

MAX_BACKOFF_FACTOR = 8


class PeriodicTask:
    """Runs ``action`` every ``interval`` seconds until stopped.

    ``stop()`` only prevents further runs; an action already awaiting the
    network is allowed to finish. Consecutive failures double the delay up
    to ``MAX_BACKOFF_FACTOR`` times the interval.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        action: Callable[[], Awaitable[object]],
    ) -> None:
        self.name = name
        self.interval = interval
        self._action = action
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None
        self.failures = 0
        self.runs = 0
        self.last_error: SyncError | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._stop.is_set()

    @property
    def stopped(self) -> bool:
        return self._task is None or self._task.done()

    def start(self, immediate: bool = True) -> None:
        if self.running:
            return
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._run(immediate), name=self.name)
        logger.debug("Poller {} started every {}s", self.name, self.interval)

    def stop(self) -> None:
        if self._task is None:
            return
        self._stop.set()
        logger.debug("Poller {} stopped", self.name)

    async def wait_closed(self) -> None:
        if self._task is not None:
            await self._task

    def next_delay(self) -> float:
        if not self.failures:
            return self.interval
        return self.interval * min(2 ** self.failures, MAX_BACKOFF_FACTOR)

    async def _run(self, immediate: bool) -> None:
        if not immediate and await self._sleep(self.interval):
            return
        while not self._stop.is_set():
            try:
                await self._action()
            except NotAuthenticated as exc:
                self.last_error = exc
                logger.error("Poller {} stopping, credentials refused: {}", self.name, exc)
                return
            except SyncError as exc:
                self.failures += 1
                self.last_error = exc
                logger.warning(
                    "Poller {} cycle failed ({} in a row): {}", self.name, self.failures, exc
                )
            else:
                self.failures = 0
                self.last_error = None
            self.runs += 1
            if await self._sleep(self.next_delay()):
                return

    async def _sleep(self, delay: float) -> bool:
        """Wait ``delay`` seconds; return True if stopped meanwhile."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True


class SyncScheduler:
    """Owns the summary poller and at most one active-thread poller."""

    def __init__(
        self,
        messaging: MessagingService,
        connections: ConnectionRequestService,
        threads: MessageThreadCache,
        summary_interval: float,
        thread_interval: float,
    ) -> None:
        self._messaging = messaging
        self._connections = connections
        self._threads = threads
        self._summary_interval = summary_interval
        self._thread_interval = thread_interval
        self._summary_task: PeriodicTask | None = None
        self._thread_task: PeriodicTask | None = None
        self._closing: list[PeriodicTask] = []
        self.active_thread: int | None = None

    @property
    def summary_task(self) -> PeriodicTask | None:
        return self._summary_task

    @property
    def thread_task(self) -> PeriodicTask | None:
        return self._thread_task

    async def poll_summaries(self) -> None:
        await self._messaging.refresh_summaries()
        await self._connections.refresh()

    async def poll_thread(self, counterpart_id: int, opening: bool = False) -> ReconcileResult:
        result = await self._messaging.refresh_thread(counterpart_id)
        if counterpart_id != self.active_thread:
            return result
        thread = self._threads.thread(counterpart_id)
        if opening or result.incoming_unread or thread.read_unacked or thread.unread_count():
            await self._messaging.mark_read(counterpart_id)
        return result

    async def show_conversation_list(self) -> None:
        if self._summary_task is not None and self._summary_task.running:
            return
        self._summary_task = PeriodicTask(
            "conversation-summaries", self._summary_interval, self.poll_summaries
        )
        self._summary_task.start(immediate=False)
        await self.poll_summaries()

    def hide_conversation_list(self) -> None:
        if self._summary_task is not None:
            self._summary_task.stop()
            self._closing.append(self._summary_task)
            self._summary_task = None

    async def open_thread(self, counterpart_id: int) -> ReconcileResult:
        """Make ``counterpart_id`` the active thread, load it and mark it read."""
        if self.active_thread != counterpart_id:
            self.close_thread()
        self.active_thread = counterpart_id
        if self._thread_task is None or not self._thread_task.running:
            self._thread_task = PeriodicTask(
                f"thread-{counterpart_id}",
                self._thread_interval,
                lambda: self.poll_thread(counterpart_id),
            )
            self._thread_task.start(immediate=False)
        return await self.poll_thread(counterpart_id, opening=True)

    def close_thread(self) -> None:
        if self._thread_task is not None:
            self._thread_task.stop()
            self._closing.append(self._thread_task)
            self._thread_task = None
        self.active_thread = None
        self._closing = [t for t in self._closing if not t.stopped]

    async def aclose(self) -> None:
        """Stop every poller and wait for in-flight cycles to finish."""
        self.hide_conversation_list()
        self.close_thread()
        closing, self._closing = self._closing, []
        for task in closing:
            await task.wait_closed()
