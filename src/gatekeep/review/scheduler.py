"""WorkerPool: bounded-concurrency task scheduling with cooperative shutdown.

Shutdown is cooperative: SIGINT/SIGTERM set a ShutdownFlag, running workers see it
at their next check (or immediately, while waiting on the model) and return
partial results, and no new task starts afterwards. In-flight work is always
awaited, never killed.
"""

import asyncio
import logging
import signal
from collections import deque
from collections.abc import Awaitable, Callable, Iterator, Sequence
from contextlib import contextmanager

from gatekeep.review.models import PoolOutcome, Task, WorkerResult, WorkerStatus

logger = logging.getLogger(__name__)

WorkerFn = Callable[[Task, "ShutdownFlag"], Awaitable[WorkerResult]]


class ShutdownFlag:
    """One-way stop request: many readers, set at most once, awaitable."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    def request(self, reason: str = "requested") -> bool:
        """Set the flag.

        Returns:
            True if this call set it, False if it was already set
        """
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@contextmanager
def install_signal_handlers(flag: ShutdownFlag) -> Iterator[None]:
    """Route SIGINT and SIGTERM to ``flag`` for the duration of the block.

    Must be entered from a running event loop. Where the loop cannot take signal
    handlers (not the main thread, or no support on this platform) the block runs
    without them.
    """
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []

    def _handler(sig: signal.Signals) -> None:
        if flag.request(sig.name):
            logger.warning("Received %s, finishing in-flight tasks", sig.name)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _handler, sig)
        except (NotImplementedError, RuntimeError, ValueError) as e:
            logger.debug("Cannot install %s handler: %s", sig.name, e)
            continue
        installed.append(sig)

    try:
        yield
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


class WorkerPool:
    """Runs tasks through a worker function with at most ``max_parallel`` in flight."""

    def __init__(
        self,
        worker: WorkerFn,
        max_parallel: int | None = None,
        shutdown: ShutdownFlag | None = None,
    ) -> None:
        """Initialize worker pool.

        Args:
            worker: Coroutine function reviewing one task
            max_parallel: Concurrency bound (None = all tasks at once)
            shutdown: Flag observed by the pool and handed to every worker

        Raises:
            ValueError: If max_parallel is not positive
        """
        if max_parallel is not None and max_parallel < 1:
            raise ValueError("max_parallel must be positive")
        self.worker = worker
        self.max_parallel = max_parallel
        self.shutdown = shutdown or ShutdownFlag()

    async def run(self, tasks: Sequence[Task]) -> PoolOutcome:
        """Run every task unless shutdown intervenes.

        Returns:
            One result per started task (in plan order), the count of tasks never
            started, and whether shutdown was requested
        """
        queue = deque(enumerate(tasks))
        limit = len(tasks) if self.max_parallel is None else min(self.max_parallel, len(tasks))
        in_flight: dict[asyncio.Task[WorkerResult], int] = {}
        results: dict[int, WorkerResult] = {}
        max_in_flight = 0

        def fill() -> None:
            nonlocal max_in_flight
            while queue and len(in_flight) < limit and not self.shutdown.is_set():
                index, task = queue.popleft()
                future = asyncio.create_task(
                    self._run_one(task), name=f"gatekeep-worker-{task.worker_id}"
                )
                in_flight[future] = index
                max_in_flight = max(max_in_flight, len(in_flight))

        logger.debug("Scheduling %d task(s), max parallel %s", len(tasks), self.max_parallel)
        fill()
        try:
            while in_flight:
                done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
                for future in done:
                    results[in_flight.pop(future)] = future.result()
                fill()
        finally:
            for future in in_flight:
                future.cancel()

        if queue:
            logger.warning("Shutdown requested: %d task(s) were not started", len(queue))

        return PoolOutcome(
            results=[results[index] for index in sorted(results)],
            not_started=len(queue),
            interrupted=self.shutdown.is_set(),
            max_in_flight=max_in_flight,
        )

    async def _run_one(self, task: Task) -> WorkerResult:
        try:
            return await self.worker(task, self.shutdown)
        except Exception as e:
            logger.exception("[Worker %s] Unexpected error", task.worker_id)
            return WorkerResult.for_task(task, status=WorkerStatus.FAILED, error=str(e))
