"""Tests for review.scheduler: WorkerPool and ShutdownFlag."""

import asyncio
import json
import os
import signal
from pathlib import Path

import pytest

from gatekeep.agent.messages import AssistantMessage, ToolCall, ToolMessage
from gatekeep.providers.base import ChatProvider
from gatekeep.review.aggregator import aggregate
from gatekeep.review.models import Task, WorkerResult, WorkerStatus
from gatekeep.review.scheduler import ShutdownFlag, WorkerPool, install_signal_handlers
from gatekeep.review.worker import ReviewContext, ReviewWorker


@pytest.fixture
def tasks(make_rule) -> list[Task]:
    rule = make_rule()
    return [Task(worker_id=str(i), rule=rule, files=(f"f{i}.py",)) for i in range(6)]


class Probe:
    """Worker function recording concurrency and start order."""

    def __init__(self, delay: float = 0.01) -> None:
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.started: list[str] = []

    async def __call__(self, task: Task, shutdown: ShutdownFlag) -> WorkerResult:
        self.started.append(task.worker_id)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        return WorkerResult.for_task(task)


class TestShutdownFlag:
    """Test ShutdownFlag."""

    def test_request_once(self) -> None:
        """Only the first request sets the flag and its reason."""
        flag = ShutdownFlag()
        assert not flag.is_set()
        assert flag.request("SIGINT") is True
        assert flag.request("SIGTERM") is False
        assert flag.is_set()
        assert flag.reason == "SIGINT"

    async def test_wait_wakes_waiters(self) -> None:
        """Every waiter wakes when the flag is set."""
        flag = ShutdownFlag()
        waiters = [asyncio.create_task(flag.wait()) for _ in range(3)]
        await asyncio.sleep(0)
        flag.request()
        await asyncio.wait_for(asyncio.gather(*waiters), timeout=1)


class TestWorkerPool:
    """Test bounded scheduling."""

    def test_rejects_non_positive_limit(self) -> None:
        """max_parallel must be at least one."""
        with pytest.raises(ValueError, match="must be positive"):
            WorkerPool(Probe(), max_parallel=0)

    async def test_respects_limit(self, tasks: list[Task]) -> None:
        """Never more than max_parallel tasks run at once."""
        probe = Probe()
        outcome = await WorkerPool(probe, max_parallel=2).run(tasks)

        assert probe.max_active == 2
        assert outcome.max_in_flight == 2
        assert outcome.started == 6
        assert outcome.not_started == 0
        assert not outcome.interrupted

    async def test_unbounded_runs_everything_at_once(self, tasks: list[Task]) -> None:
        """Without a limit every task is in flight together."""
        probe = Probe()
        outcome = await WorkerPool(probe).run(tasks)
        assert probe.max_active == len(tasks)
        assert outcome.max_in_flight == len(tasks)

    async def test_results_in_plan_order(self, tasks: list[Task]) -> None:
        """Results come back in plan order whatever the finishing order."""

        async def reverse_speed(task: Task, shutdown: ShutdownFlag) -> WorkerResult:
            await asyncio.sleep(0.01 * (10 - int(task.worker_id)))
            return WorkerResult.for_task(task)

        outcome = await WorkerPool(reverse_speed).run(tasks)
        assert [r.worker_id for r in outcome.results] == [t.worker_id for t in tasks]

    async def test_starts_in_plan_order(self, tasks: list[Task]) -> None:
        """Queued tasks start in plan order."""
        probe = Probe()
        await WorkerPool(probe, max_parallel=1).run(tasks)
        assert probe.started == [t.worker_id for t in tasks]

    async def test_empty_plan(self) -> None:
        """No tasks, nothing to do."""
        outcome = await WorkerPool(Probe()).run([])
        assert outcome.results == []
        assert outcome.max_in_flight == 0

    async def test_worker_exception_becomes_failed(self, tasks: list[Task]) -> None:
        """An unexpected exception fails that task only."""

        async def flaky(task: Task, shutdown: ShutdownFlag) -> WorkerResult:
            if task.worker_id == "1":
                raise RuntimeError("worker crashed")
            return WorkerResult.for_task(task)

        outcome = await WorkerPool(flaky, max_parallel=2).run(tasks)

        statuses = {r.worker_id: r.status for r in outcome.results}
        assert statuses["1"] is WorkerStatus.FAILED
        assert outcome.results[1].error == "worker crashed"
        assert sum(s is WorkerStatus.COMPLETED for s in statuses.values()) == 5

    async def test_shutdown_stops_new_starts(self, tasks: list[Task]) -> None:
        """After shutdown, in-flight tasks finish and queued ones never start."""
        shutdown = ShutdownFlag()

        async def worker(task: Task, flag: ShutdownFlag) -> WorkerResult:
            if task.worker_id == "0":
                flag.request("test")
            await asyncio.sleep(0.01)
            status = WorkerStatus.CANCELLED if flag.is_set() else WorkerStatus.COMPLETED
            return WorkerResult.for_task(task, status=status)

        outcome = await WorkerPool(worker, max_parallel=2, shutdown=shutdown).run(tasks)

        assert [r.worker_id for r in outcome.results] == ["0", "1"]
        assert outcome.not_started == 4
        assert outcome.interrupted
        assert all(r.status is WorkerStatus.CANCELLED for r in outcome.results)

    async def test_shutdown_before_run_starts_nothing(self, tasks: list[Task]) -> None:
        """A flag set up front means no task starts."""
        shutdown = ShutdownFlag()
        shutdown.request()
        probe = Probe()

        outcome = await WorkerPool(probe, shutdown=shutdown).run(tasks)

        assert probe.started == []
        assert outcome.not_started == len(tasks)
        assert outcome.interrupted

    async def test_worker_receives_pool_flag(self, tasks: list[Task]) -> None:
        """Workers are handed the pool's shutdown flag."""
        shutdown = ShutdownFlag()
        seen: list[ShutdownFlag] = []

        async def worker(task: Task, flag: ShutdownFlag) -> WorkerResult:
            seen.append(flag)
            return WorkerResult.for_task(task)

        await WorkerPool(worker, shutdown=shutdown).run(tasks[:2])
        assert all(flag is shutdown for flag in seen)


@pytest.mark.skipif(not hasattr(signal, "SIGTERM") or os.name != "posix", reason="POSIX only")
class TestSignalHandlers:
    """Test SIGINT/SIGTERM routing."""

    async def test_sigterm_sets_flag(self) -> None:
        """A SIGTERM inside the block requests shutdown instead of killing the process."""
        flag = ShutdownFlag()
        with install_signal_handlers(flag):
            os.kill(os.getpid(), signal.SIGTERM)
            await asyncio.wait_for(flag.wait(), timeout=1)
        assert flag.reason == "SIGTERM"

    async def test_handlers_removed_after_block(self) -> None:
        """Default handling is restored when the block exits."""
        flag = ShutdownFlag()
        with install_signal_handlers(flag):
            pass
        assert signal.getsignal(signal.SIGTERM) in (signal.SIG_DFL, None)


class ReportThenWait(ChatProvider):
    """Reports one violation per conversation, then never answers again."""

    def __init__(self) -> None:
        self.reports = 0
        self.waiting = 0
        self.cancelled = 0

    @property
    def model_name(self) -> str:
        return "report-then-wait"

    async def call(self, messages, tools) -> AssistantMessage:
        if not any(isinstance(m, ToolMessage) for m in messages):
            self.reports += 1
            args = {
                "violations": [
                    {
                        "file": "src/app.py",
                        "detail": f"finding {self.reports}",
                        "start_line": self.reports,
                        "end_line": self.reports,
                    }
                ]
            }
            call = ToolCall(id=f"r{self.reports}", name="report", arguments=json.dumps(args))
            return AssistantMessage(tool_calls=[call])

        self.waiting += 1
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        raise AssertionError("unreachable")


class TestShutdownWithReviewWorkers:
    """Test shutdown with real review workers in flight."""

    async def test_partial_violations_survive_shutdown(self, make_rule, tmp_path: Path) -> None:
        """In-flight tasks finish CANCELLED, the queued one never starts, findings are kept."""
        rule = make_rule("No magic numbers")
        tasks = [Task(worker_id=str(i), rule=rule, files=("src/app.py",)) for i in range(4)]
        provider = ReportThenWait()
        context = ReviewContext(root=tmp_path, changed_files=["src/app.py"], diffs={})
        shutdown = ShutdownFlag()
        pool = WorkerPool(ReviewWorker(provider, context).run, max_parallel=3, shutdown=shutdown)

        run = asyncio.create_task(pool.run(tasks))
        while provider.waiting < 3:
            await asyncio.sleep(0)
        shutdown.request("SIGINT")
        outcome = await asyncio.wait_for(run, timeout=2)

        assert [r.worker_id for r in outcome.results] == ["0", "1", "2"]
        assert all(r.status is WorkerStatus.CANCELLED for r in outcome.results)
        assert outcome.not_started == 1
        assert outcome.interrupted
        assert provider.cancelled == 3

        report = aggregate(outcome)
        assert report.cancelled == 3
        assert report.not_started == 1
        assert report.partial
        details = [v.detail for v in report.violations_by_file["src/app.py"]["No magic numbers"]]
        assert sorted(details) == ["finding 1", "finding 2", "finding 3"]
        assert report.exit_code == 1
