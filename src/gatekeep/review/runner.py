"""ReviewRunner: orchestrates one review run.

resolve base -> list changed files -> plan tasks -> fetch diffs and commit subjects
-> run the worker pool -> aggregate -> write artifacts. The exit code is decided by
the caller from the returned report, after every artifact has been written.
"""

import logging
import time
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from gatekeep.config import Config
from gatekeep.git.source import BaseRef, GitSource
from gatekeep.providers.base import ChatProvider
from gatekeep.review.aggregator import aggregate
from gatekeep.review.models import PoolOutcome, ReviewReport, Task
from gatekeep.review.planner import plan_tasks
from gatekeep.review.render import format_for_path, trace_entries, write_trace, write_violations
from gatekeep.review.scheduler import ShutdownFlag, WorkerPool, install_signal_handlers
from gatekeep.review.worker import ReviewContext, ReviewWorker

logger = logging.getLogger(__name__)


class ReviewPlan(BaseModel):
    """What a run will review."""

    base: BaseRef
    changed_files: list[str] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class ReviewRunResult(BaseModel):
    """Everything a finished (or dry) run produced."""

    plan: ReviewPlan
    report: ReviewReport | None = Field(default=None, description="None for a dry run")
    duration_ms: int = 0

    @property
    def dry_run(self) -> bool:
        return self.report is None

    @property
    def exit_code(self) -> int:
        return 0 if self.report is None else self.report.exit_code


class ReviewRunner:
    """Runs the configured rules against a repository's change-set."""

    def __init__(
        self,
        project_root: Path,
        config: Config,
        provider: ChatProvider | None = None,
        git: GitSource | None = None,
        shutdown: ShutdownFlag | None = None,
    ) -> None:
        """Initialize review runner.

        Args:
            project_root: Root directory of the repository
            config: Loaded configuration
            provider: Model backend (optional, required unless dry-running)
            git: Git access (defaults to one rooted at project_root)
            shutdown: Stop flag (defaults to a fresh one wired to SIGINT/SIGTERM)
        """
        self.project_root = project_root
        self.config = config
        self.provider = provider
        self.git = git or GitSource(project_root)
        self.shutdown = shutdown or ShutdownFlag()

    async def plan(self, base_spec: str = "") -> ReviewPlan:
        """Resolve the base and plan the tasks.

        Raises:
            GitError: If git cannot list the change-set
        """
        base = await self.git.resolve_base(base_spec)
        changed_files = await self.git.changed_files(base)
        logger.info("Found %d changed file(s) against %s", len(changed_files), base)

        tasks = plan_tasks(
            self.config.rules, changed_files, self.config.review.max_files_per_task
        )
        logger.info("Planned %d task(s) for %d rule(s)", len(tasks), len(self.config.rules))
        return ReviewPlan(base=base, changed_files=list(changed_files), tasks=tasks)

    async def execute(
        self,
        plan: ReviewPlan,
        trace: bool = False,
        max_parallel: int | None = None,
    ) -> PoolOutcome:
        """Run every planned task through the worker pool.

        Raises:
            ValueError: If no provider is configured
        """
        if self.provider is None:
            raise ValueError("LLM provider required to run a review")
        if not plan.tasks:
            logger.info("No tasks to run")
            return PoolOutcome()

        diffs = await self.git.diffs(plan.base, tuple(plan.changed_files))
        subjects = await self.git.commit_subjects(plan.base)
        context = ReviewContext(
            root=self.project_root,
            changed_files=plan.changed_files,
            diffs=diffs,
            commit_subjects=subjects,
            whole_repository=plan.base.is_root,
            resources=self.config.review.resources,
        )
        worker = ReviewWorker(self.provider, context, trace=trace)
        pool = WorkerPool(
            worker.run,
            max_parallel=max_parallel or self.config.review.max_parallel_workers,
            shutdown=self.shutdown,
        )
        with install_signal_handlers(self.shutdown):
            return await pool.run(plan.tasks)

    async def run(
        self,
        base_spec: str = "",
        output: Path | None = None,
        trace: Path | None = None,
        dry_run: bool = False,
        max_parallel: int | None = None,
    ) -> ReviewRunResult:
        """Plan, execute, aggregate and write artifacts.

        Args:
            base_spec: Base to diff against ("" auto-detects)
            output: Violation report path (.md or .json)
            trace: Trace path (.md or .json)
            dry_run: Plan only; no model calls and no artifacts
            max_parallel: Overrides ``review.max_parallel_workers``

        Returns:
            The run result; ``exit_code`` applies the blocking/failed policy

        Raises:
            RenderError: If an artifact path has an unsupported extension or
                cannot be written
            GitError: If the change-set cannot be read
        """
        start_time = time.time()
        for path in (output, trace):
            if path is not None:
                format_for_path(path)

        plan = await self.plan(base_spec)
        if dry_run:
            return ReviewRunResult(plan=plan, duration_ms=int((time.time() - start_time) * 1000))

        outcome = await self.execute(plan, trace=trace is not None, max_parallel=max_parallel)
        report = aggregate(outcome)

        if output is not None:
            write_violations(output, report)
        if trace is not None:
            write_trace(trace, trace_entries(outcome.results))

        if report.partial:
            logger.warning(
                "Partial review: %d of %d task(s) did not run to completion",
                report.cancelled + report.not_started,
                len(plan.tasks),
            )
        if report.blocking_rules_with_violations:
            logger.error(
                "Blocking rules with violations: %s",
                ", ".join(report.blocking_rules_with_violations),
            )
        if report.failed:
            logger.error("%d task(s) failed", report.failed)

        return ReviewRunResult(
            plan=plan, report=report, duration_ms=int((time.time() - start_time) * 1000)
        )
