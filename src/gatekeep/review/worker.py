"""ReviewWorker: runs one task's conversation and packages the outcome."""

import logging
import time
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType

from gatekeep.agent.loop import AgentLoop, AgentState, CancelSignal
from gatekeep.providers.base import ChatProvider, ProviderError
from gatekeep.review.models import Task, WorkerResult, WorkerStatus
from gatekeep.review.prompts import (
    ResourceLoader,
    build_review_prompt,
    get_system_prompt,
    merge_resources,
)
from gatekeep.tools.catalog import review_registry
from gatekeep.tools.report import ReportTool

logger = logging.getLogger(__name__)


class ReviewContext:
    """Run-wide inputs shared read-only by every worker."""

    def __init__(
        self,
        root: Path,
        changed_files: Iterable[str],
        diffs: Mapping[str, str],
        commit_subjects: Iterable[str] = (),
        whole_repository: bool = False,
        resources: Iterable[str] = (),
    ) -> None:
        """Initialize review context.

        Args:
            root: Repository root
            changed_files: The change-set, in git order
            diffs: Pre-fetched diffs keyed by path
            commit_subjects: Subjects of the commits under review
            whole_repository: True when reviewing every tracked file (ROOT base)
            resources: Global resources added to every rule's resources
        """
        self.root = root
        self.changed_files = tuple(changed_files)
        self.diffs = MappingProxyType(dict(diffs))
        self.commit_subjects = tuple(commit_subjects)
        self.whole_repository = whole_repository
        self.resources = tuple(resources)


class ReviewWorker:
    """Reviews one task at a time against a shared context."""

    def __init__(
        self,
        provider: ChatProvider,
        context: ReviewContext,
        trace: bool = False,
    ) -> None:
        """Initialize review worker.

        Args:
            provider: Model backend
            context: Shared run inputs
            trace: Keep the conversation and tool catalog on each result
        """
        self.provider = provider
        self.context = context
        self.trace = trace

    async def run(self, task: Task, cancel: CancelSignal | None = None) -> WorkerResult:
        """Review one task.

        A provider failure does not raise: the task ends FAILED and keeps whatever
        violations and history it had gathered. Shutdown ends it CANCELLED the same
        way.

        Args:
            task: Task to review
            cancel: Shutdown signal

        Returns:
            The task's result
        """
        label = f"[Worker {task.worker_id}]"
        start = time.monotonic()
        logger.info(
            "%s Reviewing %d file(s) for rule '%s': %s",
            label,
            len(task.files),
            task.rule.name,
            ", ".join(task.files),
        )

        reporter = ReportTool()
        registry = review_registry(self.context.root, self.context.diffs, reporter)
        resources = await ResourceLoader(self.context.root).load(
            merge_resources(self.context.resources, task.rule.resources)
        )
        loop = AgentLoop(
            self.provider,
            registry,
            system=get_system_prompt(),
            user=build_review_prompt(
                task,
                self.context.changed_files,
                self.context.commit_subjects,
                self.context.diffs,
                resources=resources,
                whole_repository=self.context.whole_repository,
            ),
            cancel=cancel,
            label=label,
        )

        status = WorkerStatus.COMPLETED
        error: str | None = None
        final_output: str | None = None
        try:
            outcome = await loop.run()
        except ProviderError as e:
            logger.error("%s Failed reviewing rule '%s': %s", label, task.rule.name, e.message)
            status = WorkerStatus.FAILED
            error = e.message
        else:
            final_output = outcome.final_output
            if outcome.state is AgentState.CANCELLED:
                status = WorkerStatus.CANCELLED

        elapsed = time.monotonic() - start
        if status is WorkerStatus.CANCELLED:
            logger.info(
                "%s Cancelled reviewing rule '%s' (%.2fs) - returning partial results",
                label,
                task.rule.name,
                elapsed,
            )
        elif status is WorkerStatus.COMPLETED:
            logger.info("%s Done reviewing rule '%s' (%.2fs)", label, task.rule.name, elapsed)

        return WorkerResult.for_task(
            task,
            violations=list(reporter.violations),
            messages=list(loop.history) if self.trace else None,
            tools=registry.specs if self.trace else None,
            duration_ms=int(elapsed * 1000),
            status=status,
            error=error,
            final_output=final_output,
            usage=loop.usage,
        )
