"""Review data models.

- Task: one rule applied to one chunk of files, the unit of scheduling
- WorkerResult: what a finished task hands back, whatever way it finished
- PoolOutcome: everything the scheduler observed for one run
- ReviewReport: the aggregated verdict written to reports and the console
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from gatekeep.agent.messages import TimedMessage
from gatekeep.agent.tools import ToolSpec
from gatekeep.rules.models import Rule, Violation
from gatekeep.types import TokenUsage


class Task(BaseModel):
    """A rule plus the files one worker reviews for it."""

    worker_id: str = Field(description="Unique within a run: the task's index in the plan")
    rule: Rule
    files: tuple[str, ...] = Field(min_length=1, description="Focus files, in change-set order")

    model_config = ConfigDict(frozen=True)


class WorkerStatus(StrEnum):
    """How a task ended.

    - COMPLETED: the model gave its final answer
    - CANCELLED: shutdown was observed mid-conversation; results are partial
    - FAILED: the provider (or the worker itself) raised; results are partial
    """

    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class WorkerResult(BaseModel):
    """Outcome of one started task.

    Violations and trace are kept for every status so partial work is never lost.
    """

    worker_id: str
    rule_name: str
    rule_instruction: str
    files: list[str]
    blocking: bool = Field(description="Copied from the rule when the task was planned")
    violations: list[Violation] = Field(default_factory=list)
    messages: list[TimedMessage] | None = Field(
        default=None, description="Conversation history (trace only)"
    )
    tools: list[ToolSpec] | None = Field(default=None, description="Tool catalog (trace only)")
    tip: str | None = None
    duration_ms: int = 0
    status: WorkerStatus = WorkerStatus.COMPLETED
    error: str | None = None
    final_output: str | None = None
    usage: TokenUsage = Field(default_factory=TokenUsage)

    @classmethod
    def for_task(cls, task: Task, **fields: Any) -> "WorkerResult":
        """Start a result carrying the task's identity."""
        return cls(
            worker_id=task.worker_id,
            rule_name=task.rule.name,
            rule_instruction=task.rule.instruction,
            files=list(task.files),
            blocking=task.rule.blocking,
            tip=task.rule.tip,
            **fields,
        )


class PoolOutcome(BaseModel):
    """Everything the worker pool observed during one run."""

    results: list[WorkerResult] = Field(default_factory=list)
    not_started: int = Field(default=0, description="Tasks skipped because of shutdown")
    interrupted: bool = False
    max_in_flight: int = 0

    @property
    def started(self) -> int:
        return len(self.results)


class ReviewReport(BaseModel):
    """Aggregated result of a review run.

    ``violations_by_file`` maps file -> rule name -> violations, with files and
    rules sorted and violations ordered by line.
    """

    violations_by_file: dict[str, dict[str, list[Violation]]] = Field(default_factory=dict)
    tips_by_rule: dict[str, str] = Field(default_factory=dict)
    blocking_rules_with_violations: list[str] = Field(default_factory=list)
    non_blocking_rules_with_violations: list[str] = Field(default_factory=list)
    completed: int = 0
    cancelled: int = 0
    failed: int = 0
    not_started: int = 0
    interrupted: bool = False
    usage: TokenUsage = Field(default_factory=TokenUsage)

    @property
    def total_violations(self) -> int:
        return sum(
            len(violations)
            for by_rule in self.violations_by_file.values()
            for violations in by_rule.values()
        )

    @property
    def partial(self) -> bool:
        """True when some planned work did not run to completion."""
        return self.interrupted or self.cancelled > 0 or self.not_started > 0

    @property
    def exit_code(self) -> int:
        """1 if any blocking rule has violations or any task failed, else 0."""
        return 1 if self.blocking_rules_with_violations or self.failed else 0
