"""The ``report`` tool: how the model hands violations back to its worker."""

from pydantic import BaseModel, Field

from gatekeep.agent.tools import FunctionTool
from gatekeep.rules.models import Violation


class ReportArgs(BaseModel):
    violations: list[Violation] = Field(description="Violations found in the focused files")


class ReportTool(FunctionTool[ReportArgs]):
    """Collects reported violations into a task-local list.

    Each worker owns its own ReportTool, so ``violations`` only ever holds the
    findings of one task, including a task that is later cancelled or fails.
    """

    def __init__(self) -> None:
        super().__init__(
            name="report",
            description="Report rule violations found during review. MUST call 'think' first.",
            args_model=ReportArgs,
            fn=self._report,
        )
        self.violations: list[Violation] = []

    async def _report(self, args: ReportArgs) -> str:
        if not args.violations:
            return "Error: 'violations' is empty. Only call report when you found violations."
        self.violations.extend(args.violations)
        return "OK"
