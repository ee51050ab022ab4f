"""The ``diff`` tool: serves diffs fetched once at the start of the run."""

from collections.abc import Mapping

from pydantic import BaseModel, Field

from gatekeep.agent.tools import FunctionTool
from gatekeep.git.source import should_include_diff


class DiffArgs(BaseModel):
    path: str = Field(description="File path, relative to the repository root")
    force_read: bool = Field(
        default=False,
        description=(
            "Force read files that are normally excluded. These files are usually large "
            "and not meaningful to review."
        ),
    )


class DiffTool(FunctionTool[DiffArgs]):
    """Looks up pre-fetched diffs; never calls git itself."""

    def __init__(self, diffs: Mapping[str, str]) -> None:
        super().__init__(
            name="diff",
            description="Get the git diff for a changed file.",
            args_model=DiffArgs,
            fn=self._diff,
        )
        self._diffs = diffs

    async def _diff(self, args: DiffArgs) -> str:
        if not args.force_read and not should_include_diff(args.path):
            return (
                f"Skipped '{args.path}':\n"
                "File is excluded.\n"
                "These files are usually large and not meaningful to review.\n"
                "Use force_read=true to override if necessary."
            )
        return self._diffs.get(args.path, f"No diff available for file: {args.path}")
