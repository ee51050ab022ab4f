"""Rule and Violation models.

A Rule is what the user configures in ``gatekeep.toml``; a Violation is what the
model reports back through the ``report`` tool. Both are immutable once created.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator


def default_scope() -> list[str]:
    """Default scope: every file in the change-set."""
    return ["**/*"]


class Rule(BaseModel):
    """A custom review rule checked by the model against a subset of changed files."""

    name: str = Field(description="Human-readable rule name, never shown to the model")
    description: str = Field(
        default="", description="Human-readable description, never shown to the model"
    )
    instruction: str = Field(description="Instructions telling the model how to check the rule")
    scope: list[str] = Field(
        default_factory=default_scope,
        description="Glob patterns selecting the files this rule applies to",
    )
    exclude: list[str] = Field(
        default_factory=list, description="Glob patterns removing files from the scope"
    )
    max_files_per_task: int | None = Field(
        default=None,
        ge=1,
        description=(
            "Per-rule override of the global chunk size. Raise it for cheap rules that "
            "only look at changed files, lower it for rules that read many other files."
        ),
    )
    blocking: bool = Field(
        default=True, description="Violations of a blocking rule make the run exit 1"
    )
    tip: str | None = Field(
        default=None, description="Remediation hint for whoever fixes the violations"
    )
    resources: list[str] = Field(
        default_factory=list,
        description="Extra context for the model: file://, skill:// or sh:// URIs",
    )

    model_config = ConfigDict(frozen=True)


class Violation(BaseModel):
    """A reported rule breach with a 1-indexed, inclusive line range."""

    file: str = Field(description="File path, relative to the repository root")
    detail: str = Field(description="What is wrong and why it breaks the rule")
    start_line: int = Field(ge=1, description="First offending line (1-indexed)")
    end_line: int = Field(ge=1, description="Last offending line (inclusive)")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_line_range(self) -> "Violation":
        if self.start_line > self.end_line:
            raise ValueError(
                f"start_line ({self.start_line}) must not exceed end_line ({self.end_line})"
            )
        return self
