"""Report and trace rendering.

Both artifacts come in two formats picked by file extension: ``.json`` (a
versioned schema that ``gatekeep render`` can turn back into Markdown) and
``.md``.
"""

import json
import logging
from collections.abc import Iterable, Mapping
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from gatekeep.agent.messages import (
    AssistantMessage,
    CustomMessage,
    TimedMessage,
    ToolCall,
    ToolMessage,
)
from gatekeep.agent.tools import ToolSpec
from gatekeep.review.models import ReviewReport, WorkerResult, WorkerStatus
from gatekeep.rules.models import Violation

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1"
MIN_FENCE_BACKTICKS = 3
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
NO_VIOLATIONS = "No violations found"


class RenderError(Exception):
    """An artifact path or file could not be handled."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ArtifactFormat(StrEnum):
    JSON = "json"
    MARKDOWN = "md"


def format_for_path(path: Path) -> ArtifactFormat:
    """Pick the artifact format from a file extension.

    Raises:
        RenderError: If the extension is neither .json nor .md
    """
    suffix = path.suffix.lower()
    if suffix == ".json":
        return ArtifactFormat.JSON
    if suffix == ".md":
        return ArtifactFormat.MARKDOWN
    raise RenderError(f"File must end with .md or .json: {path}")


class ViolationFile(BaseModel):
    """On-disk schema of a JSON violation report."""

    version: str = SCHEMA_VERSION
    violations: dict[str, dict[str, list[Violation]]] = Field(default_factory=dict)
    tips: dict[str, str] = Field(default_factory=dict)


class TraceEntry(BaseModel):
    """One task's conversation, as written to a trace file."""

    worker_id: str
    rule_name: str
    rule_instruction: str
    files: list[str]
    status: WorkerStatus = WorkerStatus.COMPLETED
    elapsed_secs: float = 0.0
    tools: list[ToolSpec] = Field(default_factory=list)
    messages: list[TimedMessage] = Field(default_factory=list)


class TraceFile(BaseModel):
    """On-disk schema of a JSON trace."""

    version: str = SCHEMA_VERSION
    entries: list[TraceEntry] = Field(default_factory=list)


def trace_entries(results: Iterable[WorkerResult]) -> list[TraceEntry]:
    """Trace entries for every result that kept its conversation."""
    return [
        TraceEntry(
            worker_id=result.worker_id,
            rule_name=result.rule_name,
            rule_instruction=result.rule_instruction,
            files=result.files,
            status=result.status,
            elapsed_secs=result.duration_ms / 1000,
            tools=result.tools or [],
            messages=result.messages,
        )
        for result in results
        if result.messages is not None
    ]


# --- Violations ---


def format_violations(
    violations_by_file: Mapping[str, Mapping[str, list[Violation]]],
    tips_by_rule: Mapping[str, str],
) -> str:
    """Render grouped violations as Markdown."""
    if not violations_by_file:
        return NO_VIOLATIONS

    output = []
    for file, by_rule in violations_by_file.items():
        output.append(f"# Violations in {file}\n\n")
        for rule, violations in by_rule.items():
            output.append(format_rule_violations(rule, violations, tips_by_rule.get(rule)))
    return "".join(output).rstrip()


def format_rule_violations(rule: str, violations: list[Violation], tip: str | None) -> str:
    output = f"## Rule: {rule}\n\n"
    output += "".join(
        f"- Lines {v.start_line}-{v.end_line}: {v.detail}\n" for v in violations
    )
    if tip and tip.strip():
        output += f"\n**Tip:** {tip.strip()}\n"
    return output + "\n"


def violation_file(report: ReviewReport) -> ViolationFile:
    return ViolationFile(violations=report.violations_by_file, tips=report.tips_by_rule)


def write_violations(path: Path, report: ReviewReport) -> None:
    """Write the violation report in the format the extension asks for.

    Raises:
        RenderError: On an unsupported extension or a write failure
    """
    if format_for_path(path) is ArtifactFormat.JSON:
        content = violation_file(report).model_dump_json(indent=2)
    else:
        content = format_violations(report.violations_by_file, report.tips_by_rule)
    _write(path, content)
    logger.info("Results written to %s", path)


# --- Trace ---


def get_fence_backticks(content: str) -> str:
    """A code fence longer than any all-backtick line in ``content`` (at least 3)."""
    longest = max(
        (len(line) for line in content.splitlines() if line and set(line) == {"`"}),
        default=0,
    )
    return "`" * max(longest + 1, MIN_FENCE_BACKTICKS)


def wrap_in_quote(content: str) -> str:
    return "\n".join(f"> {line}" for line in content.strip().splitlines())


def format_trace_markdown(entries: Iterable[TraceEntry]) -> str:
    """Render trace entries as Markdown, one section per task."""
    output = []
    for entry in entries:
        output.append(f"# Worker: {entry.worker_id} (Elapsed: {entry.elapsed_secs:.2f}s)\n\n")
        if entry.status is not WorkerStatus.COMPLETED:
            output.append(f"**Status:** {entry.status}\n\n")
        output.append(
            f"## Rule: {entry.rule_name}\n\n<details>\n<summary>Show rule</summary>\n\n"
            f"{wrap_in_quote(entry.rule_instruction)}\n\n</details>\n\n"
        )
        output.append("## Focused Files\n\n")
        output.append("".join(f"- {file}\n" for file in entry.files) + "\n")
        output.append(_format_tools(entry.tools))
        output.append("## Messages\n\n")
        for index, message in enumerate(entry.messages, start=1):
            output.append(_format_message(message, index))
        output.append("---\n\n")
    return "".join(output)


def _format_tools(tools: list[ToolSpec]) -> str:
    dumped = yaml.safe_dump(
        [tool.model_dump() for tool in tools], sort_keys=False, allow_unicode=True
    )
    return (
        "## Tools\n\n<details>\n<summary>Show tools</summary>\n\n"
        f"```yaml\n{dumped.strip()}\n```\n\n</details>\n\n"
    )


def _format_tool_call(call: ToolCall) -> str:
    try:
        args: Any = call.parse_arguments()
    except ValueError:
        return f"- **{call.name}**\n\n```json\n{call.arguments}\n```\n\n"

    if call.name == "think" and isinstance(args.get("reasoning"), str):
        return f"- **{call.name}**\n\n{wrap_in_quote(args['reasoning'])}\n\n"
    dumped = yaml.safe_dump(args, sort_keys=False, allow_unicode=True)
    return f"- **{call.name}**\n\n```yaml\n{dumped.strip()}\n```\n\n"


def _format_content(role: str, content: str) -> str:
    if role == "tool":
        fence = get_fence_backticks(content)
        return f"{fence}\n{content}\n{fence}\n\n"
    return f"{wrap_in_quote(content)}\n\n"


def _format_message(entry: TimedMessage, index: int) -> str:
    message = entry.message
    role = message.name if isinstance(message, CustomMessage) else message.role
    content = message.content
    tool_calls = message.tool_calls if isinstance(message, AssistantMessage) else []

    header = (
        f"### {index}. {role} @ {entry.timestamp.strftime(TIMESTAMP_FORMAT)} "
        f"(+{entry.elapsed_secs:.2f}s)\n\n"
    )
    output = header
    if isinstance(message, ToolMessage):
        output += f"Result of `{message.name}` ({message.tool_call_id})\n\n"

    if content:
        if role == "assistant":
            output += _format_content(role, content)
        else:
            output += (
                "<details>\n<summary>Show content</summary>\n\n"
                f"{_format_content(role, content)}</details>\n\n"
            )
    elif not tool_calls:
        output += "Empty message.\n\n"

    if tool_calls:
        output += "#### Tool Calls\n\n"
        output += "".join(_format_tool_call(call) for call in tool_calls)
    return output


def write_trace(path: Path, entries: list[TraceEntry]) -> None:
    """Write the trace in the format the extension asks for.

    Raises:
        RenderError: On an unsupported extension or a write failure
    """
    if format_for_path(path) is ArtifactFormat.JSON:
        content = TraceFile(entries=entries).model_dump_json(indent=2)
    else:
        content = format_trace_markdown(entries)
    _write(path, content)
    logger.info("Trace written to %s", path)


# --- Files ---


def _write(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise RenderError(f"Failed to write {path}: {e}") from e


def render_file(path: Path) -> str:
    """Render a JSON violation report or trace back into Markdown.

    Raises:
        RenderError: If the file cannot be read or matches neither schema
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise RenderError(f"Cannot read {path}: {e}") from e
    if not isinstance(data, dict):
        raise RenderError(f"{path} is not a gatekeep report or trace")

    try:
        if "entries" in data:
            trace = TraceFile.model_validate(data)
            _check_version(trace.version, path)
            return format_trace_markdown(trace.entries)
        report = ViolationFile.model_validate(data)
    except ValidationError as e:
        raise RenderError(f"{path} is not a valid gatekeep file:\n{e}") from e
    _check_version(report.version, path)
    return format_violations(report.violations, report.tips)


def _check_version(version: str, path: Path) -> None:
    if version != SCHEMA_VERSION:
        raise RenderError(
            f"{path} uses schema version {version}, this gatekeep reads version {SCHEMA_VERSION}"
        )
