"""Tests for review.render: violation reports and traces."""

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from gatekeep.agent.messages import (
    AssistantMessage,
    CustomMessage,
    SystemMessage,
    TimedMessage,
    ToolCall,
    ToolMessage,
)
from gatekeep.agent.tools import ToolSpec
from gatekeep.review.models import ReviewReport, Task, WorkerResult, WorkerStatus
from gatekeep.review.render import (
    NO_VIOLATIONS,
    ArtifactFormat,
    RenderError,
    TraceEntry,
    format_for_path,
    format_trace_markdown,
    format_violations,
    get_fence_backticks,
    render_file,
    trace_entries,
    write_trace,
    write_violations,
)
from gatekeep.rules.models import Violation

STAMP = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)


@pytest.fixture
def report() -> ReviewReport:
    return ReviewReport(
        violations_by_file={
            "src/a.py": {
                "No magic numbers": [
                    Violation(file="src/a.py", detail="42 unexplained", start_line=3, end_line=3),
                    Violation(file="src/a.py", detail="7 unexplained", start_line=8, end_line=9),
                ]
            }
        },
        tips_by_rule={"No magic numbers": "Name your constants."},
        blocking_rules_with_violations=["No magic numbers"],
    )


@pytest.fixture
def entry() -> TraceEntry:
    return TraceEntry(
        worker_id="2",
        rule_name="No magic numbers",
        rule_instruction="Reject unexplained literals.",
        files=["src/a.py"],
        status=WorkerStatus.CANCELLED,
        elapsed_secs=1.25,
        tools=[ToolSpec(name="think", description="Think.")],
        messages=[
            TimedMessage(message=SystemMessage(content="sys"), timestamp=STAMP),
            TimedMessage(
                message=AssistantMessage(
                    tool_calls=[
                        ToolCall(id="c1", name="think", arguments='{"reasoning": "Looks bad."}'),
                        ToolCall(id="c2", name="read", arguments='{"path": "src/a.py"}'),
                    ]
                ),
                timestamp=STAMP,
                elapsed_secs=0.5,
            ),
            TimedMessage(
                message=ToolMessage(tool_call_id="c2", name="read", content="```\ncode\n```"),
                timestamp=STAMP,
            ),
            TimedMessage(message=AssistantMessage(content=""), timestamp=STAMP),
            TimedMessage(
                message=CustomMessage(name="nudge", body={"content": "Reply please."}),
                timestamp=STAMP,
            ),
        ],
    )


class TestFormatForPath:
    """Test extension dispatch."""

    def test_known_extensions(self) -> None:
        """.json and .md (any case) are supported."""
        assert format_for_path(Path("out.json")) is ArtifactFormat.JSON
        assert format_for_path(Path("out.MD")) is ArtifactFormat.MARKDOWN

    def test_unknown_extension(self) -> None:
        """Anything else is a RenderError."""
        with pytest.raises(RenderError, match="must end with .md or .json"):
            format_for_path(Path("out.txt"))


class TestViolationsMarkdown:
    """Test format_violations."""

    def test_layout(self, report: ReviewReport) -> None:
        """File heading, rule heading, line ranges, then the tip."""
        text = format_violations(report.violations_by_file, report.tips_by_rule)
        assert text == (
            "# Violations in src/a.py\n\n"
            "## Rule: No magic numbers\n\n"
            "- Lines 3-3: 42 unexplained\n"
            "- Lines 8-9: 7 unexplained\n"
            "\n**Tip:** Name your constants."
        )

    def test_empty(self) -> None:
        """No violations renders the fixed message."""
        assert format_violations({}, {"r": "tip"}) == NO_VIOLATIONS


class TestFenceBackticks:
    """Test get_fence_backticks."""

    @pytest.mark.parametrize(
        ("content", "expected"),
        [("plain", "```"), ("```\nx\n```", "````"), ("a\n`````\nb", "``````")],
    )
    def test_longer_than_any_fence(self, content: str, expected: str) -> None:
        """The fence outgrows any all-backtick line."""
        assert get_fence_backticks(content) == expected


class TestTraceMarkdown:
    """Test format_trace_markdown."""

    def test_sections(self, entry: TraceEntry) -> None:
        """Header, status, rule, files, tools and messages are rendered."""
        text = format_trace_markdown([entry])

        assert text.startswith("# Worker: 2 (Elapsed: 1.25s)\n\n**Status:** cancelled\n\n")
        assert "> Reject unexplained literals." in text
        assert "## Focused Files\n\n- src/a.py\n" in text
        assert "```yaml\n- name: think\n  description: Think." in text
        assert "### 1. system @ 2026-01-02 03:04:05 (+0.00s)" in text
        assert "### 2. assistant @ 2026-01-02 03:04:05 (+0.50s)" in text
        assert text.rstrip().endswith("---")

    def test_tool_calls(self, entry: TraceEntry) -> None:
        """think is quoted; other calls show YAML arguments."""
        text = format_trace_markdown([entry])
        assert "#### Tool Calls" in text
        assert "- **think**\n\n> Looks bad." in text
        assert "- **read**\n\n```yaml\npath: src/a.py\n```" in text

    def test_tool_result_fenced_safely(self, entry: TraceEntry) -> None:
        """Tool output containing a fence gets a longer one."""
        text = format_trace_markdown([entry])
        assert "Result of `read` (c2)" in text
        assert "````\n```\ncode\n```\n````" in text

    def test_empty_and_custom_messages(self, entry: TraceEntry) -> None:
        """Empty replies are marked and custom messages use their name."""
        text = format_trace_markdown([entry])
        assert "Empty message." in text
        assert "### 5. nudge @" in text
        assert "> Reply please." in text

    def test_completed_has_no_status_line(self, entry: TraceEntry) -> None:
        """Completed tasks omit the status line."""
        completed = entry.model_copy(update={"status": WorkerStatus.COMPLETED})
        assert "**Status:**" not in format_trace_markdown([completed])


class TestTraceEntries:
    """Test trace_entries."""

    def test_only_traced_results(self, make_rule) -> None:
        """Results without history are skipped."""
        task = Task(worker_id="0", rule=make_rule(), files=("a.py",))
        traced = WorkerResult.for_task(task, messages=[], duration_ms=1500)
        untraced = WorkerResult.for_task(task)

        entries = trace_entries([traced, untraced])

        assert len(entries) == 1
        assert entries[0].elapsed_secs == 1.5


class TestArtifacts:
    """Test writing and re-rendering artifacts."""

    def test_write_violations_json(self, tmp_path: Path, report: ReviewReport) -> None:
        """The JSON report is versioned and renders back to the same Markdown."""
        path = tmp_path / "violations.json"
        write_violations(path, report)

        data = json.loads(path.read_text())
        assert data["version"] == "1"
        assert data["tips"] == {"No magic numbers": "Name your constants."}
        assert render_file(path) == format_violations(
            report.violations_by_file, report.tips_by_rule
        )

    def test_write_violations_markdown(self, tmp_path: Path, report: ReviewReport) -> None:
        """A .md path gets Markdown directly."""
        path = tmp_path / "violations.md"
        write_violations(path, report)
        assert path.read_text().startswith("# Violations in src/a.py")

    def test_trace_json_renders(self, tmp_path: Path, entry: TraceEntry) -> None:
        """A JSON trace renders to the same Markdown as a direct .md trace."""
        json_path = tmp_path / "trace.json"
        md_path = tmp_path / "trace.md"
        write_trace(json_path, [entry])
        write_trace(md_path, [entry])

        assert render_file(json_path) == md_path.read_text()

    def test_render_rejects_other_versions(self, tmp_path: Path) -> None:
        """Unknown schema versions are refused."""
        path = tmp_path / "old.json"
        path.write_text(json.dumps({"version": "0", "violations": {}, "tips": {}}))
        with pytest.raises(RenderError, match="schema version 0"):
            render_file(path)

    def test_render_rejects_garbage(self, tmp_path: Path) -> None:
        """Non-JSON input is a RenderError."""
        path = tmp_path / "bad.json"
        path.write_text("not json")
        with pytest.raises(RenderError, match="Cannot read"):
            render_file(path)

    def test_write_failure(self, tmp_path: Path, report: ReviewReport) -> None:
        """Unwritable paths raise RenderError."""
        with pytest.raises(RenderError, match="Failed to write"):
            write_violations(tmp_path / "missing" / "v.json", report)
