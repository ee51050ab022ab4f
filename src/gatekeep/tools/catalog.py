"""The tool catalog offered to every review worker."""

from collections.abc import Mapping
from pathlib import Path

from gatekeep.agent.tools import ToolRegistry
from gatekeep.tools.diff import DiffTool
from gatekeep.tools.fs import FileTools
from gatekeep.tools.report import ReportTool
from gatekeep.tools.think import think_tool


def review_registry(root: Path, diffs: Mapping[str, str], reporter: ReportTool) -> ToolRegistry:
    """Build one task's registry.

    Args:
        root: Repository root that file tools resolve paths against
        diffs: Pre-fetched diffs shared by every task
        reporter: The task's own violation accumulator
    """
    return ToolRegistry(
        [
            reporter,
            think_tool(),
            DiffTool(diffs),
            *FileTools(root).tools(),
        ]
    )
