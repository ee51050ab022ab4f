"""Tools offered to the reviewing model."""

from gatekeep.tools.catalog import review_registry
from gatekeep.tools.diff import DiffTool
from gatekeep.tools.fs import FileTools
from gatekeep.tools.paging import DEFAULT_NUM_CHARS, truncate_with_hint
from gatekeep.tools.report import ReportTool
from gatekeep.tools.think import think, think_tool

__all__ = [
    "DEFAULT_NUM_CHARS",
    "DiffTool",
    "FileTools",
    "ReportTool",
    "review_registry",
    "think",
    "think_tool",
    "truncate_with_hint",
]
