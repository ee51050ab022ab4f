"""Read-only file system tools: ``read``, ``ls``, ``glob`` and ``grep``.

Relative paths resolve against the repository root. Blocking I/O runs on a worker
thread. Errors are returned as text, never raised, so the model can correct
itself.
"""

import asyncio
import os
import re
from collections.abc import Iterator
from pathlib import Path

from pydantic import BaseModel, Field

from gatekeep.agent.tools import FunctionTool, Tool
from gatekeep.review.globs import GlobSet, InvalidGlobError
from gatekeep.tools.paging import DEFAULT_NUM_CHARS, truncate_with_hint

MAX_GLOB_DEPTH = 20
MAX_GLOB_MATCHES = 1000
SKIPPED_DIRS = frozenset({".git"})


class PagingArgs(BaseModel):
    start_char: int = Field(default=0, ge=0, description="Offset of the first character to return")
    num_chars: int = Field(
        default=DEFAULT_NUM_CHARS, ge=1, description="Maximum number of characters to return"
    )


class ReadArgs(PagingArgs):
    path: str = Field(description="File path")


class LsArgs(PagingArgs):
    path: str = Field(default=".", description="Directory path")
    depth: int = Field(default=0, ge=0, description="How many levels to recurse (0 = no recursion)")


class GlobArgs(PagingArgs):
    pattern: str = Field(description="Glob pattern, e.g. 'src/**/*.py'")
    path: str = Field(default=".", description="Directory to search in")


class GrepArgs(PagingArgs):
    pattern: str = Field(description="Regular expression to search for")
    path: str = Field(default=".", description="File or directory to search in")
    case_sensitive: bool = Field(default=False, description="Match case exactly")
    glob: str | None = Field(default=None, description="Only search files matching this glob")


class FileTools:
    """File tools bound to one repository root."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def tools(self) -> list[Tool]:
        return [
            FunctionTool("read", "Read a text file.", ReadArgs, self.read),
            FunctionTool(
                "ls",
                "List a directory; 'd' marks directories and 'f' files.",
                LsArgs,
                self.ls,
            ),
            FunctionTool(
                "glob",
                "Find files whose path matches a glob pattern.",
                GlobArgs,
                self.glob,
            ),
            FunctionTool(
                "grep",
                "Search file contents with a regular expression. "
                "Prints 'path:line:text' for directories and 'line:text' for a single file.",
                GrepArgs,
                self.grep,
            ),
        ]

    def _resolve(self, path: str) -> Path:
        return self.root / Path(path).expanduser()

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()

    async def read(self, args: ReadArgs) -> str:
        try:
            content = await asyncio.to_thread(
                self._resolve(args.path).read_text, encoding="utf-8", errors="replace"
            )
        except OSError as e:
            return f"Error reading file: {e}"
        return truncate_with_hint(content, args.start_char, args.num_chars)

    async def ls(self, args: LsArgs) -> str:
        try:
            items = await asyncio.to_thread(self._list, self._resolve(args.path), args.depth)
        except OSError as e:
            return f"Error listing directory: {e}"
        return truncate_with_hint("\n".join(items), args.start_char, args.num_chars)

    def _list(self, directory: Path, depth: int, indent: str = "") -> list[str]:
        items: list[str] = []
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            is_dir = entry.is_dir()
            items.append(f"{indent}{'d' if is_dir else 'f'} {entry.name}")
            if is_dir and depth > 0:
                items.extend(self._list(entry, depth - 1, indent + "  "))
        return items

    async def glob(self, args: GlobArgs) -> str:
        try:
            globs = GlobSet([args.pattern], literal_separator=True)
        except InvalidGlobError as e:
            return e.message
        base = self._resolve(args.path)
        try:
            matches = await asyncio.to_thread(self._glob, base, globs)
        except OSError as e:
            return f"Error searching: {e}"
        return truncate_with_hint("\n".join(matches), args.start_char, args.num_chars)

    def _glob(self, base: Path, globs: GlobSet) -> list[str]:
        if not base.is_dir():
            raise NotADirectoryError(f"Not a directory: {base}")
        matches: list[str] = []
        for path in walk_files(base, MAX_GLOB_DEPTH):
            relative = self._relative(path)
            if globs.matches(relative) or globs.matches(path.relative_to(base).as_posix()):
                matches.append(relative)
                if len(matches) >= MAX_GLOB_MATCHES:
                    break
        return matches

    async def grep(self, args: GrepArgs) -> str:
        flags = 0 if args.case_sensitive else re.IGNORECASE
        try:
            regex = re.compile(args.pattern, flags)
        except re.error as e:
            return f"Invalid regex pattern: {e}"
        globs = None
        if args.glob:
            try:
                globs = GlobSet([args.glob], literal_separator=True)
            except InvalidGlobError as e:
                return e.message

        target = self._resolve(args.path)
        try:
            lines = await asyncio.to_thread(self._grep, target, regex, globs)
        except OSError as e:
            return f"Grep error: {e}"
        return truncate_with_hint("\n".join(lines), args.start_char, args.num_chars)

    def _grep(self, target: Path, regex: re.Pattern[str], globs: GlobSet | None) -> list[str]:
        if not target.exists():
            raise FileNotFoundError(f"No such file or directory: {target}")
        if target.is_file():
            return [f"{number}:{line}" for number, line in _search(target, regex)]

        lines: list[str] = []
        for path in walk_files(target, MAX_GLOB_DEPTH):
            relative = self._relative(path)
            if globs is not None and not globs.matches(relative):
                continue
            try:
                lines.extend(f"{relative}:{number}:{line}" for number, line in _search(path, regex))
            except OSError:
                continue
        return lines


def _search(path: Path, regex: re.Pattern[str]) -> list[tuple[int, str]]:
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return []
    return [
        (number, line.rstrip())
        for number, line in enumerate(text.splitlines(), start=1)
        if regex.search(line)
    ]


def walk_files(base: Path, max_depth: int) -> Iterator[Path]:
    base_depth = len(base.parts)
    for dirpath, dirnames, filenames in os.walk(base):
        current = Path(dirpath)
        dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRS)
        if len(current.parts) - base_depth >= max_depth:
            dirnames.clear()
        for name in sorted(filenames):
            yield current / name
