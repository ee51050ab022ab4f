"""GitSource: subprocess-based access to the change-set under review.

Every git command runs through ``subprocess.run`` on a worker thread
(``asyncio.to_thread``) so the event loop is never blocked.
"""

import asyncio
import logging
import subprocess
from enum import StrEnum
from pathlib import Path
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

GIT_EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"
ROOT_SPEC = "ROOT"

_EXCLUDED_SUFFIXES = (".lock", "-lock.json")
_EXCLUDED_FRAGMENTS = (
    "lock.",
    "generated",
    ".min.",
    "/dist/",
    "/build/",
    "/target/",
    "/.next/",
    "/node_modules/",
)


class GitError(Exception):
    """Raised when a git command cannot be run or fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class BaseKind(StrEnum):
    ROOT = "root"
    COMMIT = "commit"


class BaseRef(BaseModel):
    """What the change-set is diffed against.

    ROOT means the whole repository: every tracked file is "changed" and diffs are
    taken against git's empty tree.
    """

    kind: BaseKind
    ref: str | None = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def root(cls) -> "BaseRef":
        return cls(kind=BaseKind.ROOT)

    @classmethod
    def commit(cls, ref: str) -> "BaseRef":
        return cls(kind=BaseKind.COMMIT, ref=ref)

    @property
    def is_root(self) -> bool:
        return self.kind is BaseKind.ROOT

    @property
    def diff_base(self) -> str:
        return GIT_EMPTY_TREE if self.ref is None else self.ref

    def __str__(self) -> str:
        return ROOT_SPEC if self.ref is None else self.ref


def parse_base(spec: str) -> BaseRef:
    """Parse an explicit base spec.

    ``ROOT`` selects the whole repository, ``^...``/``~...`` are relative to HEAD
    (``^`` -> ``HEAD^``), anything else is used as a git ref verbatim.
    """
    if spec == ROOT_SPEC:
        return BaseRef.root()
    if spec.startswith(("^", "~")):
        return BaseRef.commit(f"HEAD{spec}")
    return BaseRef.commit(spec)


def should_include_diff(path: str) -> bool:
    """False for lock files, minified bundles and build output not worth reviewing."""
    lowered = path.lower()
    if lowered.endswith(_EXCLUDED_SUFFIXES):
        return False
    return not any(fragment in lowered for fragment in _EXCLUDED_FRAGMENTS)


class GitSource:
    """Read-only view of one repository's change-set."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root

    def _run(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        """Run a git command, raising GitError if git cannot be executed."""
        cmd = ["git", *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            return subprocess.run(
                cmd,
                cwd=self.repo_root,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise GitError(f"Could not run git: {exc}") from exc

    def _output(self, args: list[str]) -> str:
        """Run a git command and return stdout, raising GitError on a non-zero exit."""
        result = self._run(args)
        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit code {result.returncode}"
            raise GitError(f"git {' '.join(args)} failed: {detail}")
        return result.stdout

    async def resolve_base(self, spec: str = "") -> BaseRef:
        """Resolve a user-supplied base spec.

        An empty spec auto-detects: uncommitted changes against HEAD review the
        working tree (``HEAD``), otherwise the last commit (``HEAD^``).
        """
        if spec:
            return parse_base(spec)

        result = await asyncio.to_thread(self._run, ["diff", "--quiet", "HEAD"])
        detected = "HEAD" if result.returncode != 0 else "^"
        logger.debug("Auto-detected base: %s", detected)
        return parse_base(detected)

    async def changed_files(self, base: BaseRef) -> tuple[str, ...]:
        """Paths changed since ``base`` (every tracked file for ROOT)."""
        args = ["ls-files"] if base.is_root else ["diff", "--name-only", base.diff_base]
        stdout = await asyncio.to_thread(self._output, args)
        return tuple(line for line in stdout.splitlines() if line)

    def _diff(self, base: BaseRef, path: str) -> str | None:
        result = self._run(["diff", base.diff_base, "--", path])
        if result.returncode != 0:
            logger.debug("No diff for %s: %s", path, result.stderr.strip())
            return None
        return result.stdout or None

    async def diff(self, base: BaseRef, path: str) -> str | None:
        """Unified diff of one file, or None when git has nothing for it."""
        return await asyncio.to_thread(self._diff, base, path)

    async def diffs(self, base: BaseRef, paths: tuple[str, ...]) -> MappingProxyType[str, str]:
        """Diffs for every path that has one, as a read-only mapping."""
        results = await asyncio.gather(*(self.diff(base, path) for path in paths))
        return MappingProxyType(
            {path: diff for path, diff in zip(paths, results, strict=True) if diff is not None}
        )

    async def commit_subjects(self, base: BaseRef) -> list[str]:
        """Subjects of the commits in ``base..HEAD``; empty for ROOT."""
        if base.is_root:
            return []
        stdout = await asyncio.to_thread(
            self._output, ["log", "--format=%s", f"{base.diff_base}..HEAD"]
        )
        return [line for line in stdout.splitlines() if line.strip()]
