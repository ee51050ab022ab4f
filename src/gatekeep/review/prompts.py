"""Review prompts and resource loading.

The system prompt fixes the workflow (read the diffs, gather context, think, then
report). The user message carries everything task-specific: commit subjects, the
file lists, the rule, pre-fetched diffs and any configured resources.
"""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import yaml

from gatekeep.git.source import should_include_diff
from gatekeep.review.globs import GlobSet, InvalidGlobError
from gatekeep.review.models import Task
from gatekeep.tools.fs import MAX_GLOB_DEPTH, walk_files

logger = logging.getLogger(__name__)

FILE_SCHEME = "file://"
SKILL_SCHEME = "skill://"
SHELL_SCHEME = "sh://"
_GLOB_CHARS = "*?[{\\"


def get_system_prompt() -> str:
    """Get system prompt for a review worker.

    Returns:
        System prompt string
    """
    return """You are a code reviewer. \
Your task is to review code changes against a specific rule.
Focus only on the files provided and only check for violations of the given rule.
You can read related files if needed, but only report issues related to the provided files \
and rule.

Workflow:
1. Review the provided diffs to understand what changed
2. Read other related diffs or files if needed for context
3. Use the 'think' tool to reason about whether the changes violate the rule
4. Use the 'report' tool to report all violations found, then exit without summary"""


def build_review_prompt(
    task: Task,
    changed_files: Sequence[str],
    commit_subjects: Sequence[str],
    diffs: Mapping[str, str],
    resources: str = "",
    whole_repository: bool = False,
) -> str:
    """Build the user message for one task.

    Args:
        task: The task under review
        changed_files: Every file in the change-set
        commit_subjects: Subjects of the commits under review
        diffs: Pre-fetched diffs, keyed by path
        resources: Text of the loaded resources
        whole_repository: True when the base is ROOT (no commits, no change list)

    Returns:
        Review prompt string
    """
    focus = list(task.files)
    sections: list[str] = []

    if commit_subjects and not whole_repository:
        sections.append("Commit messages:\n\n" + "\n".join(commit_subjects))

    if focus == list(changed_files):
        if not whole_repository:
            sections.append("Changed files:\n\n" + _bullets(focus))
    else:
        if not whole_repository:
            sections.append("All changed files:\n\n" + _bullets(changed_files))
        sections.append("Focus on these files:\n\n" + _bullets(focus))
        sections.append("Note: For most cases, only read the focused files.")

    sections.append(f"Rule:\n\n<rule>\n\n{task.rule.instruction.strip()}\n\n</rule>")

    diff_section = build_diffs_section(focus, diffs)
    if diff_section:
        sections.append(diff_section)

    prompt = "\n\n".join(sections) + "\n\n"
    if resources:
        prompt += resources
    return prompt


def build_diffs_section(files: Sequence[str], diffs: Mapping[str, str]) -> str:
    """Inline the diffs of focus files so the model needn't call the diff tool."""
    blocks = [
        f"```diff\n{diffs[path]}\n```"
        for path in files
        if should_include_diff(path) and path in diffs
    ]
    if not blocks:
        return ""
    return "Here are diffs of focused files (no need to call diff tool on them):\n\n" + (
        "\n\n".join(blocks)
    )


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def merge_resources(global_resources: Sequence[str], rule_resources: Sequence[str]) -> list[str]:
    """Global plus rule resources, sorted and de-duplicated."""
    return sorted(set(global_resources) | set(rule_resources))


def resolve_resource_path(pattern: str, root: Path) -> tuple[Path, str]:
    """Split a resource pattern into a search base and a glob relative to it.

    ``~/x`` searches the home directory, ``/x`` the file system root, anything
    else the repository root. Leading literal segments move into the base so the
    walk starts as deep as possible: ``docs/**/*.md`` -> (root/docs, ``**/*.md``).
    """
    if pattern.startswith("~/"):
        base, glob = Path.home(), pattern[2:]
    elif pattern.startswith("/"):
        base, glob = Path("/"), pattern[1:]
    else:
        base, glob = root, pattern

    segments = glob.split("/")
    while len(segments) > 1 and not any(ch in segments[0] for ch in _GLOB_CHARS):
        base = base / segments.pop(0)
    return base, "/".join(segments)


def parse_front_matter(text: str) -> dict[str, Any]:
    """Parse a leading ``---`` YAML block; empty when there is none.

    Raises:
        yaml.YAMLError: If the block is not valid YAML
    """
    lines = text.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}
    for index, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            data = yaml.safe_load("\n".join(lines[1:index]))
            return data if isinstance(data, dict) else {}
    return {}


class ResourceLoader:
    """Loads ``file://``, ``skill://`` and ``sh://`` resources as prompt text.

    Failures are logged and the resource is skipped; loading never raises.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    async def load(self, resources: Sequence[str]) -> str:
        seen: set[Path] = set()
        chunks: list[str] = []
        for resource in resources:
            if resource.startswith(FILE_SCHEME):
                chunks.extend(
                    await asyncio.to_thread(
                        self._load_files, resource.removeprefix(FILE_SCHEME), seen
                    )
                )
            elif resource.startswith(SKILL_SCHEME):
                chunks.extend(
                    await asyncio.to_thread(
                        self._load_skills, resource.removeprefix(SKILL_SCHEME), seen
                    )
                )
            elif resource.startswith(SHELL_SCHEME):
                output = await self._run_shell(resource.removeprefix(SHELL_SCHEME))
                if output is not None:
                    chunks.append(f"\n--- {resource} ---\n{output}\n")
            else:
                logger.warning("Unknown resource type: %s", resource)
        return "".join(chunks)

    def _matches(self, pattern: str) -> list[Path]:
        base, glob = resolve_resource_path(pattern, self.root)
        try:
            globs = GlobSet([glob])
        except InvalidGlobError as e:
            logger.warning("Skipping resource: %s", e.message)
            return []
        if not base.is_dir():
            logger.warning("Skipping resource %r: %s is not a directory", pattern, base)
            return []
        return [
            path
            for path in walk_files(base, MAX_GLOB_DEPTH)
            if globs.matches(path.relative_to(base).as_posix())
        ]

    def _load_files(self, pattern: str, seen: set[Path]) -> list[str]:
        chunks = []
        for path in self._matches(pattern):
            if path in seen:
                continue
            seen.add(path)
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Failed to read file %s: %s", path, e)
                continue
            chunks.append(f"\n--- {self._display(path)} ---\n{text}\n")
        return chunks

    def _load_skills(self, pattern: str, seen: set[Path]) -> list[str]:
        chunks = []
        for path in self._matches(pattern):
            if path in seen or path.suffix != ".md":
                continue
            seen.add(path)
            try:
                meta = parse_front_matter(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
                logger.warning("Failed to load skill %s: %s", path, e)
                continue
            summary = ""
            if isinstance(meta.get("title"), str):
                summary += f"# {meta['title']}\n\n"
            if isinstance(meta.get("description"), str):
                summary += f"{meta['description']}\n"
            chunks.append(f"\n--- {self._display(path)} ---\n{summary}\n")
        return chunks

    async def _run_shell(self, command: str) -> str | None:
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                cwd=self.root,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, _ = await process.communicate()
        except OSError as e:
            logger.warning("Failed to execute command 'sh://%s': %s", command, e)
            return None
        if process.returncode != 0:
            logger.warning("Command failed (exit %s): sh://%s", process.returncode, command)
            return None
        return stdout.decode("utf-8", errors="replace")

    def _display(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()
