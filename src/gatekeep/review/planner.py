"""Task planning: rules x changed files -> balanced review tasks."""

import logging
import math
from collections.abc import Sequence

from gatekeep.review.globs import GlobSet
from gatekeep.review.models import Task
from gatekeep.rules.models import Rule

logger = logging.getLogger(__name__)


def filter_files(rule: Rule, changed_files: Sequence[str]) -> list[str]:
    """Changed files inside the rule's scope and outside its excludes, in input order.

    Invalid patterns are logged and ignored.
    """
    scope = GlobSet.lenient(rule.scope, context=f"scope of rule '{rule.name}'")
    exclude = GlobSet.lenient(rule.exclude, context=f"exclude of rule '{rule.name}'")
    return [path for path in changed_files if scope.matches(path) and not exclude.matches(path)]


def split_files(files: Sequence[str], max_per_chunk: int) -> list[list[str]]:
    """Split files into the fewest chunks of at most ``max_per_chunk``, balanced.

    Chunk sizes differ by at most one, larger chunks first:
    13 files with max 5 -> [5, 4, 4]; 7 with max 5 -> [4, 3].

    Raises:
        ValueError: If max_per_chunk is not positive
    """
    if max_per_chunk < 1:
        raise ValueError("max_per_chunk must be positive")
    total = len(files)
    if total == 0:
        return []

    count = math.ceil(total / max_per_chunk)
    size, larger = divmod(total, count)
    chunks: list[list[str]] = []
    start = 0
    for index in range(count):
        end = start + size + (1 if index < larger else 0)
        chunks.append(list(files[start:end]))
        start = end
    return chunks


def plan_tasks(
    rules: Sequence[Rule],
    changed_files: Sequence[str],
    max_files_per_task: int,
) -> list[Task]:
    """Build the review plan.

    Tasks are ordered by rule, then chunk; worker ids are plan indices.

    Args:
        rules: Configured rules, in config order
        changed_files: The change-set
        max_files_per_task: Global chunk size, overridden per rule

    Returns:
        Ordered tasks; empty when no rule matches any file
    """
    tasks: list[Task] = []
    for rule in rules:
        files = filter_files(rule, changed_files)
        if not files:
            logger.debug("Rule '%s' matches no changed files", rule.name)
            continue

        limit = rule.max_files_per_task or max_files_per_task
        chunks = split_files(files, limit)
        logger.debug(
            "Rule '%s': %d file(s) in %d task(s) of at most %d",
            rule.name,
            len(files),
            len(chunks),
            limit,
        )
        for chunk in chunks:
            tasks.append(Task(worker_id=str(len(tasks)), rule=rule, files=tuple(chunk)))
    return tasks
