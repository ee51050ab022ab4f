"""Result aggregation: worker results -> one ReviewReport.

Every result contributes, whatever its status: a cancelled or failed task's
partial violations are still reported. Output is sorted, so the report does not
depend on the order in which tasks finished.
"""

import logging
from collections.abc import Iterable

from gatekeep.review.models import PoolOutcome, ReviewReport, WorkerResult, WorkerStatus
from gatekeep.rules.models import Violation
from gatekeep.types import TokenUsage

logger = logging.getLogger(__name__)


def _violation_key(violation: Violation) -> tuple[int, int, str]:
    return (violation.start_line, violation.end_line, violation.detail)


def aggregate_results(
    results: Iterable[WorkerResult],
    not_started: int = 0,
    interrupted: bool = False,
) -> ReviewReport:
    """Group violations by file then rule and compute the verdict inputs.

    Args:
        results: One result per started task, in any order
        not_started: Tasks skipped because of shutdown
        interrupted: Whether shutdown was requested

    Returns:
        The aggregated report
    """
    grouped: dict[str, dict[str, list[Violation]]] = {}
    tips: dict[str, str] = {}
    blocking: set[str] = set()
    non_blocking: set[str] = set()
    counts = dict.fromkeys(WorkerStatus, 0)
    usage = TokenUsage()

    for result in results:
        counts[result.status] += 1
        usage = usage + result.usage
        if result.tip and result.tip.strip():
            tips.setdefault(result.rule_name, result.tip.strip())
        if not result.violations:
            continue
        (blocking if result.blocking else non_blocking).add(result.rule_name)
        for violation in result.violations:
            grouped.setdefault(violation.file, {}).setdefault(result.rule_name, []).append(
                violation
            )

    violations_by_file = {
        file: {rule: sorted(by_rule[rule], key=_violation_key) for rule in sorted(by_rule)}
        for file, by_rule in sorted(grouped.items())
    }

    return ReviewReport(
        violations_by_file=violations_by_file,
        tips_by_rule=dict(sorted(tips.items())),
        blocking_rules_with_violations=sorted(blocking),
        non_blocking_rules_with_violations=sorted(non_blocking - blocking),
        completed=counts[WorkerStatus.COMPLETED],
        cancelled=counts[WorkerStatus.CANCELLED],
        failed=counts[WorkerStatus.FAILED],
        not_started=not_started,
        interrupted=interrupted,
        usage=usage,
    )


def aggregate(outcome: PoolOutcome) -> ReviewReport:
    """Aggregate everything a pool run produced."""
    report = aggregate_results(
        outcome.results, not_started=outcome.not_started, interrupted=outcome.interrupted
    )
    if report.interrupted:
        logger.warning(
            "Review interrupted: %d completed, %d failed, %d cancelled, %d not started",
            report.completed,
            report.failed,
            report.cancelled,
            report.not_started,
        )
    else:
        logger.info("Review complete: %d completed, %d failed", report.completed, report.failed)
    return report
