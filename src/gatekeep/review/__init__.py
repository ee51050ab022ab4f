"""Review pipeline: planning, workers, scheduling, aggregation and rendering."""

from gatekeep.review.globs import GlobSet, InvalidGlobError
from gatekeep.review.models import PoolOutcome, ReviewReport, Task, WorkerResult, WorkerStatus
from gatekeep.review.planner import filter_files, plan_tasks, split_files

__all__ = [
    "GlobSet",
    "InvalidGlobError",
    "PoolOutcome",
    "ReviewReport",
    "Task",
    "WorkerResult",
    "WorkerStatus",
    "filter_files",
    "plan_tasks",
    "split_files",
]
