"""
Task scheduling engine for construction-site locations.

Computes each task's calendar date from its predecessor, honoring explicit
non-sequential dates and linked task groups that must share one date. The
engine is pure: every operation takes a full snapshot of one location's tasks
and returns a corrected snapshot plus the change-set to persist.
"""

from siteplan.scheduling.business_days import (
    add_business_days,
    business_days_between,
    is_business_day,
    next_business_day,
)
from siteplan.scheduling.changeset import diff_snapshots
from siteplan.scheduling.classifier import Classification, classify, sort_tasks
from siteplan.scheduling.engine import find_violations, realign, realign_snapshot, validate_snapshot
from siteplan.scheduling.linking import link_tasks, mint_group_id, unlink_task
from siteplan.scheduling.ordering import change_date, delete_task, insert_task, reorder_task
from siteplan.scheduling.results import ErrorKind, ScheduleError, ScheduleResult
from siteplan.scheduling.types import (
    ChangeKind,
    DateChangeAction,
    DependencyKind,
    InsertPosition,
    LinkPolicy,
    PositionSpec,
    ScheduleTask,
    TaskChange,
    UnlinkMode,
)

__all__ = [
    'add_business_days',
    'business_days_between',
    'is_business_day',
    'next_business_day',
    'diff_snapshots',
    'Classification',
    'classify',
    'sort_tasks',
    'find_violations',
    'realign',
    'realign_snapshot',
    'validate_snapshot',
    'link_tasks',
    'mint_group_id',
    'unlink_task',
    'change_date',
    'delete_task',
    'insert_task',
    'reorder_task',
    'ErrorKind',
    'ScheduleError',
    'ScheduleResult',
    'ChangeKind',
    'DateChangeAction',
    'DependencyKind',
    'InsertPosition',
    'LinkPolicy',
    'PositionSpec',
    'ScheduleTask',
    'TaskChange',
    'UnlinkMode',
]
