"""
Realignment engine.

Pure business logic with no database dependencies. Every mutating operation in
this package funnels its working snapshot through `realign` before handing it
back, so the following hold on every return:

- the first task (lowest order) is non-sequential
- all members of a linked group share one date
- a sequential task falls on the next business day after its reference
  predecessor (the nearest earlier task outside its own linked group)

Completed tasks are read as predecessors but their date, dependency flag and
group are never rewritten.
"""
import logging
import math
from datetime import date
from typing import Dict, List, Optional

from siteplan.scheduling.business_days import next_business_day
from siteplan.scheduling.changeset import diff_snapshots
from siteplan.scheduling.classifier import classify_at, sort_tasks
from siteplan.scheduling.results import ErrorKind, ScheduleResult
from siteplan.scheduling.types import DependencyKind, ScheduleTask

logger = logging.getLogger(__name__)


def validate_snapshot(tasks: List[ScheduleTask]) -> Optional[str]:
    """
    Check a snapshot for malformations the engine cannot work around.
    
    Returns:
        Error message, or None if the snapshot is usable
    """
    seen = set()
    for task in tasks:
        if not task.task_id:
            return "Snapshot contains a task without an id"
        if task.task_id in seen:
            return f"Snapshot contains duplicate task id {task.task_id}"
        seen.add(task.task_id)
        if not isinstance(task.task_date, date):
            return f"Task {task.task_id} has no valid task_date"
        if task.order is None or math.isnan(task.order):
            return f"Task {task.task_id} has no valid order"
    return None


def _pinned_group_dates(ordered: List[ScheduleTask]) -> Dict[str, date]:
    # A completed member fixes its group's date; the lowest-order one wins.
    pinned: Dict[str, date] = {}
    for task in ordered:
        if task.is_complete and task.linked_task_group and task.linked_task_group not in pinned:
            pinned[task.linked_task_group] = task.task_date
    return pinned


def realign(tasks: List[ScheduleTask]) -> List[ScheduleTask]:
    """
    Recompute dates and dependency flags so every invariant holds.
    
    Single forward pass over the tasks in processing sequence, carrying the
    effective date of the previous task as the baseline:
    - first task: forced non-sequential, keeps its date
    - anchor of a linked group: classified like any other task, its date is
      then shared with every other member of the group
    - other group members: take the group date and are non-sequential
    - sequential task: next business day after the baseline
    - non-sequential task: keeps its own date
    
    The input list is not modified. `order` values and passthrough fields are
    never changed. realign(realign(tasks)) == realign(tasks).
    
    Args:
        tasks: Snapshot of one location's tasks (any list order)
        
    Returns:
        New list of tasks sorted by processing sequence
    """
    ordered = [t.copy() for t in sort_tasks(tasks)]
    pinned = _pinned_group_dates(ordered)
    group_dates: Dict[str, date] = {}
    baseline: Optional[date] = None

    for i, task in enumerate(ordered):
        group = task.linked_task_group

        if task.is_complete:
            if group and group not in group_dates:
                group_dates[group] = pinned[group]
            baseline = task.task_date
            continue

        if i == 0:
            task.dependent_on_previous = False

        if group and group in group_dates:
            task.dependent_on_previous = False
            task.task_date = group_dates[group]
        else:
            if group and group in pinned:
                task.dependent_on_previous = False
                task.task_date = pinned[group]
            elif task.dependent_on_previous and baseline is not None:
                task.task_date = next_business_day(baseline)
            if group:
                group_dates[group] = task.task_date

        baseline = task.task_date

    return ordered


def find_violations(tasks: List[ScheduleTask]) -> List[str]:
    """
    List every breach of the scheduling invariants in a snapshot.
    
    Returns:
        Human readable descriptions, empty if the snapshot is consistent
    """
    ordered = sort_tasks(tasks)
    violations = []
    if not ordered:
        return violations

    first = ordered[0]
    if first.dependent_on_previous and not first.is_complete:
        violations.append(f"First task {first.task_id} is sequential")

    group_dates: Dict[str, set] = {}
    for task in ordered:
        if task.linked_task_group:
            group_dates.setdefault(task.linked_task_group, set()).add(task.task_date)
    for group, dates in group_dates.items():
        if len(dates) > 1:
            violations.append(
                f"Linked group {group} has {len(dates)} different dates: "
                f"{', '.join(sorted(d.isoformat() for d in dates))}"
            )

    for i in range(len(ordered)):
        classification = classify_at(ordered, i)
        # Completed tasks keep whatever date they were finished on
        if classification.kind != DependencyKind.SEQUENTIAL or classification.task.is_complete:
            continue
        expected = next_business_day(classification.predecessor.task_date)
        if classification.task.task_date != expected:
            violations.append(
                f"Sequential task {classification.task.task_id} is on "
                f"{classification.task.task_date.isoformat()}, expected {expected.isoformat()} "
                f"(after {classification.predecessor.task_id})"
            )

    return violations


def finalize(before: List[ScheduleTask], working: List[ScheduleTask]) -> ScheduleResult:
    """Realign a working snapshot and package it with its change-set against `before`."""
    realigned = realign(working)
    changes = diff_snapshots(before, realigned)
    logger.debug("Realigned %d tasks, %d changed", len(realigned), len(changes))
    return ScheduleResult(tasks=realigned, changes=changes)


def realign_snapshot(tasks: List[ScheduleTask]) -> ScheduleResult:
    """
    Validate and realign a snapshot.
    
    Returns:
        ScheduleResult with the corrected snapshot, or MALFORMED_SNAPSHOT with
        the input unchanged
    """
    problem = validate_snapshot(tasks)
    if problem:
        logger.warning("Rejecting malformed snapshot: %s", problem)
        return ScheduleResult.failure(tasks, ErrorKind.MALFORMED_SNAPSHOT, problem)
    return finalize(tasks, tasks)
