"""
User intents that move, add, remove or re-date tasks.

Each handler translates the intent into order/date/flag changes on a working
copy of the snapshot, then hands it to the realignment engine.
"""
import logging
import re
from datetime import date
from typing import List, Optional

from siteplan.scheduling.business_days import next_business_day
from siteplan.scheduling.classifier import group_members, index_of, renumber, sort_tasks
from siteplan.scheduling.engine import finalize, validate_snapshot
from siteplan.scheduling.linking import DEFAULT_GROUP_PREFIX, mint_group_id
from siteplan.scheduling.results import ErrorKind, ScheduleResult
from siteplan.scheduling.types import (
    DateChangeAction,
    InsertPosition,
    PositionSpec,
    ScheduleTask,
    copy_tasks,
)

logger = logging.getLogger(__name__)

# "Pour - Day 2", "Form Day 1 of 3"
DAY_LABEL_PATTERN = re.compile(r'\b(Day)\s+(\d+)(?:(\s+of\s+)(\d+))?', re.IGNORECASE)


def parse_day_label(name: Optional[str]) -> Optional[int]:
    """Return the day number from a positional label, or None if the name has none."""
    if not name:
        return None
    match = DAY_LABEL_PATTERN.search(name)
    return int(match.group(2)) if match else None


def relabel_day(name: str, day_number: int, total_days: int) -> str:
    """Rewrite the day label in `name`; an existing "of M" total is updated too."""
    def _replace(match):
        label = f"{match.group(1)} {day_number}"
        if match.group(4):
            label += f"{match.group(3)}{total_days}"
        return label

    return DAY_LABEL_PATTERN.sub(_replace, name, count=1)


def reorder_task(
    tasks: List[ScheduleTask],
    task_id: str,
    new_index: int,
    join_group: Optional[bool] = None,
) -> ScheduleResult:
    """
    Move a task to a new position (drag-reorder).
    
    All tasks get consecutive order values afterwards. If the task is dropped
    between two members of a linked group it does not belong to, the caller
    must decide: join_group=True links it into that group, join_group=False
    reverts the move, None asks back with AMBIGUOUS_POLICY.
    
    Args:
        tasks: Snapshot of one location's tasks
        task_id: Task being moved
        new_index: Zero-based target position (clamped into range)
        join_group: Decision for drops inside a linked group
        
    Returns:
        ScheduleResult
    """
    problem = validate_snapshot(tasks)
    if problem:
        return ScheduleResult.failure(tasks, ErrorKind.MALFORMED_SNAPSHOT, problem)

    ordered = sort_tasks(copy_tasks(tasks))
    task = next((t for t in ordered if t.task_id == task_id), None)
    if task is None:
        return ScheduleResult.failure(tasks, ErrorKind.NOT_FOUND, f"Task {task_id} not found", task_id)

    rest = [t for t in ordered if t.task_id != task_id]
    new_index = max(0, min(int(new_index), len(rest)))
    rest.insert(new_index, task)

    before_task = rest[new_index - 1] if new_index > 0 else None
    after_task = rest[new_index + 1] if new_index + 1 < len(rest) else None
    lands_inside_group = (
        before_task is not None
        and after_task is not None
        and before_task.linked_task_group is not None
        and before_task.linked_task_group == after_task.linked_task_group
        and task.linked_task_group != before_task.linked_task_group
    )

    if lands_inside_group:
        if join_group is None:
            return ScheduleResult.failure(
                tasks, ErrorKind.AMBIGUOUS_POLICY,
                "Task was dropped inside a linked group: link it to the group or revert the move",
                task_id)
        if not join_group:
            logger.debug("Reverting move of %s out of linked group position", task_id)
            return ScheduleResult(tasks=list(tasks), changes=[])
        if task.is_complete:
            return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE,
                                          f"Task {task_id} is complete and cannot be linked", task_id)
        task.linked_task_group = before_task.linked_task_group
        task.task_date = before_task.task_date
        task.dependent_on_previous = False

    renumber(rest)
    return finalize(tasks, rest)


def insert_task(
    tasks: List[ScheduleTask],
    new_task: ScheduleTask,
    position: PositionSpec,
    group_prefix: str = DEFAULT_GROUP_PREFIX,
) -> ScheduleResult:
    """
    Add a new task to the schedule.
    
    - START: becomes the first task and is always non-sequential.
    - END / AFTER: placed behind the neighbour; a neighbour inside a linked
      group is replaced by the group's last member so the new task never lands
      inside a group. A sequential new task starts on the next business day
      after the neighbour.
    - LINKED_WITH: joins the target's group (minting one if needed), placed
      behind the group's last member, takes the group date, non-sequential.
    
    Order values are renumbered to consecutive integers afterwards.
    
    Returns:
        ScheduleResult
    """
    problem = validate_snapshot(tasks)
    if problem:
        return ScheduleResult.failure(tasks, ErrorKind.MALFORMED_SNAPSHOT, problem)
    if not new_task.task_id:
        return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE, "New task needs an id")
    if any(t.task_id == new_task.task_id for t in tasks):
        return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE,
                                      f"Task {new_task.task_id} already exists", new_task.task_id)

    ordered = sort_tasks(copy_tasks(tasks))
    created = new_task.copy(linked_task_group=None)
    neighbor = None

    if position.position == InsertPosition.START:
        created.dependent_on_previous = False
        ordered.insert(0, created)

    elif position.position == InsertPosition.END:
        neighbor = ordered[-1] if ordered else None
        ordered.append(created)

    elif position.position == InsertPosition.AFTER:
        neighbor = next((t for t in ordered if t.task_id == position.task_id), None)
        if neighbor is None:
            return ScheduleResult.failure(tasks, ErrorKind.NOT_FOUND,
                                          f"Task {position.task_id} not found", position.task_id)
        if neighbor.linked_task_group:
            neighbor = group_members(ordered, neighbor.linked_task_group)[-1]
        ordered.insert(index_of(ordered, neighbor.task_id) + 1, created)

    elif position.position == InsertPosition.LINKED_WITH:
        target = next((t for t in ordered if t.task_id == position.task_id), None)
        if target is None:
            return ScheduleResult.failure(tasks, ErrorKind.NOT_FOUND,
                                          f"Task {position.task_id} not found", position.task_id)
        if target.is_complete:
            return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE,
                                          f"Task {target.task_id} is complete and cannot be linked",
                                          target.task_id)
        if not target.linked_task_group:
            target.linked_task_group = mint_group_id(group_prefix)
        last_member = group_members(ordered, target.linked_task_group)[-1]
        created.linked_task_group = target.linked_task_group
        created.task_date = target.task_date
        created.dependent_on_previous = False
        ordered.insert(index_of(ordered, last_member.task_id) + 1, created)

    else:
        raise ValueError(f"Unhandled insert position: {position.position}")

    if position.position in (InsertPosition.END, InsertPosition.AFTER):
        if neighbor is None:
            created.dependent_on_previous = False
        elif created.dependent_on_previous:
            created.task_date = next_business_day(neighbor.task_date)

    if not isinstance(created.task_date, date):
        return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE,
                                      "A non-sequential task needs a date", created.task_id)

    renumber(ordered)
    logger.debug("Inserted %s at %s (%s)", created.task_id, index_of(ordered, created.task_id),
                 position.position.value)
    return finalize(tasks, ordered)


def delete_task(tasks: List[ScheduleTask], task_id: str) -> ScheduleResult:
    """
    Remove a task from the schedule.
    
    If the deleted task carried a "Day N" label, the remaining tasks with the
    same task type and cost code that carry a label are renumbered 1..M. If
    only one partner is left in its linked group, that partner is unlinked and
    stays sequential if either of the two was sequential.
    
    Returns:
        ScheduleResult (the change-set includes a DELETE entry)
    """
    problem = validate_snapshot(tasks)
    if problem:
        return ScheduleResult.failure(tasks, ErrorKind.MALFORMED_SNAPSHOT, problem)

    ordered = sort_tasks(copy_tasks(tasks))
    removed = next((t for t in ordered if t.task_id == task_id), None)
    if removed is None:
        return ScheduleResult.failure(tasks, ErrorKind.NOT_FOUND, f"Task {task_id} not found", task_id)

    rest = [t for t in ordered if t.task_id != task_id]

    if removed.linked_task_group:
        partners = [t for t in rest if t.linked_task_group == removed.linked_task_group]
        if len(partners) == 1 and not partners[0].is_complete:
            partner = partners[0]
            partner.linked_task_group = None
            partner.dependent_on_previous = removed.dependent_on_previous or partner.dependent_on_previous

    # Untyped tasks without a cost code do not form a cohort
    has_cohort_key = removed.task_type is not None or removed.cost_code is not None
    if has_cohort_key and parse_day_label(removed.name) is not None:
        cohort = [
            t for t in rest
            if t.task_type == removed.task_type
            and t.cost_code == removed.cost_code
            and parse_day_label(t.name) is not None
        ]
        cohort.sort(key=lambda t: (parse_day_label(t.name), index_of(rest, t.task_id)))
        for day_number, member in enumerate(cohort, start=1):
            member.name = relabel_day(member.name, day_number, len(cohort))

    return finalize(tasks, rest)


def _shift_linked_groups(ordered: List[ScheduleTask], start_index: int, own_group: Optional[str],
                         baseline: date) -> None:
    # Walk downstream with a running baseline, pulling each linked group onto
    # the next business day after it before continuing past the group.
    synced = set()
    for task in ordered[start_index + 1:]:
        group = task.linked_task_group
        if group and group == own_group:
            continue
        if group and group not in synced:
            synced.add(group)
            members = group_members(ordered, group)
            anchored_upstream = index_of(ordered, members[0].task_id) <= start_index
            if anchored_upstream or any(m.is_complete for m in members):
                baseline = task.task_date
                continue
            group_date = next_business_day(baseline)
            for member in members:
                member.task_date = group_date
            baseline = group_date
        elif group:
            baseline = task.task_date
        elif task.dependent_on_previous and not task.is_complete:
            baseline = next_business_day(baseline)
        else:
            baseline = task.task_date


def change_date(
    tasks: List[ScheduleTask],
    task_id: str,
    new_date: date,
    action: Optional[DateChangeAction] = None,
) -> ScheduleResult:
    """
    Change a task's date.
    
    - KEEP_SEQUENTIAL: the task stays (or becomes) sequential; the requested
      date is advisory and realignment recomputes it from the predecessor.
      Only a group's anchor can be made sequential; other members are
      rejected with INVALID_STATE.
    - MAKE_NONSEQUENTIAL_MOVE_ONLY: the task takes new_date and becomes
      non-sequential; sequential followers move with it.
    - MAKE_NONSEQUENTIAL_SHIFT_OTHERS: as above, and every later linked group
      is re-baselined onto the running chain starting at new_date.
    
    For a linked task the change applies to the whole group.
    
    Returns:
        ScheduleResult
    """
    problem = validate_snapshot(tasks)
    if problem:
        return ScheduleResult.failure(tasks, ErrorKind.MALFORMED_SNAPSHOT, problem)

    ordered = sort_tasks(copy_tasks(tasks))
    task = next((t for t in ordered if t.task_id == task_id), None)
    if task is None:
        return ScheduleResult.failure(tasks, ErrorKind.NOT_FOUND, f"Task {task_id} not found", task_id)
    if action is None:
        return ScheduleResult.failure(
            tasks, ErrorKind.AMBIGUOUS_POLICY,
            "A date change action is required: keep_sequential, make_nonsequential_move_only "
            "or make_nonsequential_shift_others",
            task_id)
    if not isinstance(new_date, date):
        return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE, "A new date is required", task_id)

    members = group_members(ordered, task.linked_task_group) or [task]
    completed = next((m for m in members if m.is_complete), None)
    if completed is not None:
        return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE,
                                      f"Task {completed.task_id} is complete and cannot be re-dated",
                                      completed.task_id)

    if action == DateChangeAction.KEEP_SEQUENTIAL:
        if task is ordered[0]:
            return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE,
                                          "The first task cannot be sequential", task_id)
        if task is not members[0]:
            return ScheduleResult.failure(
                tasks, ErrorKind.INVALID_STATE,
                f"Task {task_id} takes its date from linked group anchor {members[0].task_id}; "
                f"change the anchor instead",
                task_id)
        task.task_date = new_date
        task.dependent_on_previous = True
        return finalize(tasks, ordered)

    if action in (DateChangeAction.MAKE_NONSEQUENTIAL_MOVE_ONLY,
                  DateChangeAction.MAKE_NONSEQUENTIAL_SHIFT_OTHERS):
        for member in members:
            member.task_date = new_date
        members[0].dependent_on_previous = False
        task.dependent_on_previous = False
        if action == DateChangeAction.MAKE_NONSEQUENTIAL_SHIFT_OTHERS:
            _shift_linked_groups(ordered, index_of(ordered, task.task_id),
                                 task.linked_task_group, new_date)
        logger.debug("Moved %s to %s (%s)", task_id, new_date, action.value)
        return finalize(tasks, ordered)

    raise ValueError(f"Unhandled date change action: {action}")
