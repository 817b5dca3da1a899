"""
Linked task groups: tasks constrained to share one date.

link_tasks builds or extends a group and applies an explicit anchor-date
policy; unlink_task dissolves a group or detaches one member. Both delegate to
the realignment engine for the final correction.
"""
import logging
import time
import uuid
from typing import Iterable, List, Optional

from siteplan.scheduling.business_days import next_business_day
from siteplan.scheduling.classifier import group_members, index_of, move_after, move_before, sort_tasks
from siteplan.scheduling.engine import finalize, validate_snapshot
from siteplan.scheduling.results import ErrorKind, ScheduleResult
from siteplan.scheduling.types import LinkPolicy, ScheduleTask, UnlinkMode, copy_tasks

logger = logging.getLogger(__name__)

DEFAULT_GROUP_PREFIX = 'group'


def mint_group_id(prefix: str = DEFAULT_GROUP_PREFIX) -> str:
    """Generate a unique linked task group id, e.g. group_1718000000000_3f9a1c2b7."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def is_special_pair(ordered: List[ScheduleTask], members: List[ScheduleTask]) -> bool:
    """
    Detect the two-task shortcut: an earlier non-sequential task (not the first
    task of the location) directly followed by a sequential task.
    """
    if len(members) != 2 or not ordered:
        return False
    earlier, later = members
    earlier_index = index_of(ordered, earlier.task_id)
    later_index = index_of(ordered, later.task_id)
    return (
        earlier_index > 0
        and not earlier.dependent_on_previous
        and later.dependent_on_previous
        and later_index == earlier_index + 1
    )


def _sequential_run_start(ordered: List[ScheduleTask], sequential: List[ScheduleTask]) -> Optional[ScheduleTask]:
    # First member of the earliest run of back-to-back, calendar-adjacent sequential members
    for i in range(len(sequential) - 1):
        current, following = sequential[i], sequential[i + 1]
        adjacent = index_of(ordered, following.task_id) == index_of(ordered, current.task_id) + 1
        if adjacent and following.task_date == next_business_day(current.task_date):
            return current
    return None


def _dedupe(ids: Iterable[str]) -> List[str]:
    seen = []
    for task_id in ids:
        if task_id not in seen:
            seen.append(task_id)
    return seen


def link_tasks(
    tasks: List[ScheduleTask],
    source_id: str,
    target_ids: List[str],
    policy: Optional[LinkPolicy] = None,
    anchor_id: Optional[str] = None,
    group_prefix: str = DEFAULT_GROUP_PREFIX,
) -> ScheduleResult:
    """
    Link a source task with one or more targets so they share one date.
    
    An existing group id on any member is reused (other members of that group
    stay in it); otherwise a new id is minted. Members of different existing
    groups are merged under the group of the lowest-order member.
    
    Policies:
    - SEQUENTIAL_GROUP / SEQUENTIAL_SINGLE: a sequential member donates its
      date and stays sequential; all other members become non-sequential.
      A donor behind another member is moved directly in front of the
      group's lowest-order member so the group keeps following the chain.
      A group containing the location's first task is entirely
      non-sequential.
    - UNSEQUENTIAL: `anchor_id` (or the only non-sequential member) donates
      its date; every member becomes non-sequential.
    - SPECIAL_PAIR: detected automatically when policy is None; resolves to
      UNSEQUENTIAL anchored on the earlier task.
    
    Args:
        tasks: Snapshot of one location's tasks
        source_id: Task the user started the link from
        target_ids: Tasks to link with the source
        policy: Anchor-date policy chosen by the caller
        anchor_id: Donor task for UNSEQUENTIAL / SEQUENTIAL_SINGLE
        group_prefix: Prefix for newly minted group ids
        
    Returns:
        ScheduleResult; NOT_FOUND, INVALID_STATE or AMBIGUOUS_POLICY on failure
    """
    problem = validate_snapshot(tasks)
    if problem:
        return ScheduleResult.failure(tasks, ErrorKind.MALFORMED_SNAPSHOT, problem)

    if not target_ids:
        return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE,
                                      "At least one target task is required to link", source_id)

    member_ids = _dedupe([source_id] + list(target_ids))
    if len(member_ids) < 2:
        return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE,
                                      "A task cannot be linked only to itself", source_id)

    working = copy_tasks(tasks)
    ordered = sort_tasks(working)
    by_id = {t.task_id: t for t in working}

    for task_id in member_ids:
        if task_id not in by_id:
            return ScheduleResult.failure(tasks, ErrorKind.NOT_FOUND, f"Task {task_id} not found", task_id)

    requested = [t for t in ordered if t.task_id in member_ids]
    existing_groups = _dedupe(t.linked_task_group for t in requested if t.linked_task_group)
    group_id = existing_groups[0] if existing_groups else mint_group_id(group_prefix)

    members = [
        t for t in ordered
        if t.task_id in member_ids or (t.linked_task_group and t.linked_task_group in existing_groups)
    ]
    for member in members:
        if member.is_complete:
            return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE,
                                          f"Task {member.task_id} is complete and cannot be linked",
                                          member.task_id)

    if anchor_id is not None and anchor_id not in by_id:
        return ScheduleResult.failure(tasks, ErrorKind.NOT_FOUND, f"Task {anchor_id} not found", anchor_id)
    if anchor_id is not None and all(m.task_id != anchor_id for m in members):
        return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE,
                                      f"Anchor task {anchor_id} is not part of the linked group", anchor_id)

    if policy is None:
        if not is_special_pair(ordered, members):
            return ScheduleResult.failure(
                tasks, ErrorKind.AMBIGUOUS_POLICY,
                "A link policy is required: sequential_group, sequential_single or unsequential",
                source_id)
        policy = LinkPolicy.SPECIAL_PAIR

    first_task = ordered[0]

    if policy == LinkPolicy.SPECIAL_PAIR:
        if not is_special_pair(ordered, members):
            return ScheduleResult.failure(
                tasks, ErrorKind.INVALID_STATE,
                "Tasks do not form a non-sequential task directly followed by a sequential task",
                source_id)
        donor = members[0]
        policy = LinkPolicy.UNSEQUENTIAL
    elif policy == LinkPolicy.UNSEQUENTIAL:
        if anchor_id is not None:
            donor = by_id[anchor_id]
        else:
            fixed = [m for m in members if not m.dependent_on_previous or m is first_task]
            if len(fixed) != 1:
                return ScheduleResult.failure(
                    tasks, ErrorKind.AMBIGUOUS_POLICY,
                    "Choose which task's date the linked group should keep", source_id)
            donor = fixed[0]
    elif policy in (LinkPolicy.SEQUENTIAL_GROUP, LinkPolicy.SEQUENTIAL_SINGLE):
        sequential = [m for m in members if m.dependent_on_previous]
        if not sequential:
            return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE,
                                          "No sequential task to anchor the linked group", source_id)
        if policy == LinkPolicy.SEQUENTIAL_SINGLE and anchor_id is not None:
            donor = by_id[anchor_id]
            if not donor.dependent_on_previous:
                return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE,
                                              f"Anchor task {anchor_id} is not sequential", anchor_id)
        elif policy == LinkPolicy.SEQUENTIAL_GROUP:
            donor = _sequential_run_start(ordered, sequential) or sequential[0]
        else:
            donor = sequential[0]
    else:
        raise ValueError(f"Unhandled link policy: {policy}")

    shared_date = donor.task_date
    # A group holding the location's first task has no predecessor to follow
    keep_donor_sequential = policy != LinkPolicy.UNSEQUENTIAL and members[0] is not first_task
    for member in members:
        member.linked_task_group = group_id
        member.task_date = shared_date
        member.dependent_on_previous = keep_donor_sequential and member is donor

    if keep_donor_sequential and donor is not members[0]:
        # Only the lowest-order member drives the group date, so the donor takes that slot
        working = move_before(ordered, donor, members[0])
        logger.debug("Moved donor %s ahead of %s", donor.task_id, members[0].task_id)

    logger.debug("Linked %s into %s on %s (policy=%s)",
                 [m.task_id for m in members], group_id, shared_date, policy.value)
    return finalize(tasks, working)


def unlink_task(
    tasks: List[ScheduleTask],
    task_id: str,
    mode: Optional[UnlinkMode] = None,
) -> ScheduleResult:
    """
    Dissolve a linked group or detach a single task from it.
    
    - WHOLE_GROUP: every member loses its group; each becomes sequential
      unless it is the first task of the location.
    - JUST_THIS_TASK: only `task_id` leaves; it is moved directly behind the
      last remaining member and becomes sequential. Other members are untouched.
    
    Returns:
        ScheduleResult; NOT_FOUND, INVALID_STATE or AMBIGUOUS_POLICY on failure
    """
    problem = validate_snapshot(tasks)
    if problem:
        return ScheduleResult.failure(tasks, ErrorKind.MALFORMED_SNAPSHOT, problem)

    working = copy_tasks(tasks)
    ordered = sort_tasks(working)
    task = next((t for t in ordered if t.task_id == task_id), None)
    if task is None:
        return ScheduleResult.failure(tasks, ErrorKind.NOT_FOUND, f"Task {task_id} not found", task_id)
    if mode is None:
        return ScheduleResult.failure(tasks, ErrorKind.AMBIGUOUS_POLICY,
                                      "An unlink mode is required: whole_group or just_this_task", task_id)
    if not task.linked_task_group:
        return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE, f"Task {task_id} is not linked", task_id)

    members = group_members(ordered, task.linked_task_group)
    first_task = ordered[0]

    if mode == UnlinkMode.WHOLE_GROUP:
        completed = next((m for m in members if m.is_complete), None)
        if completed is not None:
            return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE,
                                          f"Task {completed.task_id} is complete and cannot be unlinked",
                                          completed.task_id)
        for member in members:
            member.linked_task_group = None
            member.dependent_on_previous = member is not first_task
        logger.debug("Dissolved linked group of %d tasks", len(members))
        return finalize(tasks, ordered)

    if mode == UnlinkMode.JUST_THIS_TASK:
        if task.is_complete:
            return ScheduleResult.failure(tasks, ErrorKind.INVALID_STATE,
                                          f"Task {task_id} is complete and cannot be unlinked", task_id)
        remaining = [m for m in members if m.task_id != task_id]
        task.linked_task_group = None
        if not remaining:
            task.dependent_on_previous = task is not first_task
            return finalize(tasks, ordered)
        ordered = move_after(ordered, task, remaining[-1])
        task.dependent_on_previous = True
        logger.debug("Detached %s behind %s", task_id, remaining[-1].task_id)
        return finalize(tasks, ordered)

    raise ValueError(f"Unhandled unlink mode: {mode}")
