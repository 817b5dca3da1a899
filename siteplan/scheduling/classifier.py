"""
Dependency classification: which date rule applies to a task and which task
it takes its date from.
"""
from dataclasses import dataclass
from typing import List, Optional

from siteplan.scheduling.types import DependencyKind, ScheduleTask


@dataclass
class Classification:
    kind: DependencyKind
    task: ScheduleTask
    predecessor: Optional[ScheduleTask]


def sort_tasks(tasks: List[ScheduleTask]) -> List[ScheduleTask]:
    """Processing sequence: ascending order, ties broken by position in the input."""
    indexed = list(enumerate(tasks))
    indexed.sort(key=lambda pair: (pair[1].order, pair[0]))
    return [task for _, task in indexed]


def index_of(ordered: List[ScheduleTask], task_id: str) -> int:
    for i, task in enumerate(ordered):
        if task.task_id == task_id:
            return i
    return -1


def group_members(tasks: List[ScheduleTask], group: Optional[str]) -> List[ScheduleTask]:
    """Members of a linked group in processing sequence (empty for None)."""
    if not group:
        return []
    return [t for t in sort_tasks(tasks) if t.linked_task_group == group]


def group_anchor(tasks: List[ScheduleTask], group: Optional[str]) -> Optional[ScheduleTask]:
    """The lowest-order member of a group, whose classification sets the group date."""
    members = group_members(tasks, group)
    return members[0] if members else None


def reference_predecessor(ordered: List[ScheduleTask], index: int) -> Optional[ScheduleTask]:
    """
    Scan backward from ordered[index], skipping members of the task's own
    linked group, and return the first task found.
    """
    group = ordered[index].linked_task_group
    for i in range(index - 1, -1, -1):
        candidate = ordered[i]
        if group and candidate.linked_task_group == group:
            continue
        return candidate
    return None


def classify_at(ordered: List[ScheduleTask], index: int) -> Classification:
    task = ordered[index]
    predecessor = reference_predecessor(ordered, index)
    if predecessor is None:
        kind = DependencyKind.FIRST
    elif task.dependent_on_previous:
        kind = DependencyKind.SEQUENTIAL
    else:
        kind = DependencyKind.NONSEQUENTIAL
    return Classification(kind=kind, task=task, predecessor=predecessor)


def classify(tasks: List[ScheduleTask], task_id: str) -> Classification:
    """
    Classify a task within a snapshot.
    
    Returns:
        Classification with the applicable rule and the reference predecessor
        
    Raises:
        ValueError: If task_id is not in the snapshot
    """
    ordered = sort_tasks(tasks)
    index = index_of(ordered, task_id)
    if index < 0:
        raise ValueError(f"Task {task_id} not found in snapshot")
    return classify_at(ordered, index)


def renumber(ordered: List[ScheduleTask]) -> List[ScheduleTask]:
    """Assign consecutive order values 0..n-1 following the list sequence."""
    for i, task in enumerate(ordered):
        task.order = float(i)
    return ordered


def move_after(ordered: List[ScheduleTask], task: ScheduleTask, anchor: ScheduleTask) -> List[ScheduleTask]:
    """
    Reposition `task` directly behind `anchor`.
    
    The moved task gets an order between the anchor and the anchor's next
    neighbour; other tasks keep their order. Only when there is no gap
    (equal orders) is the whole sequence renumbered.
    
    Returns:
        New list in processing sequence
    """
    rest = [t for t in ordered if t.task_id != task.task_id]
    position = index_of(rest, anchor.task_id) + 1
    following = rest[position] if position < len(rest) else None
    rest.insert(position, task)

    if following is None:
        task.order = anchor.order + 1
    elif following.order > anchor.order:
        task.order = (anchor.order + following.order) / 2
    else:
        renumber(rest)
    return rest


def move_before(ordered: List[ScheduleTask], task: ScheduleTask, anchor: ScheduleTask) -> List[ScheduleTask]:
    """
    Reposition `task` directly in front of `anchor`.
    
    Mirror of move_after: the moved task gets an order between the anchor and
    the task currently in front of it, renumbering only when there is no gap.
    
    Returns:
        New list in processing sequence
    """
    rest = [t for t in ordered if t.task_id != task.task_id]
    position = index_of(rest, anchor.task_id)
    preceding = rest[position - 1] if position > 0 else None
    rest.insert(position, task)

    if preceding is None:
        task.order = anchor.order - 1
    elif preceding.order < anchor.order:
        task.order = (preceding.order + anchor.order) / 2
    else:
        renumber(rest)
    return rest
