"""
Change-set emission: the minimal per-task field deltas between two snapshots.
"""
from typing import List

from siteplan.scheduling.types import ChangeKind, ScheduleTask, TaskChange

TRACKED_FIELDS = (
    'task_date',
    'order',
    'dependent_on_previous',
    'linked_task_group',
    'name',  # day-label renumbering on delete
)


def diff_snapshots(before: List[ScheduleTask], after: List[ScheduleTask]) -> List[TaskChange]:
    """
    Compare two snapshots of the same location.
    
    Args:
        before: Snapshot handed to the engine
        after: Snapshot the engine produced
        
    Returns:
        List of TaskChange, one per created, updated or deleted task. Updates
        only list fields whose values differ; unchanged tasks are omitted.
    """
    before_by_id = {t.task_id: t for t in before}
    after_ids = set()
    changes: List[TaskChange] = []

    for task in after:
        after_ids.add(task.task_id)
        old = before_by_id.get(task.task_id)
        if old is None:
            changes.append(TaskChange(
                task_id=task.task_id,
                kind=ChangeKind.CREATE,
                changed_fields={name: (None, getattr(task, name)) for name in TRACKED_FIELDS},
            ))
            continue

        changed = {}
        for name in TRACKED_FIELDS:
            old_value = getattr(old, name)
            new_value = getattr(task, name)
            if old_value != new_value:
                changed[name] = (old_value, new_value)
        if changed:
            changes.append(TaskChange(task_id=task.task_id, kind=ChangeKind.UPDATE, changed_fields=changed))

    for task in before:
        if task.task_id not in after_ids:
            changes.append(TaskChange(task_id=task.task_id, kind=ChangeKind.DELETE))

    return changes
