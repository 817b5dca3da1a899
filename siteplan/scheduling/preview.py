"""
Preview what a realignment would change for a location, without writing.
"""

from typing import Any, Dict

from siteplan.logging_config import get_logger
from siteplan.scheduling.engine import find_violations, realign_snapshot
from siteplan.scheduling.service import ScheduleService

logger = get_logger(__name__)


def preview_schedule_changes(location_id: int) -> Dict[str, Any]:
    """
    Realign a stored location in memory and report the would-be change-set.
    
    Args:
        location_id: Location to preview
        
    Returns:
        dict: Preview results with changes, current violations and summary
        
    Raises:
        ValueError: If the location does not exist
    """
    location, tasks = ScheduleService.load_snapshot(location_id)
    if location is None:
        raise ValueError(f"Location {location_id} not found")

    logger.info("Previewing schedule realignment", location_id=location_id, tasks=len(tasks))

    current_violations = find_violations(tasks)
    result = realign_snapshot(tasks)
    if not result.ok:
        return {
            'location': location.to_dict(),
            'error': result.error.to_dict(),
            'changes': [],
            'current_violations': current_violations,
            'summary': {},
        }

    names = {t.task_id: t.name for t in tasks}
    changes = []
    for change in result.changes:
        entry = change.to_dict()
        entry['name'] = names.get(change.task_id)
        changes.append(entry)

    return {
        'location': location.to_dict(),
        'error': None,
        'changes': changes,
        'current_violations': current_violations,
        'remaining_violations': find_violations(result.tasks),
        'summary': {
            'total_tasks': len(tasks),
            'tasks_with_changes': len(result.changes),
            'tasks_without_changes': len(tasks) - len(result.changes),
            'date_changes': sum(1 for c in result.changes if 'task_date' in c.changed_fields),
            'flag_changes': sum(1 for c in result.changes if 'dependent_on_previous' in c.changed_fields),
        },
    }


def print_preview(preview_results: Dict[str, Any], detailed: bool = True):
    """
    Print a formatted preview of schedule changes.
    
    Args:
        preview_results: Results from preview_schedule_changes()
        detailed: If True, show each changed task. If False, only show summary.
    """
    location = preview_results.get('location', {})
    summary = preview_results.get('summary', {})
    changes = preview_results.get('changes', [])

    print("\n" + "=" * 80)
    print(f"SCHEDULE PREVIEW - {location.get('name', 'N/A')} (version {location.get('schedule_version')})")
    print("=" * 80)

    if preview_results.get('error'):
        print(f"\nCannot realign: {preview_results['error']['message']}")
        print("\n" + "=" * 80)
        return

    if summary:
        print(f"\nTotal Tasks: {summary.get('total_tasks', 0)}")
        print(f"Tasks with Changes: {summary.get('tasks_with_changes', 0)}")
        print(f"Date Changes: {summary.get('date_changes', 0)}")
        print(f"Sequential Flag Changes: {summary.get('flag_changes', 0)}")

    violations = preview_results.get('current_violations', [])
    if violations:
        print(f"\nCurrent Violations ({len(violations)}):")
        for violation in violations:
            print(f"  ⚠️  {violation}")

    if not detailed or not changes:
        print("\n" + "=" * 80)
        return

    print("\n" + "=" * 80)
    print("DETAILED CHANGES")
    print("=" * 80)

    for change in changes:
        print(f"\nTask: {change['task_id']} - {change.get('name') or 'N/A'}")
        for field_name, values in change['changed_fields'].items():
            print(f"  {field_name}: {values['from']} → {values['to']}")

    print("\n" + "=" * 80)
