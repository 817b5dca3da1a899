"""
Persistence boundary for the scheduling engine.

Loads a fresh snapshot of a location's tasks, runs one engine operation on it
and writes the resulting change-set back in a single transaction. Writes are
guarded by the location's schedule_version counter so two editors working on
the same location cannot interleave partial updates.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from flask import current_app

from siteplan.logging_config import ScheduleContext, get_logger
from siteplan.models import Location, Task, db
from siteplan.scheduling.engine import find_violations, realign_snapshot
from siteplan.scheduling.linking import DEFAULT_GROUP_PREFIX, link_tasks, unlink_task
from siteplan.scheduling.ordering import change_date, delete_task, insert_task, reorder_task
from siteplan.scheduling.results import ErrorKind, ScheduleResult
from siteplan.scheduling.types import ChangeKind, ScheduleTask

logger = get_logger(__name__)

OPERATIONS = {
    'realign': realign_snapshot,
    'reorder': reorder_task,
    'insert': insert_task,
    'delete': delete_task,
    'link': link_tasks,
    'unlink': unlink_task,
    'change_date': change_date,
}

# Operations that may mint a new linked group id
GROUP_MINTING_OPERATIONS = ('insert', 'link')


class ScheduleService:
    """Runs engine operations against the database."""

    @staticmethod
    def load_snapshot(location_id: int) -> Tuple[Optional[Location], List[ScheduleTask]]:
        """
        Fetch a location and the complete snapshot of its tasks.
        
        Returns:
            (location, tasks); location is None if it does not exist
        """
        location = db.session.get(Location, location_id)
        if location is None:
            return None, []
        
        rows = Task.query.filter_by(location_id=location_id).order_by(Task.order.asc(), Task.id.asc()).all()
        return location, [row.to_schedule_task() for row in rows]

    @staticmethod
    def apply_changes(
        location_id: int,
        expected_version: int,
        before: List[ScheduleTask],
        result: ScheduleResult,
    ) -> ScheduleResult:
        """
        Persist a change-set atomically.
        
        The location's schedule_version is compared and bumped in the same
        transaction as the task writes. If another writer got there first the
        transaction is rolled back and STALE_SNAPSHOT is returned.
        
        Args:
            location_id: Location the snapshot belongs to
            expected_version: schedule_version the snapshot was read at
            before: Snapshot the engine was given
            result: Successful engine result to persist
            
        Returns:
            result with version set, or a STALE_SNAPSHOT failure
            
        Raises:
            Exception: Database errors are logged, rolled back and re-raised
        """
        if not result.ok:
            return result

        try:
            bumped = Location.query.filter_by(id=location_id, schedule_version=expected_version).update(
                {
                    Location.schedule_version: Location.schedule_version + 1,
                    Location.updated_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
            if bumped == 0:
                db.session.rollback()
                logger.warning(
                    "Schedule write rejected: snapshot is stale",
                    location_id=location_id,
                    expected_version=expected_version,
                )
                return ScheduleResult.failure(
                    before, ErrorKind.STALE_SNAPSHOT,
                    "The schedule was changed by someone else; reload and try again")

            after_by_id = {t.task_id: t for t in result.tasks}
            rows = {row.task_id: row for row in Task.query.filter_by(location_id=location_id).all()}

            for change in result.changes:
                if change.kind == ChangeKind.CREATE:
                    db.session.add(Task.from_schedule_task(location_id, after_by_id[change.task_id]))
                    continue

                row = rows.get(change.task_id)
                if row is None:
                    db.session.rollback()
                    return ScheduleResult.failure(
                        before, ErrorKind.STALE_SNAPSHOT,
                        f"Task {change.task_id} no longer exists; reload and try again",
                        change.task_id)

                if change.kind == ChangeKind.DELETE:
                    db.session.delete(row)
                else:
                    for field_name, value in change.new_values().items():
                        setattr(row, field_name, value)
                    row.last_updated_at = datetime.utcnow()

            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error("Error writing schedule change-set", location_id=location_id,
                         error=str(e), exc_info=True)
            raise

        logger.info(
            "Schedule change-set written",
            location_id=location_id,
            changes=len(result.changes),
            version=expected_version + 1,
        )
        result.version = expected_version + 1
        return result

    @staticmethod
    def run(location_id: int, operation: str, expected_version: Optional[int] = None, **params) -> ScheduleResult:
        """
        Fetch a fresh snapshot, run an engine operation and persist the result.
        
        Args:
            location_id: Location to operate on
            operation: One of OPERATIONS ('reorder', 'link', ...)
            expected_version: Version the caller last saw; a mismatch is STALE_SNAPSHOT
            **params: Keyword arguments for the engine operation (without the snapshot)
            
        Returns:
            ScheduleResult (with version on success)
        """
        handler = OPERATIONS.get(operation)
        if handler is None:
            raise ValueError(f"Unknown schedule operation: {operation}")

        with ScheduleContext(operation, location_id=location_id) as ctx:
            location, before = ScheduleService.load_snapshot(location_id)
            if location is None:
                return ctx.record(ScheduleResult.failure(
                    [], ErrorKind.NOT_FOUND, f"Location {location_id} not found"))

            version = location.schedule_version
            if expected_version is not None and expected_version != version:
                return ctx.record(ScheduleResult.failure(
                    before, ErrorKind.STALE_SNAPSHOT,
                    f"Schedule is at version {version}, request was based on {expected_version}"))

            if operation in GROUP_MINTING_OPERATIONS:
                params.setdefault(
                    'group_prefix',
                    current_app.config.get('LINKED_GROUP_ID_PREFIX', DEFAULT_GROUP_PREFIX),
                )

            result = handler(before, **params)
            if not result.ok:
                ctx.log.info("Schedule operation rejected", message=result.error.message)
                result.version = version
                return ctx.record(result)

            violations = find_violations(result.tasks)
            if violations:
                # Only completed tasks can hold the schedule out of line
                ctx.log.warning("Schedule still has violations", violations=violations)

            if not result.changes:
                result.version = version
                return ctx.record(result)

            return ctx.record(ScheduleService.apply_changes(location_id, version, before, result))
