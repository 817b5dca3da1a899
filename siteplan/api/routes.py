"""
Schedule API routes.

Each mutating endpoint reads a fresh snapshot of the location, runs one engine
operation and persists the change-set. The response always carries the full
corrected snapshot so clients can re-render without a second request.
"""
from flask import jsonify, request

from siteplan.api import schedule_bp
from siteplan.api.helpers import (
    ERROR_STATUS,
    parse_date_field,
    parse_enum,
    parse_id_list,
    parse_new_task,
    parse_optional_bool,
    parse_position,
    parse_version,
    require_field,
    require_json,
)
from siteplan.api.payloads import (
    ChangeDateRequest,
    InsertRequest,
    LinkRequest,
    ReorderRequest,
    UnlinkRequest,
)
from siteplan.logging_config import get_logger
from siteplan.scheduling.engine import find_violations
from siteplan.scheduling.service import ScheduleService
from siteplan.scheduling.types import DateChangeAction, LinkPolicy, UnlinkMode

logger = get_logger(__name__)


def _respond(result):
    if result.ok:
        return jsonify(result.to_dict()), 200
    return jsonify(result.to_dict()), ERROR_STATUS[result.error.kind]


def _run(location_id, operation, payload, **params):
    try:
        result = ScheduleService.run(
            location_id, operation, expected_version=parse_version(payload), **params)
        return _respond(result)
    except Exception as e:
        logger.error(f"Error in schedule {operation}", location_id=location_id,
                     error=str(e), exc_info=True)
        return jsonify({'status': 'error', 'error': {'kind': 'internal', 'message': str(e)}}), 500


def _bad_request(message):
    return jsonify({'status': 'error', 'error': {'kind': 'bad_request', 'message': message}}), 400


@schedule_bp.route("/locations/<int:location_id>/tasks", methods=["GET"])
def get_location_tasks(location_id):
    """Return a location's tasks in processing sequence with any invariant violations."""
    try:
        location, tasks = ScheduleService.load_snapshot(location_id)
        if location is None:
            return jsonify({'status': 'error', 'error': {
                'kind': 'not_found', 'message': f"Location {location_id} not found"}}), 404
        return jsonify({
            'status': 'success',
            'location': location.to_dict(),
            'tasks': [t.to_dict() for t in tasks],
            'version': location.schedule_version,
            'violations': find_violations(tasks),
        }), 200
    except Exception as e:
        logger.error("Error loading location tasks", location_id=location_id,
                     error=str(e), exc_info=True)
        return jsonify({'status': 'error', 'error': {'kind': 'internal', 'message': str(e)}}), 500


@schedule_bp.route("/locations/<int:location_id>/tasks/realign", methods=["POST"])
def realign_location(location_id):
    """Re-run realignment over the stored snapshot and persist any corrections."""
    try:
        payload = require_json(request.get_json(silent=True) or {})
        parse_version(payload)
    except ValueError as e:
        return _bad_request(str(e))
    return _run(location_id, 'realign', payload)


@schedule_bp.route("/locations/<int:location_id>/tasks/reorder", methods=["POST"])
def reorder_location_task(location_id):
    """
    Move a task to a new position.
    
    Expected JSON body:
    {
        "task_id": "T5",
        "new_index": 2,
        "join_group": null,  # true/false when dropped inside a linked group
        "version": 3         # optional
    }
    """
    try:
        payload: ReorderRequest = require_json(request.get_json(silent=True))
        task_id = str(require_field(payload, 'task_id'))
        new_index = require_field(payload, 'new_index')
        if isinstance(new_index, bool) or not isinstance(new_index, int):
            raise ValueError("new_index must be an integer")
        join_group = parse_optional_bool(payload, 'join_group')
        parse_version(payload)
    except ValueError as e:
        return _bad_request(str(e))

    return _run(location_id, 'reorder', payload,
                task_id=task_id, new_index=new_index, join_group=join_group)


@schedule_bp.route("/locations/<int:location_id>/tasks/insert", methods=["POST"])
def insert_location_task(location_id):
    """
    Add a task.
    
    Expected JSON body:
    {
        "task": {"task_id": "T9", "name": "Pour", "task_date": "2025-06-02",
                 "dependent_on_previous": true},
        "position": "after",        # start, end, after, linked_with
        "target_task_id": "T4",     # for after / linked_with
        "version": 3                # optional
    }
    """
    try:
        payload: InsertRequest = require_json(request.get_json(silent=True))
        new_task = parse_new_task(payload)
        position = parse_position(payload)
        parse_version(payload)
    except ValueError as e:
        return _bad_request(str(e))

    return _run(location_id, 'insert', payload, new_task=new_task, position=position)


@schedule_bp.route("/locations/<int:location_id>/tasks/link", methods=["POST"])
def link_location_tasks(location_id):
    """
    Link tasks so they share one date.
    
    Expected JSON body:
    {
        "source_task_id": "T2",
        "target_task_ids": ["T3"],
        "policy": "unsequential",   # optional; omitted asks back unless it is a special pair
        "anchor_task_id": "T2",     # optional
        "version": 3                # optional
    }
    """
    try:
        payload: LinkRequest = require_json(request.get_json(silent=True))
        source_id = str(require_field(payload, 'source_task_id'))
        target_ids = parse_id_list(payload, 'target_task_ids')
        policy = parse_enum(LinkPolicy, payload.get('policy'), 'policy')
        anchor_id = payload.get('anchor_task_id')
        parse_version(payload)
    except ValueError as e:
        return _bad_request(str(e))

    return _run(location_id, 'link', payload, source_id=source_id, target_ids=target_ids,
                policy=policy, anchor_id=str(anchor_id) if anchor_id else None)


@schedule_bp.route("/locations/<int:location_id>/tasks/unlink", methods=["POST"])
def unlink_location_task(location_id):
    """
    Dissolve a linked group or detach one task.
    
    Expected JSON body:
    {
        "task_id": "T3",
        "mode": "just_this_task",   # or whole_group
        "version": 3                # optional
    }
    """
    try:
        payload: UnlinkRequest = require_json(request.get_json(silent=True))
        task_id = str(require_field(payload, 'task_id'))
        mode = parse_enum(UnlinkMode, payload.get('mode'), 'mode')
        parse_version(payload)
    except ValueError as e:
        return _bad_request(str(e))

    return _run(location_id, 'unlink', payload, task_id=task_id, mode=mode)


@schedule_bp.route("/locations/<int:location_id>/tasks/change-date", methods=["POST"])
def change_location_task_date(location_id):
    """
    Change a task's date.
    
    Expected JSON body:
    {
        "task_id": "T4",
        "new_date": "2025-06-10",
        "action": "make_nonsequential_shift_others",
        "version": 3                # optional
    }
    """
    try:
        payload: ChangeDateRequest = require_json(request.get_json(silent=True))
        task_id = str(require_field(payload, 'task_id'))
        new_date = parse_date_field(payload, 'new_date')
        action = parse_enum(DateChangeAction, payload.get('action'), 'action')
        parse_version(payload)
    except ValueError as e:
        return _bad_request(str(e))

    return _run(location_id, 'change_date', payload,
                task_id=task_id, new_date=new_date, action=action)


@schedule_bp.route("/locations/<int:location_id>/tasks/<task_id>", methods=["DELETE"])
def delete_location_task(location_id, task_id):
    """Delete a task; the optional JSON body may carry a version."""
    try:
        payload = require_json(request.get_json(silent=True) or {})
        parse_version(payload)
    except ValueError as e:
        return _bad_request(str(e))

    return _run(location_id, 'delete', payload, task_id=task_id)
