"""
Request parsing for the schedule API.

Every helper raises ValueError with a message fit for a 400 response.
"""
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

from siteplan.datetime_utils import parse_iso_date
from siteplan.scheduling.results import ErrorKind
from siteplan.scheduling.types import InsertPosition, PositionSpec, ScheduleTask

E = TypeVar('E', bound=Enum)

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.AMBIGUOUS_POLICY: 422,
    ErrorKind.MALFORMED_SNAPSHOT: 500,
    ErrorKind.STALE_SNAPSHOT: 409,
}


def require_json(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object")
    return payload


def require_field(payload: Dict[str, Any], name: str) -> Any:
    value = payload.get(name)
    if value is None or value == '':
        raise ValueError(f"{name} is required")
    return value


def parse_enum(enum_cls: Type[E], value: Optional[str], field_name: str) -> Optional[E]:
    """Map a request value onto an enum member; None stays None so the engine can ask back."""
    if value is None:
        return None
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Invalid {field_name} '{value}'. Must be one of: {allowed}")


def parse_date_field(payload: Dict[str, Any], name: str) -> date:
    raw = require_field(payload, name)
    try:
        return parse_iso_date(raw)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an ISO date (YYYY-MM-DD), got '{raw}'")


def parse_version(payload: Dict[str, Any]) -> Optional[int]:
    raw = payload.get('version')
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError("version must be an integer")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValueError("version must be an integer")


def parse_optional_bool(payload: Dict[str, Any], name: str) -> Optional[bool]:
    value = payload.get(name)
    if value is None or isinstance(value, bool):
        return value
    raise ValueError(f"{name} must be true, false or null")


def parse_id_list(payload: Dict[str, Any], name: str) -> List[str]:
    value = payload.get(name)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{name} must be a list of task ids")
    return [str(item) for item in value]


def parse_new_task(payload: Dict[str, Any]) -> ScheduleTask:
    """Build the task to insert; order is assigned by the engine."""
    data = payload.get('task')
    if not isinstance(data, dict):
        raise ValueError("task must be an object")
    require_field(data, 'task_id')
    require_field(data, 'name')
    try:
        return ScheduleTask.from_dict({**data, 'order': 0})
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid task: {e}")


def parse_position(payload: Dict[str, Any]) -> PositionSpec:
    position = parse_enum(InsertPosition, require_field(payload, 'position'), 'position')
    target = payload.get('target_task_id')
    if position in (InsertPosition.AFTER, InsertPosition.LINKED_WITH) and not target:
        raise ValueError(f"target_task_id is required for position '{position.value}'")
    return PositionSpec(position, str(target) if target else None)
