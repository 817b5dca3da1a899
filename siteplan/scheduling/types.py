"""
Value objects for the scheduling engine.

A location's schedule is handled as a snapshot: a plain list of ScheduleTask
records. The engine never mutates the records it is given; every operation
works on copies and hands back a new list.
"""
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from siteplan.datetime_utils import format_iso_date, parse_iso_date

COMPLETE_STATUS = 'complete'


class DependencyKind(Enum):
    """Which date rule applies to a task."""
    FIRST = "first"
    NONSEQUENTIAL = "nonsequential"
    SEQUENTIAL = "sequential"


class LinkPolicy(Enum):
    """How a new linked group picks its shared date."""
    SEQUENTIAL_GROUP = "sequential_group"
    SEQUENTIAL_SINGLE = "sequential_single"
    UNSEQUENTIAL = "unsequential"
    SPECIAL_PAIR = "special_pair"


class UnlinkMode(Enum):
    WHOLE_GROUP = "whole_group"
    JUST_THIS_TASK = "just_this_task"


class DateChangeAction(Enum):
    KEEP_SEQUENTIAL = "keep_sequential"
    MAKE_NONSEQUENTIAL_MOVE_ONLY = "make_nonsequential_move_only"
    MAKE_NONSEQUENTIAL_SHIFT_OTHERS = "make_nonsequential_shift_others"


class InsertPosition(Enum):
    START = "start"
    END = "end"
    AFTER = "after"
    LINKED_WITH = "linked_with"


class ChangeKind(Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class PositionSpec:
    """Where insert_task places a new task. AFTER and LINKED_WITH need task_id."""
    position: InsertPosition
    task_id: Optional[str] = None

    @classmethod
    def start(cls) -> 'PositionSpec':
        return cls(InsertPosition.START)

    @classmethod
    def end(cls) -> 'PositionSpec':
        return cls(InsertPosition.END)

    @classmethod
    def after(cls, task_id: str) -> 'PositionSpec':
        return cls(InsertPosition.AFTER, task_id)

    @classmethod
    def linked_with(cls, task_id: str) -> 'PositionSpec':
        return cls(InsertPosition.LINKED_WITH, task_id)


TRUE_STRINGS = ("true", "1", "yes")
FALSE_STRINGS = ("false", "0", "no")


def parse_flag(value: Any, default: bool = True) -> bool:
    """
    Read a boolean from a payload value.
    
    Accepts real booleans, 0/1 and the strings true/false, yes/no, 1/0 in any
    case. None falls back to `default`.
    
    Raises:
        ValueError: For anything else, e.g. "maybe" or 2
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
    raise ValueError(f"Expected a boolean, got {value!r}")


# Fields the engine reads or writes. Everything else rides along in `extra`.
SCHEDULE_FIELDS = (
    'task_id', 'order', 'task_date', 'dependent_on_previous', 'linked_task_group',
    'name', 'task_type', 'cost_code', 'status',
)


@dataclass
class ScheduleTask:
    """One task in a location's schedule."""
    task_id: str
    order: float
    task_date: date
    dependent_on_previous: bool = True
    linked_task_group: Optional[str] = None
    name: str = ''
    task_type: Optional[str] = None
    cost_code: Optional[str] = None
    status: str = 'upcoming'
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return self.status == COMPLETE_STATUS

    def copy(self, **changes) -> 'ScheduleTask':
        """Return a copy with the given fields replaced; extra is copied too."""
        changes.setdefault('extra', dict(self.extra))
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScheduleTask':
        """
        Build a task from a plain dict (API payload or DB row dict).
        
        Raises:
            KeyError: If task_id is missing
            ValueError: If task_date, order or dependent_on_previous cannot be parsed
        """
        extra = {k: v for k, v in data.items() if k not in SCHEDULE_FIELDS}
        order = data.get('order')
        return cls(
            task_id=str(data['task_id']),
            order=float(order) if order is not None else 0.0,
            task_date=parse_iso_date(data.get('task_date')),
            dependent_on_previous=parse_flag(data.get('dependent_on_previous'), default=True),
            linked_task_group=data.get('linked_task_group') or None,
            name=data.get('name') or '',
            task_type=data.get('task_type'),
            cost_code=data.get('cost_code'),
            status=data.get('status') or 'upcoming',
            extra=extra,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON response"""
        return {
            **self.extra,
            'task_id': self.task_id,
            'order': self.order,
            'task_date': format_iso_date(self.task_date),
            'dependent_on_previous': self.dependent_on_previous,
            'linked_task_group': self.linked_task_group,
            'name': self.name,
            'task_type': self.task_type,
            'cost_code': self.cost_code,
            'status': self.status,
        }


@dataclass
class TaskChange:
    """Field deltas for one task between two snapshots."""
    task_id: str
    kind: ChangeKind
    changed_fields: Dict[str, Tuple[Any, Any]] = field(default_factory=dict)

    def new_values(self) -> Dict[str, Any]:
        return {name: new for name, (_, new) in self.changed_fields.items()}

    def to_dict(self) -> dict:
        def _plain(value):
            return format_iso_date(value) if isinstance(value, date) else value

        return {
            'task_id': self.task_id,
            'kind': self.kind.value,
            'changed_fields': {
                name: {'from': _plain(old), 'to': _plain(new)}
                for name, (old, new) in self.changed_fields.items()
            },
        }


def copy_tasks(tasks: List[ScheduleTask]) -> List[ScheduleTask]:
    return [t.copy() for t in tasks]
