from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from siteplan.scheduling.types import ScheduleTask, TaskChange


class ErrorKind(Enum):
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    AMBIGUOUS_POLICY = "ambiguous_policy"
    MALFORMED_SNAPSHOT = "malformed_snapshot"
    STALE_SNAPSHOT = "stale_snapshot"


@dataclass
class ScheduleError:
    kind: ErrorKind
    message: str
    task_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "task_id": self.task_id,
        }


@dataclass
class ScheduleResult:
    """
    Outcome of an engine operation.
    
    On success `tasks` is the corrected snapshot and `changes` the change-set
    against the input. On failure `tasks` is the untouched input snapshot,
    `changes` is empty and `error` says why.
    """
    tasks: List[ScheduleTask]
    changes: List[TaskChange] = field(default_factory=list)
    error: Optional[ScheduleError] = None
    # Location schedule_version after persistence; None for pure engine calls
    version: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, tasks: List[ScheduleTask], kind: ErrorKind, message: str,
                task_id: Optional[str] = None) -> 'ScheduleResult':
        return cls(tasks=list(tasks), changes=[], error=ScheduleError(kind, message, task_id))

    def to_dict(self) -> dict:
        """Serialize for JSON response"""
        return {
            "status": "success" if self.ok else "error",
            "tasks": [t.to_dict() for t in self.tasks],
            "changes": [c.to_dict() for c in self.changes],
            "error": self.error.to_dict() if self.error else None,
            "version": self.version,
        }
