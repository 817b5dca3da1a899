from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

from siteplan.scheduling.types import ScheduleTask

db = SQLAlchemy()


class Location(db.Model):
    """A construction-site location whose tasks are scheduled together."""
    __tablename__ = "locations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    # Bumped on every schedule write; guards against interleaved writers
    schedule_version = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tasks = db.relationship("Task", backref="location", lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "schedule_version": self.schedule_version,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class Task(db.Model):
    """A scheduled work task at a location."""
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.String(128), unique=True, nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id", ondelete="CASCADE"),
                            nullable=False, index=True)

    # Scheduling fields
    order = db.Column(db.Float, nullable=False, default=0.0)
    task_date = db.Column(db.Date, nullable=False)
    dependent_on_previous = db.Column(db.Boolean, nullable=False, default=True)
    linked_task_group = db.Column(db.String(64), nullable=True, index=True)

    # Passthrough fields
    name = db.Column(db.String(255), nullable=False)
    task_type = db.Column(db.String(64), nullable=True)
    cost_code = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(32), nullable=False, default="upcoming")  # upcoming, in_progress, complete
    work_description = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    scheduled_hours = db.Column(db.Float, nullable=True)

    last_updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    PASSTHROUGH_COLUMNS = ("work_description", "notes", "scheduled_hours")

    def to_schedule_task(self) -> ScheduleTask:
        """Convert the row into the engine's value object."""
        return ScheduleTask(
            task_id=self.task_id,
            order=float(self.order or 0.0),
            task_date=self.task_date,
            dependent_on_previous=bool(self.dependent_on_previous),
            linked_task_group=self.linked_task_group,
            name=self.name,
            task_type=self.task_type,
            cost_code=self.cost_code,
            status=self.status,
            extra={column: getattr(self, column) for column in self.PASSTHROUGH_COLUMNS},
        )

    @classmethod
    def from_schedule_task(cls, location_id: int, task: ScheduleTask) -> "Task":
        row = cls(
            task_id=task.task_id,
            location_id=location_id,
            order=task.order,
            task_date=task.task_date,
            dependent_on_previous=task.dependent_on_previous,
            linked_task_group=task.linked_task_group,
            name=task.name,
            task_type=task.task_type,
            cost_code=task.cost_code,
            status=task.status,
        )
        for column in cls.PASSTHROUGH_COLUMNS:
            if column in task.extra:
                setattr(row, column, task.extra[column])
        return row

    def to_dict(self):
        return {
            "id": self.id,
            "location_id": self.location_id,
            **self.to_schedule_task().to_dict(),
            "last_updated_at": self.last_updated_at.isoformat() if self.last_updated_at else None,
        }
