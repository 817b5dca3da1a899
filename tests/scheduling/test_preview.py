"""
Tests for the realignment preview.
"""
from datetime import date

import pytest

from siteplan import create_app
from siteplan.models import Location, Task, db
from siteplan.scheduling.preview import preview_schedule_changes, print_preview


@pytest.fixture
def app():
    """Create Flask application for testing."""
    app = create_app({'TESTING': True, 'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:'})

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def location(app):
    loc = Location(name='Podium')
    db.session.add(loc)
    db.session.flush()
    db.session.add_all([
        Task(task_id='T1', location_id=loc.id, order=0, task_date=date(2025, 6, 2),
             dependent_on_previous=True, name='Layout'),
        Task(task_id='T2', location_id=loc.id, order=1, task_date=date(2025, 6, 20),
             dependent_on_previous=True, name='Excavate'),
    ])
    db.session.commit()
    return loc.id


class TestPreviewScheduleChanges:
    """Tests for preview_schedule_changes and print_preview."""

    def test_reports_changes_without_writing(self, location):
        preview = preview_schedule_changes(location)

        assert preview['error'] is None
        assert preview['summary']['tasks_with_changes'] == 2
        assert preview['summary']['date_changes'] == 1
        assert preview['summary']['flag_changes'] == 1
        assert len(preview['current_violations']) == 2
        assert preview['remaining_violations'] == []
        names = {c['task_id']: c['name'] for c in preview['changes']}
        assert names == {'T1': 'Layout', 'T2': 'Excavate'}

        row = Task.query.filter_by(task_id='T2').one()
        assert row.task_date == date(2025, 6, 20)
        assert db.session.get(Location, location).schedule_version == 0

    def test_unknown_location_raises(self, app):
        with pytest.raises(ValueError):
            preview_schedule_changes(404)

    def test_print_preview(self, location, capsys):
        print_preview(preview_schedule_changes(location))

        out = capsys.readouterr().out
        assert 'SCHEDULE PREVIEW - Podium' in out
        assert 'task_date: 2025-06-20 → 2025-06-03' in out
