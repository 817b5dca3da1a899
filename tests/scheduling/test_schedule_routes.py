"""
Tests for the schedule API routes (Flask endpoints).
These tests verify HTTP request/response handling and error-kind status mapping.
"""
from datetime import date
from unittest.mock import patch

import pytest

from siteplan import create_app
from siteplan.models import Location, Task, db


@pytest.fixture
def app():
    """Create Flask application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def location(app):
    """T1 Mon fixed, T2/T3 sequential, T4 fixed on the 10th."""
    loc = Location(name='Level 3')
    db.session.add(loc)
    db.session.flush()
    rows = [
        ('T1', 0, date(2025, 6, 2), False, 'Form - Day 1'),
        ('T2', 1, date(2025, 6, 3), True, 'Form - Day 2'),
        ('T3', 2, date(2025, 6, 4), True, 'Pour'),
        ('T4', 3, date(2025, 6, 10), False, 'Cure check'),
    ]
    for task_id, order, task_date, dep, name in rows:
        db.session.add(Task(task_id=task_id, location_id=loc.id, order=order, task_date=task_date,
                            dependent_on_previous=dep, name=name, task_type='concrete'))
    db.session.commit()
    return loc.id


def _tasks(response):
    return {t['task_id']: t for t in response.get_json()['tasks']}


# ==============================================================================
# GET /api/locations/<id>/tasks TESTS
# ==============================================================================

class TestGetLocationTasks:
    """Tests for GET /api/locations/<id>/tasks."""

    def test_returns_snapshot_and_version(self, client, location):
        response = client.get(f'/api/locations/{location}/tasks')

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'success'
        assert data['version'] == 0
        assert [t['task_id'] for t in data['tasks']] == ['T1', 'T2', 'T3', 'T4']
        assert data['tasks'][0]['task_date'] == '2025-06-02'
        assert data['violations'] == []

    def test_unknown_location_is_404(self, client, app):
        response = client.get('/api/locations/999/tasks')
        assert response.status_code == 404

    def test_health(self, client, app):
        assert client.get('/health').get_json()['status'] == 'ok'


# ==============================================================================
# MUTATION ROUTE TESTS
# ==============================================================================

class TestMutationRoutes:
    """Tests for the POST/DELETE schedule endpoints."""

    def test_reorder(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/reorder',
                               json={'task_id': 'T3', 'new_index': 1})

        assert response.status_code == 200
        data = response.get_json()
        assert [t['task_id'] for t in data['tasks']] == ['T1', 'T3', 'T2', 'T4']
        assert data['version'] == 1
        assert _tasks(response)['T2']['task_date'] == '2025-06-04'

    def test_reorder_requires_integer_index(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/reorder',
                               json={'task_id': 'T3', 'new_index': 'top'})
        assert response.status_code == 400

    def test_link_without_policy_is_422(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/link',
                               json={'source_task_id': 'T2', 'target_task_ids': ['T4']})

        assert response.status_code == 422
        assert response.get_json()['error']['kind'] == 'ambiguous_policy'

    def test_link_with_unknown_policy_is_400(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/link',
                               json={'source_task_id': 'T2', 'target_task_ids': ['T4'],
                                     'policy': 'whatever'})
        assert response.status_code == 400

    def test_link_unsequential(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/link',
                               json={'source_task_id': 'T2', 'target_task_ids': ['T4'],
                                     'policy': 'unsequential', 'anchor_task_id': 'T2'})

        assert response.status_code == 200
        tasks = _tasks(response)
        assert tasks['T4']['task_date'] == '2025-06-03'
        assert tasks['T4']['linked_task_group'] == tasks['T2']['linked_task_group']

    def test_link_unknown_task_is_404(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/link',
                               json={'source_task_id': 'T2', 'target_task_ids': ['T9'],
                                     'policy': 'unsequential'})
        assert response.status_code == 404

    def test_unlink_not_linked_is_409(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/unlink',
                               json={'task_id': 'T2', 'mode': 'whole_group'})
        assert response.status_code == 409

    def test_insert_after(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/insert', json={
            'task': {'task_id': 'T5', 'name': 'Strip', 'dependent_on_previous': True,
                     'notes': 'crew B'},
            'position': 'after',
            'target_task_id': 'T3',
        })

        assert response.status_code == 200
        tasks = _tasks(response)
        assert tasks['T5']['task_date'] == '2025-06-05'
        assert Task.query.filter_by(task_id='T5').one().notes == 'crew B'

    def test_insert_after_requires_target(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/insert', json={
            'task': {'task_id': 'T5', 'name': 'Strip'},
            'position': 'after',
        })
        assert response.status_code == 400

    def test_insert_reads_string_flag(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/insert', json={
            'task': {'task_id': 'T5', 'name': 'Inspect', 'task_date': '2025-06-20',
                     'dependent_on_previous': 'false'},
            'position': 'end',
        })

        assert response.status_code == 200
        tasks = _tasks(response)
        assert tasks['T5']['dependent_on_previous'] is False
        assert tasks['T5']['task_date'] == '2025-06-20'

    def test_insert_unreadable_flag_is_400(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/insert', json={
            'task': {'task_id': 'T5', 'name': 'Inspect', 'dependent_on_previous': 'sometimes'},
            'position': 'end',
        })

        assert response.status_code == 400
        assert 'sometimes' in response.get_json()['error']['message']
        assert Task.query.filter_by(task_id='T5').count() == 0

    def test_change_date_move_only(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/change-date', json={
            'task_id': 'T2', 'new_date': '2025-06-09', 'action': 'make_nonsequential_move_only',
        })

        assert response.status_code == 200
        tasks = _tasks(response)
        assert tasks['T2']['dependent_on_previous'] is False
        assert tasks['T3']['task_date'] == '2025-06-10'

    def test_change_date_bad_date_is_400(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/change-date', json={
            'task_id': 'T2', 'new_date': 'next tuesday', 'action': 'keep_sequential',
        })
        assert response.status_code == 400

    def test_delete_relabels_day_cohort(self, client, location):
        response = client.delete(f'/api/locations/{location}/tasks/T1')

        assert response.status_code == 200
        tasks = _tasks(response)
        assert 'T1' not in tasks
        assert tasks['T2']['name'] == 'Form - Day 1'
        assert Task.query.filter_by(task_id='T1').one_or_none() is None

    def test_stale_version_is_409(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/realign', json={'version': 4})

        assert response.status_code == 409
        assert response.get_json()['error']['kind'] == 'stale_snapshot'

    def test_body_must_be_object(self, client, location):
        response = client.post(f'/api/locations/{location}/tasks/unlink', json=['T2'])
        assert response.status_code == 400

    @patch('siteplan.api.routes.ScheduleService.run')
    def test_unexpected_error_is_500(self, mock_run, client, location):
        mock_run.side_effect = RuntimeError("database went away")

        response = client.post(f'/api/locations/{location}/tasks/realign')

        assert response.status_code == 500
        assert 'database went away' in response.get_json()['error']['message']
