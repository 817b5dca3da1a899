"""
Tests for the realignment engine (pure business logic).
These tests have no database or Flask dependencies - they test pure functions.
"""
import random
from datetime import date, timedelta

import pytest

from siteplan.scheduling.engine import find_violations, realign, realign_snapshot, validate_snapshot
from siteplan.scheduling.linking import link_tasks
from siteplan.scheduling.results import ErrorKind
from siteplan.scheduling.types import ChangeKind, LinkPolicy, ScheduleTask


def _task(task_id, order, day, dep=True, group=None, **kwargs):
    return ScheduleTask(task_id=task_id, order=order, task_date=date(2025, 6, day),
                        dependent_on_previous=dep, linked_task_group=group, **kwargs)


def _dates(tasks):
    return {t.task_id: t.task_date for t in tasks}


def _generated_snapshot(seed):
    """
    Random location of 1-9 tasks in shuffled list order.
    
    Dates fall anywhere in June 2025 (weekends included), groups g1 and g2
    interleave, and some tasks are complete. Completed members of one group
    share a date, since nothing can reconcile two finished dates.
    """
    rng = random.Random(seed)
    count = rng.randint(1, 9)
    orders = rng.sample(range(20), count)
    completed_dates = {}
    tasks = []
    for i, order in enumerate(orders):
        group = rng.choice([None, None, 'g1', 'g2'])
        task_date = date(2025, 6, 1) + timedelta(days=rng.randint(0, 29))
        status = 'complete' if rng.random() < 0.15 else 'upcoming'
        if status == 'complete' and group:
            task_date = completed_dates.setdefault(group, task_date)
        tasks.append(ScheduleTask(
            task_id=f'T{i}', order=order, task_date=task_date,
            dependent_on_previous=rng.random() < 0.6, linked_task_group=group, status=status,
        ))
    rng.shuffle(tasks)
    return tasks


# ==============================================================================
# REALIGN TESTS
# ==============================================================================

class TestRealign:
    """Tests for realign date propagation."""

    def test_sequential_task_follows_predecessor(self):
        """T1 on Monday, sequential T2 lands on Tuesday."""
        tasks = [_task('T1', 0, 2, dep=False), _task('T2', 1, 20)]

        result = realign(tasks)

        assert _dates(result)['T2'] == date(2025, 6, 3)

    def test_chain_skips_weekend(self):
        """A chain reaching Friday continues on Monday."""
        tasks = [_task('T1', 0, 2, dep=False)] + [_task(f'T{i}', i - 1, 2) for i in range(2, 7)]

        result = _dates(realign(tasks))

        assert result['T5'] == date(2025, 6, 6)
        assert result['T6'] == date(2025, 6, 9)

    def test_first_task_forced_nonsequential(self):
        tasks = [_task('T1', 0, 4, dep=True), _task('T2', 1, 2)]

        result = realign(tasks)

        assert result[0].dependent_on_previous is False
        assert result[0].task_date == date(2025, 6, 4)
        assert result[1].task_date == date(2025, 6, 5)

    def test_nonsequential_task_keeps_date_and_restarts_chain(self):
        tasks = [_task('T1', 0, 2, dep=False), _task('T2', 1, 10, dep=False), _task('T3', 2, 2)]

        result = _dates(realign(tasks))

        assert result['T2'] == date(2025, 6, 10)
        assert result['T3'] == date(2025, 6, 11)

    def test_linked_group_shares_anchor_date(self):
        """Non-anchor members take the anchor's date and become non-sequential."""
        tasks = [
            _task('T1', 0, 2, dep=False),
            _task('T2', 1, 20, group='g1'),
            _task('T3', 2, 10, dep=True, group='g1'),
            _task('T4', 3, 2),
        ]

        result = {t.task_id: t for t in realign(tasks)}

        assert result['T2'].task_date == date(2025, 6, 3)
        assert result['T3'].task_date == date(2025, 6, 3)
        assert result['T3'].dependent_on_previous is False
        assert result['T4'].task_date == date(2025, 6, 4)

    def test_input_is_not_mutated(self):
        tasks = [_task('T1', 0, 2, dep=True), _task('T2', 1, 20)]

        realign(tasks)

        assert tasks[0].dependent_on_previous is True
        assert tasks[1].task_date == date(2025, 6, 20)

    def test_result_sorted_by_order(self):
        tasks = [_task('T2', 1, 3), _task('T1', 0, 2, dep=False)]
        assert [t.task_id for t in realign(tasks)] == ['T1', 'T2']

    def test_realign_is_idempotent(self):
        tasks = [
            _task('T1', 0, 6, dep=True),
            _task('T2', 1, 1, group='g1'),
            _task('T3', 2, 30, group='g1'),
            _task('T4', 3, 12, dep=False),
            _task('T5', 4, 1),
            _task('T6', 5, 1, group='g2'),
            _task('T7', 6, 17, dep=False, group='g2'),
        ]

        once = realign(tasks)
        twice = realign(once)

        assert [t.to_dict() for t in once] == [t.to_dict() for t in twice]
        assert find_violations(once) == []

    def test_orders_and_passthrough_fields_untouched(self):
        tasks = [
            _task('T1', 0, 2, dep=False, name='Form', extra={'notes': 'north wall'}),
            _task('T2', 5, 9, name='Pour', cost_code='03-300'),
        ]

        result = realign(tasks)

        assert [t.order for t in result] == [0, 5]
        assert result[0].extra == {'notes': 'north wall'}
        assert result[1].cost_code == '03-300'


class TestRealignCompletedTasks:
    """Completed tasks are read as predecessors but never rewritten."""

    def test_completed_task_keeps_date_and_flag(self):
        tasks = [
            _task('T1', 0, 2, dep=False),
            _task('T2', 1, 5, status='complete'),
            _task('T3', 2, 2),
        ]

        result = {t.task_id: t for t in realign(tasks)}

        assert result['T2'].task_date == date(2025, 6, 5)
        assert result['T2'].dependent_on_previous is True
        assert result['T3'].task_date == date(2025, 6, 6)

    def test_completed_first_task_keeps_flag(self):
        tasks = [_task('T1', 0, 2, dep=True, status='complete'), _task('T2', 1, 9)]

        result = realign(tasks)

        assert result[0].dependent_on_previous is True
        assert result[1].task_date == date(2025, 6, 3)

    def test_completed_member_pins_group_date(self):
        tasks = [
            _task('T1', 0, 2, dep=False),
            _task('T2', 1, 3, group='g1'),
            _task('T3', 2, 9, dep=False, group='g1', status='complete'),
            _task('T4', 3, 2),
        ]

        result = {t.task_id: t for t in realign(tasks)}

        assert result['T2'].task_date == date(2025, 6, 9)
        assert result['T2'].dependent_on_previous is False
        assert result['T3'].task_date == date(2025, 6, 9)
        assert result['T4'].task_date == date(2025, 6, 10)


# ==============================================================================
# GENERATED SNAPSHOT TESTS
# ==============================================================================

class TestGeneratedSnapshots:
    """Realignment laws checked over randomly generated locations."""

    @pytest.mark.parametrize('seed', range(40))
    def test_realign_settles_in_one_pass(self, seed):
        tasks = _generated_snapshot(seed)

        once = realign(tasks)
        twice = realign(once)

        assert [t.to_dict() for t in twice] == [t.to_dict() for t in once]
        assert find_violations(once) == []

    @pytest.mark.parametrize('seed', range(40))
    def test_realign_never_rewrites_completed_tasks(self, seed):
        tasks = _generated_snapshot(seed)
        completed = {t.task_id: t for t in tasks if t.is_complete}

        for task in realign(tasks):
            if task.task_id in completed:
                assert task == completed[task.task_id]

    @pytest.mark.parametrize('policy', [LinkPolicy.SEQUENTIAL_GROUP, LinkPolicy.SEQUENTIAL_SINGLE])
    @pytest.mark.parametrize('seed', range(40))
    def test_sequential_link_keeps_one_sequential_anchor(self, seed, policy):
        tasks = realign(_generated_snapshot(seed))
        open_ids = [t.task_id for t in tasks if not t.is_complete]
        if len(open_ids) < 2:
            return
        source_id, target_id = random.Random(seed).sample(open_ids, 2)

        result = link_tasks(tasks, source_id, [target_id], policy=policy)

        if not result.ok:
            assert result.error.kind == ErrorKind.INVALID_STATE
            return
        assert find_violations(result.tasks) == []
        group = next(t.linked_task_group for t in result.tasks if t.task_id == source_id)
        members = [t for t in result.tasks if t.linked_task_group == group]
        sequential = [t for t in members if t.dependent_on_previous]
        if members[0] is result.tasks[0]:
            assert sequential == []
        else:
            assert sequential == [members[0]]


# ==============================================================================
# VALIDATION TESTS
# ==============================================================================

class TestViolationsAndValidation:
    """Tests for find_violations, validate_snapshot and realign_snapshot."""

    def test_find_violations_reports_each_rule(self):
        tasks = [
            _task('T1', 0, 2, dep=True),
            _task('T2', 1, 9),
            _task('T3', 2, 3, dep=False, group='g1'),
            _task('T4', 3, 4, dep=False, group='g1'),
        ]

        violations = find_violations(tasks)

        assert any('First task T1' in v for v in violations)
        assert any('Sequential task T2' in v for v in violations)
        assert any('Linked group g1' in v for v in violations)

    def test_find_violations_empty_snapshot(self):
        assert find_violations([]) == []

    def test_validate_snapshot_duplicate_ids(self):
        tasks = [_task('T1', 0, 2), _task('T1', 1, 3)]
        assert 'duplicate' in validate_snapshot(tasks)

    def test_validate_snapshot_missing_date(self):
        task = _task('T1', 0, 2)
        task.task_date = None
        assert validate_snapshot([task]) is not None

    def test_realign_snapshot_rejects_malformed(self):
        tasks = [_task('T1', 0, 2), _task('T1', 1, 3)]

        result = realign_snapshot(tasks)

        assert result.ok is False
        assert result.error.kind == ErrorKind.MALFORMED_SNAPSHOT
        assert result.tasks == tasks
        assert result.changes == []

    def test_realign_snapshot_emits_minimal_changes(self):
        tasks = [_task('T1', 0, 2, dep=False), _task('T2', 1, 20), _task('T3', 2, 4, dep=False)]

        result = realign_snapshot(tasks)

        assert result.ok
        assert len(result.changes) == 1
        change = result.changes[0]
        assert change.task_id == 'T2'
        assert change.kind == ChangeKind.UPDATE
        assert change.changed_fields == {'task_date': (date(2025, 6, 20), date(2025, 6, 3))}

    def test_realign_snapshot_empty(self):
        result = realign_snapshot([])
        assert result.ok
        assert result.tasks == []
        assert result.changes == []
