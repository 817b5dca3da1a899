"""
Tests for ScheduleTask payload parsing.
"""
from datetime import date

import pytest

from siteplan.scheduling.types import ScheduleTask, parse_flag


class TestParseFlag:
    """Tests for parse_flag."""

    @pytest.mark.parametrize('value,expected', [
        (True, True),
        (False, False),
        (1, True),
        (0, False),
        ('true', True),
        ('False', False),
        (' no ', False),
        ('YES', True),
        ('0', False),
    ])
    def test_accepted_values(self, value, expected):
        assert parse_flag(value) is expected

    def test_missing_value_uses_default(self):
        assert parse_flag(None) is True
        assert parse_flag(None, default=False) is False

    @pytest.mark.parametrize('value', ['maybe', '', 2, 0.5, [], {}])
    def test_unreadable_values_rejected(self, value):
        with pytest.raises(ValueError):
            parse_flag(value)


class TestScheduleTaskFromDict:
    """Tests for ScheduleTask.from_dict."""

    def test_string_false_is_nonsequential(self):
        task = ScheduleTask.from_dict({
            'task_id': 'T1', 'order': 2, 'task_date': '2025-06-02',
            'dependent_on_previous': 'false',
        })

        assert task.dependent_on_previous is False
        assert task.task_date == date(2025, 6, 2)
        assert task.order == 2.0

    def test_flag_defaults_to_sequential(self):
        assert ScheduleTask.from_dict({'task_id': 'T1'}).dependent_on_previous is True

    def test_unreadable_flag_raises(self):
        with pytest.raises(ValueError):
            ScheduleTask.from_dict({'task_id': 'T1', 'dependent_on_previous': 'maybe'})

    def test_unknown_keys_ride_along(self):
        task = ScheduleTask.from_dict({'task_id': 7, 'crew': 'B'})

        assert task.task_id == '7'
        assert task.extra == {'crew': 'B'}
        assert task.to_dict()['crew'] == 'B'
