"""Unit tests for ExecutionGuard."""

from datetime import timedelta

from malbouche.scheduler.event_types import AutomationEvent, Weekday
from malbouche.scheduler.execution_guard import ExecutionGuard


class TestExecutionGuard:

    def test_unrecorded_event_is_not_cooling_down(self, event_thursday, guard, thursday_1432):
        assert guard.is_cooling_down(event_thursday, Weekday.THURSDAY, thursday_1432) is False
        assert guard.last_fired(event_thursday, Weekday.THURSDAY) is None

    def test_cooldown_window(self, event_thursday, guard, thursday_1432):
        guard.record(event_thursday, Weekday.THURSDAY, thursday_1432)

        assert guard.is_cooling_down(event_thursday, Weekday.THURSDAY, thursday_1432 + timedelta(seconds=59))
        assert not guard.is_cooling_down(event_thursday, Weekday.THURSDAY, thursday_1432 + timedelta(seconds=60))

    def test_key_includes_weekday_and_start_time(self, event_config_thursday, guard, thursday_1432):
        event = AutomationEvent.from_dict(event_config_thursday)
        moved = AutomationEvent.from_dict(dict(event_config_thursday, horaInicio='14:33'))
        guard.record(event, Weekday.THURSDAY, thursday_1432)

        assert not guard.is_cooling_down(event, Weekday.FRIDAY, thursday_1432)
        assert not guard.is_cooling_down(moved, Weekday.THURSDAY, thursday_1432)

    def test_refire_overwrites(self, event_thursday, guard, thursday_1432):
        later = thursday_1432 + timedelta(days=7)
        guard.record(event_thursday, Weekday.THURSDAY, thursday_1432)
        guard.record(event_thursday, Weekday.THURSDAY, later)

        assert len(guard) == 1
        assert guard.last_fired(event_thursday, Weekday.THURSDAY) == later

    def test_clear(self, event_thursday, guard, thursday_1432):
        guard.record(event_thursday, Weekday.THURSDAY, thursday_1432)
        guard.clear()

        assert len(guard) == 0
        assert not guard.is_cooling_down(event_thursday, Weekday.THURSDAY, thursday_1432)

    def test_custom_cooldown(self, event_thursday, thursday_1432):
        guard = ExecutionGuard(cooldown_seconds=300)
        guard.record(event_thursday, Weekday.THURSDAY, thursday_1432)

        assert guard.is_cooling_down(event_thursday, Weekday.THURSDAY, thursday_1432 + timedelta(minutes=4))
