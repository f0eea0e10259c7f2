"""Unit tests for automation event parsing and validation."""

import pytest
from datetime import datetime

from malbouche.scheduler.event_types import (
    AutomationEvent,
    EventValidationError,
    Weekday,
    parse_events,
    parse_hhmm,
    parse_weekdays,
    time_to_minutes,
)


class TestWeekday:
    """Test weekday tag handling."""

    def test_from_datetime(self, wednesday_1432, thursday_1432):
        assert Weekday.from_datetime(wednesday_1432) is Weekday.WEDNESDAY
        assert Weekday.from_datetime(thursday_1432) is Weekday.THURSDAY
        assert Weekday.from_datetime(datetime(2024, 6, 23, 9, 0)) is Weekday.SUNDAY

    def test_parse_english_and_spanish(self):
        assert Weekday.parse('Th') is Weekday.THURSDAY
        assert Weekday.parse('Ju') is Weekday.THURSDAY
        assert Weekday.parse('M') is Weekday.MONDAY
        assert Weekday.parse('Ma') is Weekday.TUESDAY
        assert Weekday.parse('Do') is Weekday.SUNDAY

    def test_parse_invalid(self):
        with pytest.raises(EventValidationError):
            Weekday.parse('Xx')


class TestTimeParsing:
    """Test HH:MM parsing."""

    def test_valid_times(self):
        assert parse_hhmm('00:00') == (0, 0)
        assert parse_hhmm('14:32') == (14, 32)
        assert time_to_minutes('14:32') == 14 * 60 + 32
        assert time_to_minutes('23:59') == 1439

    @pytest.mark.parametrize('value', ['25:00', '12:60', 'noon', '', None, 1432])
    def test_invalid_times(self, value):
        with pytest.raises(EventValidationError):
            parse_hhmm(value)


class TestParseWeekdays:
    """Test normalization of the diasSemana field."""

    def test_list_of_tags(self):
        assert parse_weekdays(['M', 'Th']) == frozenset({Weekday.MONDAY, Weekday.THURSDAY})

    def test_spanish_mapping(self):
        days = parse_weekdays({'Lu': True, 'Ma': False, 'Ju': True, 'Do': False})
        assert days == frozenset({Weekday.MONDAY, Weekday.THURSDAY})

    def test_list_and_mapping_agree(self):
        assert parse_weekdays(['Sa', 'Su']) == parse_weekdays({'Sa': True, 'Do': True})

    def test_missing(self):
        assert parse_weekdays(None) == frozenset()

    def test_wrong_type(self):
        with pytest.raises(EventValidationError):
            parse_weekdays('M,Th')


class TestAutomationEvent:
    """Test AutomationEvent construction from the wire format."""

    def test_from_dict(self, event_config_thursday):
        event = AutomationEvent.from_dict(event_config_thursday)

        assert event.id == 'evt-1'
        assert event.name == 'Afternoon spin'
        assert event.active is True
        assert event.start_time == '14:32'
        assert event.end_time == '14:40'
        assert event.weekdays == frozenset({Weekday.THURSDAY})
        assert event.movement_id == 'mov-1'
        assert event.start_minutes == 872
        assert event.runs_on(Weekday.THURSDAY)
        assert not event.runs_on(Weekday.WEDNESDAY)

    def test_active_event_requires_weekday(self, event_config_thursday):
        config = dict(event_config_thursday, diasSemana=[])
        with pytest.raises(EventValidationError, match="at least one weekday"):
            AutomationEvent.from_dict(config)

    def test_inactive_event_may_have_no_weekdays(self, event_config_thursday):
        config = dict(event_config_thursday, activo=False, diasSemana=[])
        event = AutomationEvent.from_dict(config)
        assert event.active is False
        assert event.weekdays == frozenset()

    def test_malformed_start_time(self, event_config_thursday):
        config = dict(event_config_thursday, horaInicio='2:32 PM')
        with pytest.raises(EventValidationError):
            AutomationEvent.from_dict(config)

    def test_missing_id(self, event_config_thursday):
        config = dict(event_config_thursday)
        del config['id']
        with pytest.raises(EventValidationError):
            AutomationEvent.from_dict(config)

    def test_only_literal_true_is_active(self, event_config_thursday):
        config = dict(event_config_thursday, activo='false')
        assert AutomationEvent.from_dict(config).active is False

    def test_to_dict_orders_weekdays(self, event_config_thursday):
        config = dict(event_config_thursday, diasSemana=['Sa', 'M', 'Th'])
        data = AutomationEvent.from_dict(config).to_dict()

        assert data['diasSemana'] == ['M', 'Th', 'Sa']
        assert data['horaInicio'] == '14:32'
        assert data['movementId'] == 'mov-1'


class TestParseEvents:
    """Test parsing of event lists."""

    def test_invalid_entries_are_skipped(self, event_config_thursday):
        broken = dict(event_config_thursday, id='evt-bad', horaInicio='99:99')
        events = parse_events([event_config_thursday, broken, 'not-an-event'])

        assert [event.id for event in events] == ['evt-1']

    def test_empty_list(self):
        assert parse_events([]) == []
