"""Automation event data structures and validation."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Any, FrozenSet, List, Optional, Tuple


logger = logging.getLogger(__name__)


class EventValidationError(ValueError):
    """Raised when an automation event payload is malformed."""
    pass


class Weekday(Enum):
    """Weekday tags as stored on events."""
    SUNDAY = "Su"
    MONDAY = "M"
    TUESDAY = "T"
    WEDNESDAY = "W"
    THURSDAY = "Th"
    FRIDAY = "F"
    SATURDAY = "Sa"

    @classmethod
    def from_datetime(cls, moment: datetime) -> 'Weekday':
        """Weekday tag for a datetime (Python's weekday() is 0=Monday)."""
        return _PYTHON_WEEKDAYS[moment.weekday()]

    @classmethod
    def parse(cls, value: Any) -> 'Weekday':
        """Parse an English tag ("Th") or a Spanish key ("Ju")."""
        if isinstance(value, Weekday):
            return value
        text = str(value).strip()
        for day in cls:
            if day.value == text:
                return day
        if text in _SPANISH_KEYS:
            return _SPANISH_KEYS[text]
        raise EventValidationError(f"Invalid weekday '{value}'")


_PYTHON_WEEKDAYS = (
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
    Weekday.SATURDAY,
    Weekday.SUNDAY,
)

_SPANISH_KEYS = {
    'Do': Weekday.SUNDAY,
    'Lu': Weekday.MONDAY,
    'Ma': Weekday.TUESDAY,
    'Mi': Weekday.WEDNESDAY,
    'Ju': Weekday.THURSDAY,
    'Vi': Weekday.FRIDAY,
    'Sa': Weekday.SATURDAY,
}


def parse_hhmm(value: Any) -> Tuple[int, int]:
    """
    Parse an HH:MM (24-hour) wall-clock time.

    Raises:
        EventValidationError: If the value is not a well-formed time
    """
    if not isinstance(value, str):
        raise EventValidationError(f"Time must be a string in HH:MM format, got: {value!r}")
    try:
        parsed = datetime.strptime(value.strip(), "%H:%M")
    except ValueError:
        raise EventValidationError(f"Invalid time format '{value}'. Must be HH:MM (24-hour)")
    return parsed.hour, parsed.minute


def time_to_minutes(value: str) -> int:
    """Minutes since midnight for an HH:MM string."""
    hours, minutes = parse_hhmm(value)
    return hours * 60 + minutes


def parse_weekdays(value: Any) -> FrozenSet[Weekday]:
    """
    Normalize the ``diasSemana`` field.

    Accepts a list of tags (``["M", "Th"]``) or a mapping of day keys to
    booleans (``{"Lu": true, "Ma": false}``).
    """
    if value is None:
        return frozenset()
    if isinstance(value, dict):
        return frozenset(Weekday.parse(key) for key, enabled in value.items() if enabled)
    if isinstance(value, (list, tuple, set, frozenset)):
        return frozenset(Weekday.parse(item) for item in value)
    raise EventValidationError(f"diasSemana must be a list or mapping, got: {type(value).__name__}")


@dataclass(frozen=True)
class AutomationEvent:
    """A user-authored rule mapping a weekly schedule to a movement."""
    id: str
    name: str
    active: bool
    start_time: str
    weekdays: FrozenSet[Weekday]
    movement_id: Optional[str]
    end_time: Optional[str] = None

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    def runs_on(self, day: Weekday) -> bool:
        return day in self.weekdays

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AutomationEvent':
        """
        Create an event from the API's wire representation.

        Raises:
            EventValidationError: If required fields are missing or malformed
        """
        if not isinstance(data, dict):
            raise EventValidationError(f"Event must be a dictionary, got: {type(data).__name__}")

        event_id = data.get('id')
        if event_id is None or event_id == '':
            raise EventValidationError("Event must have an 'id'")

        active = data.get('activo', False) is True
        start_time = data.get('horaInicio')
        parse_hhmm(start_time)

        end_time = data.get('horaFin') or None
        if end_time is not None:
            parse_hhmm(end_time)

        weekdays = parse_weekdays(data.get('diasSemana'))
        if active and not weekdays:
            raise EventValidationError(f"Active event '{event_id}' must run on at least one weekday")

        return cls(
            id=str(event_id),
            name=data.get('nombreEvento', 'Unnamed Event'),
            active=active,
            start_time=start_time.strip(),
            weekdays=weekdays,
            movement_id=data.get('movementId') or None,
            end_time=end_time,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the wire representation (weekday tags in week order)."""
        result = {
            'id': self.id,
            'nombreEvento': self.name,
            'activo': self.active,
            'horaInicio': self.start_time,
            'diasSemana': [day.value for day in Weekday if day in self.weekdays],
            'movementId': self.movement_id,
        }
        if self.end_time:
            result['horaFin'] = self.end_time
        return result

    def __repr__(self) -> str:
        days = ','.join(day.value for day in Weekday if day in self.weekdays)
        return (
            f"AutomationEvent(id='{self.id}', name='{self.name}', active={self.active}, "
            f"start='{self.start_time}', days=[{days}])"
        )


def parse_events(events_data: List[Dict[str, Any]]) -> List[AutomationEvent]:
    """
    Parse a list of event payloads, skipping (and logging) malformed entries.

    Args:
        events_data: List of event dictionaries from the API or the local cache

    Returns:
        List of AutomationEvent objects in input order
    """
    events = []
    for i, event_dict in enumerate(events_data):
        try:
            events.append(AutomationEvent.from_dict(event_dict))
        except EventValidationError as e:
            name = event_dict.get('nombreEvento', 'unnamed') if isinstance(event_dict, dict) else 'unnamed'
            logger.warning(f"Skipping invalid event at index {i} ('{name}'): {e}")
    return events
