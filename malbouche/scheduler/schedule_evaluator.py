"""Firing predicate and schedule preview for automation events."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Any, Iterable, List, Optional

from .event_types import AutomationEvent, Weekday
from .execution_guard import ExecutionGuard


logger = logging.getLogger(__name__)


DEFAULT_FIRING_WINDOW_MINUTES = 0.5


def current_time_string(now: datetime) -> str:
    """Wall-clock HH:MM for now (seconds are truncated)."""
    return now.strftime("%H:%M")


def minutes_of_day(now: datetime) -> int:
    return now.hour * 60 + now.minute


def should_fire(
    event: AutomationEvent,
    now: datetime,
    guard: ExecutionGuard,
    window_minutes: float = DEFAULT_FIRING_WINDOW_MINUTES
) -> bool:
    """
    Decide whether an event fires at ``now``.

    An event fires when it is active, runs on the current weekday, its start
    time is within ``window_minutes`` of the current HH:MM, and the guard has
    no fire recorded for it within the cooldown. The guard is only read here;
    callers record the fire.

    Args:
        event: Event to evaluate
        now: Current local time
        guard: Cooldown memo
        window_minutes: Maximum distance between start time and now

    Returns:
        True if the event should run now
    """
    if not event.active:
        return False

    day = Weekday.from_datetime(now)
    if not event.runs_on(day):
        return False

    if abs(minutes_of_day(now) - event.start_minutes) >= window_minutes:
        return False

    if guard.is_cooling_down(event, day, now):
        logger.debug(f"Event '{event.name}' already fired for {day.value} {event.start_time}, skipping")
        return False

    return True


def select_due_events(
    events: Iterable[AutomationEvent],
    now: datetime,
    guard: ExecutionGuard,
    window_minutes: float = DEFAULT_FIRING_WINDOW_MINUTES
) -> List[AutomationEvent]:
    """
    Return the events due at ``now`` and record each of them in the guard.

    Recording happens on selection, before anything is executed, so a fire
    that later fails is still not retried within the cooldown.
    """
    day = Weekday.from_datetime(now)
    due = []
    for event in events:
        if should_fire(event, now, guard, window_minutes):
            guard.record(event, day, now)
            due.append(event)
    return due


@dataclass
class UpcomingEvent:
    """An event occurrence found by the schedule preview."""
    event: AutomationEvent
    scheduled_time: datetime
    minutes_until: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event_id': self.event.id,
            'event_name': self.event.name,
            'scheduled_time': self.scheduled_time.isoformat(),
            'minutes_until': self.minutes_until,
        }


def upcoming_events(
    events: Iterable[AutomationEvent],
    now: datetime,
    hours: int = 24,
    step_minutes: int = 30,
    window_minutes: float = DEFAULT_FIRING_WINDOW_MINUTES,
    cooldown_seconds: float = 60
) -> List[UpcomingEvent]:
    """
    Preview which events would fire over the next ``hours``.

    The firing predicate is sampled every ``step_minutes`` starting at ``now``
    against a scratch guard, so the live cooldown state is never touched.
    Only occurrences whose start time falls on a sample point are found.

    Returns:
        Occurrences sorted by minutes until they fire
    """
    if step_minutes <= 0:
        raise ValueError(f"step_minutes must be positive, got {step_minutes}")

    events = list(events)
    scratch = ExecutionGuard(cooldown_seconds=cooldown_seconds)
    found = []

    for offset in range(0, int(hours * 60), step_minutes):
        check_time = now + timedelta(minutes=offset)
        for event in select_due_events(events, check_time, scratch, window_minutes):
            found.append(UpcomingEvent(event=event, scheduled_time=check_time, minutes_until=offset))

    found.sort(key=lambda item: item.minutes_until)
    return found


def find_event(events: Iterable[AutomationEvent], event_id: str) -> Optional[AutomationEvent]:
    for event in events:
        if event.id == str(event_id):
            return event
    return None
