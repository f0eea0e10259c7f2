"""Cooldown tracking that keeps an event from firing twice in one window."""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from .event_types import AutomationEvent, Weekday


logger = logging.getLogger(__name__)


GuardKey = Tuple[str, Weekday, str]


class ExecutionGuard:
    """
    Remembers when each (event id, weekday, start time) last fired.

    Entries are kept for the lifetime of the guard and overwritten on refire;
    clear() drops them all (used when the scheduler restarts).
    """

    def __init__(self, cooldown_seconds: float = 60):
        """
        Initialize guard.

        Args:
            cooldown_seconds: How long after a fire the same key stays blocked
        """
        self.cooldown = timedelta(seconds=cooldown_seconds)
        self._last_fired: Dict[GuardKey, datetime] = {}

    @staticmethod
    def key_for(event: AutomationEvent, day: Weekday) -> GuardKey:
        return (event.id, day, event.start_time)

    def last_fired(self, event: AutomationEvent, day: Weekday) -> Optional[datetime]:
        return self._last_fired.get(self.key_for(event, day))

    def is_cooling_down(self, event: AutomationEvent, day: Weekday, now: datetime) -> bool:
        """True if the event fired for this weekday less than the cooldown ago."""
        fired_at = self.last_fired(event, day)
        if fired_at is None:
            return False
        return now - fired_at < self.cooldown

    def record(self, event: AutomationEvent, day: Weekday, now: datetime) -> None:
        self._last_fired[self.key_for(event, day)] = now
        logger.debug(f"Recorded fire of event '{event.name}' ({event.id}) on {day.value} at {now}")

    def clear(self) -> None:
        if self._last_fired:
            logger.info(f"Clearing {len(self._last_fired)} execution record(s)")
        self._last_fired.clear()

    def __len__(self) -> int:
        return len(self._last_fired)
