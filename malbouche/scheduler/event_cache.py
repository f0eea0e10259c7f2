"""Event cache with a durable fallback copy on disk."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Iterable, List, Optional

from malbouche.api.api_client import ApiClient, ApiError

from .event_types import AutomationEvent, parse_events


logger = logging.getLogger(__name__)


SOURCE_API = "api"
SOURCE_FALLBACK = "fallback"


def _trigger_fields(event: AutomationEvent):
    return (event.active, event.start_time, event.movement_id, event.weekdays)


def events_changed(old: Iterable[AutomationEvent], new: Iterable[AutomationEvent]) -> bool:
    """
    Report whether two event sets differ in anything that affects triggering.

    Events are matched by id. Names and end times are ignored.
    """
    old_by_id = {event.id: event for event in old}
    new_by_id = {event.id: event for event in new}

    if len(old_by_id) != len(new_by_id):
        return True

    for event_id, new_event in new_by_id.items():
        old_event = old_by_id.get(event_id)
        if old_event is None:
            return True
        if _trigger_fields(old_event) != _trigger_fields(new_event):
            return True
    return False


class EventCache:
    """
    In-memory set of active events, refreshed from the API.

    The last successful fetch is stored to disk and used whenever the API
    cannot be reached, including on a cold start.
    """

    def __init__(self, api_client: ApiClient, cache_file: str = "state/events_cache.json"):
        """
        Initialize event cache.

        Args:
            api_client: Client for the events API
            cache_file: Path of the durable copy
        """
        self.api_client = api_client
        self.cache_file = Path(cache_file)
        self._events: List[AutomationEvent] = []
        self.last_refresh: Optional[datetime] = None
        self.source: Optional[str] = None
        self.last_error: Optional[str] = None

    @property
    def events(self) -> List[AutomationEvent]:
        """Copy of the cached active events."""
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    async def refresh(self) -> bool:
        """
        Reload events from the API, falling back to the durable copy.

        Returns:
            True if the cached set changed
        """
        previous = self._events

        try:
            raw_events = await self.api_client.get_events()
        except ApiError as e:
            self.last_error = str(e)
            logger.warning(f"Failed to fetch events from API: {e}")
            return self._use_fallback(previous)

        events = [event for event in parse_events(raw_events) if event.active]
        self._events = events
        self.source = SOURCE_API
        self.last_refresh = datetime.now()
        self.last_error = None
        self._save_cache(events)

        changed = events_changed(previous, events)
        if changed:
            logger.info(f"Event set changed: {len(previous)} -> {len(events)} active event(s)")
        else:
            logger.debug(f"Events refreshed, no changes ({len(events)} active)")
        return changed

    def _use_fallback(self, previous: List[AutomationEvent]) -> bool:
        if self.source == SOURCE_API:
            logger.info(f"Keeping {len(previous)} event(s) from the last successful refresh")
            return False

        cached = self._load_cache()
        if cached is None:
            logger.warning("No cached events available, scheduler has nothing to run")
            return False

        self._events = [event for event in cached if event.active]
        self.source = SOURCE_FALLBACK
        logger.info(f"Using {len(self._events)} cached event(s) from {self.cache_file}")
        return events_changed(previous, self._events)

    def _load_cache(self) -> Optional[List[AutomationEvent]]:
        """Load the durable copy; None if missing or unreadable."""
        if not self.cache_file.exists():
            logger.info(f"No existing events cache found at {self.cache_file}")
            return None

        try:
            with open(self.cache_file, 'r') as f:
                data = json.load(f)

            if not isinstance(data, dict) or not isinstance(data.get('events'), list):
                logger.warning("Invalid events cache structure, ignoring cache")
                return None

            logger.info(f"Loaded events cache from {self.cache_file} (fetched at {data.get('fetched_at')})")
            return parse_events(data['events'])

        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load events cache: {type(e).__name__}: {e}")
            return None

    def _save_cache(self, events: List[AutomationEvent]) -> bool:
        data: Dict[str, Any] = {
            'fetched_at': datetime.now().isoformat(),
            'events': [event.to_dict() for event in events],
        }
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, 'w') as f:
                json.dump(data, f, indent=2)
            logger.debug(f"Saved {len(events)} event(s) to {self.cache_file}")
            return True
        except IOError as e:
            logger.error(f"Failed to save events cache: {e}")
            return False

    def get_status(self) -> Dict[str, Any]:
        return {
            'events_count': len(self._events),
            'source': self.source,
            'last_refresh': self.last_refresh.isoformat() if self.last_refresh else None,
            'last_error': self.last_error,
            'cache_file': str(self.cache_file),
        }
