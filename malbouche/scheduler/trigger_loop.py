"""Periodic evaluation of automation events against the wall clock."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Any, List, Optional

from malbouche.api.conflict_client import ConflictAwareClient
from malbouche.devices.device_http import validate_ip

from .event_cache import EventCache
from .event_executor import EventExecutor, ExecutionResult
from .event_types import AutomationEvent, Weekday
from .execution_guard import ExecutionGuard
from .schedule_evaluator import (
    DEFAULT_FIRING_WINDOW_MINUTES,
    current_time_string,
    find_event,
    select_due_events,
    upcoming_events,
)


logger = logging.getLogger(__name__)


@dataclass
class TickSummary:
    """What one evaluation tick did."""
    time: str
    weekday: str
    events_checked: int = 0
    events_executed: int = 0
    results: List[ExecutionResult] = field(default_factory=list)
    skipped_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'time': self.time,
            'weekday': self.weekday,
            'events_checked': self.events_checked,
            'events_executed': self.events_executed,
            'results': [result.to_dict() for result in self.results],
            'skipped_reason': self.skipped_reason,
        }


class TriggerLoop:
    """
    Fires cached events when their start time comes around.

    Two background tasks run while started: one evaluates the cached events
    every ``check_interval_seconds``, the other refreshes the cache every
    ``refresh_interval_minutes``. Fired events are executed one at a time.
    """

    def __init__(
        self,
        cache: EventCache,
        executor: EventExecutor,
        device_ip: Optional[str] = None,
        check_interval_seconds: float = 30,
        refresh_interval_minutes: float = 5,
        firing_window_minutes: float = DEFAULT_FIRING_WINDOW_MINUTES,
        cooldown_seconds: float = 60,
        clock: Optional[Callable[[], datetime]] = None,
        conflict_client: Optional[ConflictAwareClient] = None
    ):
        """
        Initialize trigger loop.

        Args:
            cache: Source of active events
            executor: Runs fired events
            device_ip: Clock IP address (ticks are skipped while unset)
            check_interval_seconds: Evaluation cadence
            refresh_interval_minutes: Cache refresh cadence
            firing_window_minutes: Allowed distance between start time and now
            cooldown_seconds: Minimum time between fires of the same event
            clock: Returns the current local time (host time when omitted)
            conflict_client: Authoring client whose changes trigger a reload
        """
        self.cache = cache
        self.executor = executor
        self.device_ip = device_ip
        self.check_interval_seconds = check_interval_seconds
        self.refresh_interval_minutes = refresh_interval_minutes
        self.firing_window_minutes = firing_window_minutes
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self.conflict_client = conflict_client

        self.guard = ExecutionGuard(cooldown_seconds=cooldown_seconds)
        self.last_tick: Optional[TickSummary] = None
        self._execution_lock = asyncio.Lock()
        self._stop_event: Optional[asyncio.Event] = None
        self._evaluation_task: Optional[asyncio.Task] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._active = False

    def now(self) -> datetime:
        return self.clock() if self.clock else datetime.now()

    @property
    def is_running(self) -> bool:
        """True from the moment start() is called until stop()."""
        return self._active

    async def start(self) -> None:
        """
        Start the loop: refresh once, evaluate once, then schedule both tasks.

        Calling start() on a running (or starting) loop does nothing. If
        stop() is called while the initial refresh or evaluation is still
        awaiting, no tasks are created and nothing is subscribed.
        """
        if self.is_running:
            logger.debug("Trigger loop already running")
            return

        logger.info(
            f"Starting trigger loop (check every {self.check_interval_seconds}s, "
            f"refresh every {self.refresh_interval_minutes} min)"
        )
        self._active = True
        self.guard.clear()
        stop_event = asyncio.Event()
        self._stop_event = stop_event

        await self.refresh_events()
        if stop_event.is_set():
            logger.info("Trigger loop stopped during startup refresh")
            return

        await self.tick()
        if stop_event.is_set():
            logger.info("Trigger loop stopped during startup evaluation")
            return

        self._evaluation_task = asyncio.create_task(self._evaluation_loop())
        self._refresh_task = asyncio.create_task(self._refresh_loop())

        if self.conflict_client is not None:
            self._unsubscribe = self.conflict_client.subscribe(self.notify_event_changed)

    async def stop(self) -> None:
        """Cancel both tasks and wait for them to finish."""
        if not self.is_running:
            return

        logger.info("Stopping trigger loop...")
        self._active = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        self._stop_event.set()
        for task in (self._evaluation_task, self._refresh_task):
            if task is None:
                continue
            if not task.done():
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._evaluation_task = None
        self._refresh_task = None
        logger.info("Trigger loop stopped")

    async def restart(self) -> None:
        await self.stop()
        await self.start()

    async def _wait(self, seconds: float) -> bool:
        """Sleep for ``seconds``; True if stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def _evaluation_loop(self):
        try:
            while not await self._wait(self.check_interval_seconds):
                try:
                    await self.tick()
                except Exception as e:
                    logger.error(f"Error during evaluation tick: {type(e).__name__}: {e}")
                    logger.exception("Full traceback:")
        except asyncio.CancelledError:
            logger.debug("Evaluation loop cancelled")
            raise

    async def _refresh_loop(self):
        try:
            while not await self._wait(self.refresh_interval_minutes * 60):
                try:
                    await self.refresh_events()
                except Exception as e:
                    logger.error(f"Error refreshing events: {type(e).__name__}: {e}")
                    logger.exception("Full traceback:")
        except asyncio.CancelledError:
            logger.debug("Refresh loop cancelled")
            raise

    async def tick(self, now: Optional[datetime] = None) -> TickSummary:
        """
        Evaluate every cached event once and execute those that are due.

        Args:
            now: Evaluation time (defaults to the injected clock)
        """
        now = now or self.now()
        summary = TickSummary(time=current_time_string(now), weekday=Weekday.from_datetime(now).value)
        self.last_tick = summary

        if not self.device_ip:
            summary.skipped_reason = "No clock IP configured"
            logger.info(f"Tick {summary.time}: no clock IP configured, skipping")
            return summary

        events = self.cache.events
        summary.events_checked = len(events)
        due = select_due_events(events, now, self.guard, self.firing_window_minutes)

        for event in due:
            logger.info(f"Event due: '{event.name}' at {event.start_time} ({summary.weekday})")
            try:
                async with self._execution_lock:
                    result = await self.executor.execute(event, self.device_ip)
            except Exception as e:
                logger.error(f"Unexpected error executing event '{event.name}': {type(e).__name__}: {e}")
                logger.exception("Full traceback:")
                continue
            summary.results.append(result)
            summary.events_executed += 1

        if due:
            logger.info(
                f"Tick {summary.time}: checked {summary.events_checked}, "
                f"executed {summary.events_executed}"
            )
        return summary

    async def refresh_events(self) -> bool:
        """Reload events now; True if the set changed."""
        return await self.cache.refresh()

    async def notify_event_changed(self) -> bool:
        logger.info("Event change notified, reloading events")
        return await self.cache.refresh()

    def update_device_ip(self, ip: Optional[str]) -> None:
        """
        Change the clock IP used for subsequent executions.

        Raises:
            DeviceValidationError: If ip is set but malformed
        """
        self.device_ip = validate_ip(ip) if ip else None
        logger.info(f"Clock IP updated to: {self.device_ip}")

    def get_all_events(self) -> List[AutomationEvent]:
        return self.cache.events

    async def execute_event_now(self, event_id: str) -> Dict[str, Any]:
        """
        Run a cached event immediately, ignoring its schedule and cooldown.

        Returns:
            ``{'success': bool, 'message': str}`` plus the execution details
        """
        event = find_event(self.cache.events, event_id)
        if event is None:
            return {'success': False, 'message': f"Event {event_id} not found"}

        logger.info(f"Executing event '{event.name}' immediately")
        async with self._execution_lock:
            result = await self.executor.execute(event, self.device_ip)
        response = result.to_dict()
        response['success'] = result.success
        return response

    def get_upcoming_events(self, hours: int = 24, step_minutes: int = 30,
                            now: Optional[datetime] = None):
        """Preview of events firing in the next ``hours``; live cooldowns are not touched."""
        return upcoming_events(
            self.cache.events,
            now or self.now(),
            hours=hours,
            step_minutes=step_minutes,
            window_minutes=self.firing_window_minutes,
            cooldown_seconds=self.cooldown_seconds
        )

    def get_status(self) -> Dict[str, Any]:
        now = self.now()
        running = self.is_running
        last_refresh = self.cache.last_refresh
        return {
            'running': running,
            'events_count': len(self.cache),
            'device_ip': self.device_ip,
            'events_source': self.cache.source,
            'last_refresh': last_refresh.isoformat() if last_refresh else None,
            'next_check': (now + timedelta(seconds=self.check_interval_seconds)).isoformat() if running else None,
            'next_refresh': (
                (now + timedelta(minutes=self.refresh_interval_minutes)).isoformat() if running else None
            ),
            'last_tick': self.last_tick.to_dict() if self.last_tick else None,
        }
