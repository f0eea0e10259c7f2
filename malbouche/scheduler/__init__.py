"""Scheduler package."""

from .audit_log import AuditLog, ExecutionAuditEntry
from .event_cache import EventCache, events_changed
from .event_executor import EventExecutor, ExecutionOutcome, ExecutionPhase, ExecutionResult
from .event_types import AutomationEvent, EventValidationError, Weekday, parse_events
from .execution_guard import ExecutionGuard
from .schedule_evaluator import should_fire, select_due_events, upcoming_events, UpcomingEvent
from .trigger_loop import TriggerLoop, TickSummary

__all__ = [
    'AuditLog',
    'ExecutionAuditEntry',
    'EventCache',
    'events_changed',
    'EventExecutor',
    'ExecutionOutcome',
    'ExecutionPhase',
    'ExecutionResult',
    'AutomationEvent',
    'EventValidationError',
    'Weekday',
    'parse_events',
    'ExecutionGuard',
    'should_fire',
    'select_due_events',
    'upcoming_events',
    'UpcomingEvent',
    'TriggerLoop',
    'TickSummary',
]
