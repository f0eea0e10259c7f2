"""Runs a fired event: resolve its movement, persist it, command the clock."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Any, Optional

from malbouche.api.api_client import ApiClient, ApiError
from malbouche.devices.device_dispatcher import DeviceDispatcher, DispatchResult
from malbouche.devices.device_http import DeviceControllerError
from malbouche.devices.movement_types import Movement

from .audit_log import AuditLog, ExecutionAuditEntry
from .event_types import AutomationEvent


logger = logging.getLogger(__name__)


class ExecutionOutcome(Enum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


class ExecutionPhase(Enum):
    RESOLVE = "resolve"
    PERSIST = "persist"
    DISPATCH = "dispatch"


@dataclass
class ExecutionResult:
    """Result of executing one event."""
    event: AutomationEvent
    outcome: ExecutionOutcome
    phase: ExecutionPhase
    message: str
    movement: Optional[Movement] = None
    dispatch: Optional[DispatchResult] = None

    @property
    def success(self) -> bool:
        return self.outcome is ExecutionOutcome.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event_id': self.event.id,
            'event_name': self.event.name,
            'outcome': self.outcome.value,
            'phase': self.phase.value,
            'message': self.message,
            'movement': self.movement.name if self.movement else None,
        }


class EventExecutor:
    """
    Executes events in two phases.

    The movement is first persisted as the clock's current state in the store
    and only then sent to the device. A store failure means the device is
    never commanded; a device failure after a successful store update is a
    partial success.
    """

    def __init__(
        self,
        api_client: ApiClient,
        dispatcher: DeviceDispatcher,
        audit_log: Optional[AuditLog] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.api_client = api_client
        self.dispatcher = dispatcher
        self.audit_log = audit_log
        self.clock = clock

    async def execute(self, event: AutomationEvent, device_ip: Optional[str]) -> ExecutionResult:
        """
        Execute an event against the clock at ``device_ip``.

        Expected failures are reported in the result, never raised.
        """
        logger.info(f"Executing event '{event.name}' ({event.id}) -> movement {event.movement_id}")

        movement, error = await self._resolve_movement(event)
        if movement is None:
            return self._finish(event, ExecutionOutcome.FAILED, ExecutionPhase.RESOLVE, error)

        try:
            await self.api_client.set_current_movement(movement)
        except ApiError as e:
            logger.error(f"Failed to persist movement '{movement.name}' for event '{event.name}': {e}")
            return self._finish(
                event, ExecutionOutcome.FAILED, ExecutionPhase.PERSIST,
                f"Store update failed, clock not commanded: {e}", movement
            )

        try:
            dispatch = await self.dispatcher.send_movement(device_ip, movement)
        except DeviceControllerError as e:
            logger.error(f"Clock command failed for event '{event.name}': {type(e).__name__}: {e}")
            return self._finish(
                event, ExecutionOutcome.PARTIAL_SUCCESS, ExecutionPhase.DISPATCH,
                f"Store updated but clock command failed: {e}", movement
            )

        if dispatch.partial:
            return self._finish(
                event, ExecutionOutcome.PARTIAL_SUCCESS, ExecutionPhase.DISPATCH,
                dispatch.message, movement, dispatch
            )

        return self._finish(
            event, ExecutionOutcome.SUCCESS, ExecutionPhase.DISPATCH,
            f"Movement '{movement.name}' executed: {dispatch.message}", movement, dispatch
        )

    async def _resolve_movement(self, event: AutomationEvent):
        if not event.movement_id:
            logger.error(f"Event '{event.name}' has no movement assigned")
            return None, "Event has no movement assigned"

        try:
            movement = await self.api_client.get_movement(event.movement_id)
        except ApiError as e:
            logger.error(f"Failed to resolve movement {event.movement_id} for event '{event.name}': {e}")
            return None, f"Movement lookup failed: {e}"
        except Exception as e:
            logger.error(f"Unexpected error resolving movement {event.movement_id}: {type(e).__name__}: {e}")
            logger.exception("Full traceback:")
            return None, f"Movement lookup failed: {type(e).__name__}: {e}"

        if movement is None:
            return None, f"Movement {event.movement_id} not found"
        return movement, None

    def _finish(
        self,
        event: AutomationEvent,
        outcome: ExecutionOutcome,
        phase: ExecutionPhase,
        message: str,
        movement: Optional[Movement] = None,
        dispatch: Optional[DispatchResult] = None
    ) -> ExecutionResult:
        result = ExecutionResult(
            event=event,
            outcome=outcome,
            phase=phase,
            message=message,
            movement=movement,
            dispatch=dispatch
        )

        if outcome is ExecutionOutcome.SUCCESS:
            logger.info(f"Event '{event.name}' completed: {message}")
        else:
            logger.warning(f"Event '{event.name}' {outcome.value} at {phase.value}: {message}")

        if self.audit_log is not None:
            self.audit_log.append(ExecutionAuditEntry(
                event_id=event.id,
                event_name=event.name,
                timestamp=(self.clock() if self.clock else datetime.now()).isoformat(),
                outcome=outcome.value,
                phase=phase.value,
                message=message
            ))
        return result
