"""Event authoring client that separates schedule conflicts from other validation errors."""

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from malbouche.api.api_client import ApiClient, ApiError, ApiResponseError


logger = logging.getLogger(__name__)


# Substring the backend puts in a validation detail when two events overlap
CONFLICT_MARKER = "Conflicto de horarios detectado"
CONFLICT_SUGGESTION = (
    "Intenta cambiar el horario o los días del evento para evitar superposiciones"
)
DEFAULT_CONFLICT_FIELD = "horaInicio"


@dataclass
class EventOperationResult:
    """Uniform result of an event CRUD call."""
    success: bool
    event: Optional[Dict[str, Any]] = None
    events: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None
    details: Any = None
    status: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {'success': self.success}
        if self.success:
            if self.event is not None:
                result['event'] = self.event
            if self.events is not None:
                result['events'] = self.events
        else:
            result['error'] = self.error
            if self.details is not None:
                result['details'] = self.details
        return result


@dataclass
class ConflictInfo:
    """Structured description of a scheduling overlap (or its absence)."""
    is_conflict: bool
    message: str
    suggested_action: Optional[str] = None
    offending_field: Optional[str] = None


@dataclass
class ErrorInfo:
    """User-facing description of an API error."""
    title: str
    message: str
    is_conflict: bool = False
    suggested_action: Optional[str] = None
    field_errors: List[str] = field(default_factory=list)


def classify_conflict(result: EventOperationResult) -> ConflictInfo:
    """
    Detect a schedule-overlap error in a failed event operation.

    Only validation details whose ``msg`` contains the conflict marker count;
    anything else passes through with ``is_conflict=False`` and the original
    error message untouched.
    """
    details = result.details
    if isinstance(details, list):
        for detail in details:
            if not isinstance(detail, dict):
                continue
            msg = detail.get('msg')
            if isinstance(msg, str) and CONFLICT_MARKER in msg:
                return ConflictInfo(
                    is_conflict=True,
                    message=msg,
                    suggested_action=CONFLICT_SUGGESTION,
                    offending_field=detail.get('param') or detail.get('path') or DEFAULT_CONFLICT_FIELD
                )

    return ConflictInfo(
        is_conflict=False,
        message=result.error if result.error is not None else 'Error desconocido'
    )


def describe_error(status: Optional[int], body: Optional[Dict[str, Any]] = None) -> ErrorInfo:
    """
    Map an HTTP status and error body to a titled, user-facing description.

    Args:
        status: HTTP status code, or None when the request never reached the server
        body: Decoded error body (``{error, details}``)
    """
    body = body or {}
    error = body.get('error')

    if status is None:
        return ErrorInfo(
            title='Error de Conexión',
            message='No se pudo conectar con el servidor. Verifica tu conexión a internet'
        )

    if status == 400:
        conflict = classify_conflict(
            EventOperationResult(success=False, error=error, details=body.get('details'))
        )
        if conflict.is_conflict:
            return ErrorInfo(
                title='Conflicto de Horarios',
                message=conflict.message,
                is_conflict=True,
                suggested_action=conflict.suggested_action
            )
        details = body.get('details')
        field_errors = []
        if isinstance(details, list):
            field_errors = [d.get('msg') for d in details if isinstance(d, dict) and d.get('msg')]
        message = '\n'.join(field_errors) if field_errors else error
        return ErrorInfo(
            title='Error de Validación',
            message=message or 'Los datos proporcionados no son válidos',
            field_errors=field_errors
        )

    titled = {
        401: ('Sesión Expirada', 'Por favor, inicia sesión nuevamente'),
        403: ('Sin Permisos', 'No tienes permisos para realizar esta acción'),
        404: ('No Encontrado', 'El recurso solicitado no existe'),
        429: ('Demasiadas Peticiones', 'Has excedido el límite de peticiones. Intenta más tarde'),
    }
    if status in titled:
        title, message = titled[status]
        return ErrorInfo(title=title, message=message)

    if status == 409:
        return ErrorInfo(title='Conflicto', message=error or 'Ya existe un recurso con estos datos')

    return ErrorInfo(title='Error del Servidor', message=error or 'Ha ocurrido un error inesperado')


class ConflictAwareClient:
    """
    Wraps event create/read/update/delete calls with a uniform result shape.

    Successful mutations notify subscribers (the trigger loop subscribes to
    reload its event cache immediately).
    """

    def __init__(self, api_client: ApiClient):
        self.api = api_client
        self._subscribers: List[Callable[[], Any]] = []

    def subscribe(self, callback: Callable[[], Any]) -> Callable[[], None]:
        """
        Register a change callback.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def _notify_changed(self):
        for callback in list(self._subscribers):
            try:
                outcome = callback()
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(f"Error in event change callback: {type(e).__name__}: {e}")

    @staticmethod
    def _failure(error: ApiError, fallback: str) -> EventOperationResult:
        if isinstance(error, ApiResponseError):
            return EventOperationResult(
                success=False,
                error=error.error or fallback,
                details=error.details,
                status=error.status
            )
        return EventOperationResult(success=False, error=fallback)

    async def get_events(self) -> EventOperationResult:
        try:
            events = await self.api.get_events()
        except ApiError as e:
            logger.error(f"Failed to fetch events: {e}")
            return self._failure(e, 'Error al obtener eventos')
        return EventOperationResult(success=True, events=events)

    async def get_event(self, event_id: str) -> EventOperationResult:
        try:
            event = await self.api.get_event(event_id)
        except ApiError as e:
            logger.error(f"Failed to fetch event {event_id}: {e}")
            return self._failure(e, 'Error al obtener evento')
        return EventOperationResult(success=True, event=event)

    async def create_event(self, event_data: Dict[str, Any]) -> EventOperationResult:
        try:
            event = await self.api.create_event(event_data)
        except ApiError as e:
            result = self._failure(e, 'Error al crear evento')
            self._log_failure('create', result)
            return result
        logger.info(f"Event created: {event_data.get('nombreEvento', 'unnamed')}")
        await self._notify_changed()
        return EventOperationResult(success=True, event=event)

    async def update_event(self, event_id: str, event_data: Dict[str, Any]) -> EventOperationResult:
        try:
            event = await self.api.update_event(event_id, event_data)
        except ApiError as e:
            result = self._failure(e, 'Error al actualizar evento')
            self._log_failure('update', result)
            return result
        logger.info(f"Event updated: {event_id}")
        await self._notify_changed()
        return EventOperationResult(success=True, event=event)

    async def delete_event(self, event_id: str) -> EventOperationResult:
        try:
            await self.api.delete_event(event_id)
        except ApiError as e:
            logger.error(f"Failed to delete event {event_id}: {e}")
            return self._failure(e, 'Error al eliminar evento')
        logger.info(f"Event deleted: {event_id}")
        await self._notify_changed()
        return EventOperationResult(success=True)

    @staticmethod
    def _log_failure(operation: str, result: EventOperationResult):
        conflict = classify_conflict(result)
        if conflict.is_conflict:
            logger.warning(f"Event {operation} rejected by schedule conflict: {conflict.message}")
        else:
            logger.error(f"Event {operation} failed: {result.error}")
