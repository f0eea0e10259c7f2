"""Clock device package."""

from .device_http import (
    DeviceControllerError,
    DeviceConnectionError,
    DeviceHttpClient,
    DeviceProtocolError,
    DeviceRequest,
    DeviceResponse,
    DeviceTimeoutError,
    DeviceValidationError,
    validate_ip,
)
from .device_protocols import (
    DeviceFamily,
    DeviceAdapter,
    StepperAdapter,
    PrototypeAdapter,
    CommandPlan,
    classify_root_page,
)
from .device_registry import DeviceRegistry
from .device_dispatcher import DeviceDispatcher, DispatchResult
from .movement_types import (
    Direction,
    HandMotion,
    Movement,
    MovementValidationError,
)

__all__ = [
    'DeviceControllerError',
    'DeviceConnectionError',
    'DeviceHttpClient',
    'DeviceProtocolError',
    'DeviceRequest',
    'DeviceResponse',
    'DeviceTimeoutError',
    'DeviceValidationError',
    'validate_ip',
    'DeviceFamily',
    'DeviceAdapter',
    'StepperAdapter',
    'PrototypeAdapter',
    'CommandPlan',
    'classify_root_page',
    'DeviceRegistry',
    'DeviceDispatcher',
    'DispatchResult',
    'Direction',
    'HandMotion',
    'Movement',
    'MovementValidationError',
]
