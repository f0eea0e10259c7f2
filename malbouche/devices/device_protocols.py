"""Command encodings for the two clock firmware families."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional

from malbouche.devices.device_http import DeviceRequest, DeviceValidationError
from malbouche.devices.movement_types import Direction, Movement, clamp_angle, clamp_speed


logger = logging.getLogger(__name__)


class DeviceFamily(Enum):
    """Firmware protocol families."""
    STEPPER = "stepper"  # Stepper motors, query-parameter commands
    PROTOTYPE = "prototype"  # 28BYJ-48 prototype, path-segment commands


# Markers found in each family's root page
STEPPER_MARKER = "ESP32"
PROTOTYPE_MARKER = "28BYJ-48"


@dataclass
class CommandPlan:
    """
    Requests that make up one logical command.

    The primary request must succeed; a failed follow-up only downgrades the
    result to a partial success.
    """
    primary: DeviceRequest
    follow_ups: List[DeviceRequest] = field(default_factory=list)
    description: str = ''


class DeviceAdapter(ABC):
    """Translates family-agnostic commands into one family's HTTP encoding."""

    family: DeviceFamily
    presets: FrozenSet[str] = frozenset()

    def validate_preset(self, preset: str) -> str:
        """
        Normalize a preset name and check it against this family's presets.

        Raises:
            DeviceValidationError: If the family does not support the preset
        """
        name = (preset or '').strip().lower()
        if name not in self.presets:
            raise DeviceValidationError(
                f"Preset '{preset}' not supported by {self.family.value} clock. "
                f"Available presets: {', '.join(sorted(self.presets))}"
            )
        return name

    @abstractmethod
    def movement_plan(self, movement: Movement) -> CommandPlan:
        """Encode a full movement."""

    @abstractmethod
    def preset_plan(self, preset: str, speed: Optional[int] = None) -> CommandPlan:
        """Encode a named preset with an optional speed."""

    @abstractmethod
    def speed_plan(self, speed: int) -> CommandPlan:
        """Encode a speed update (clamped, never rejected)."""

    @abstractmethod
    def connection_request(self) -> DeviceRequest:
        """Request used to test connectivity."""


class StepperAdapter(DeviceAdapter):
    """Family A: every parameter travels in the query string."""

    family = DeviceFamily.STEPPER
    presets = frozenset({'normal', 'left', 'right', 'crazy', 'stop'})

    def movement_plan(self, movement: Movement) -> CommandPlan:
        if movement.preset_name in self.presets:
            return self.preset_plan(movement.preset_name, movement.hours.speed)

        params = {
            'nombre': movement.name,
            'dirHoras': movement.hours.direction.value,
            'dirMinutos': movement.minutes.direction.value,
            'velHoras': clamp_speed(movement.hours.speed),
            'velMinutos': clamp_speed(movement.minutes.speed),
            'angHoras': clamp_angle(movement.hours.angle),
            'angMinutos': clamp_angle(movement.minutes.angle),
        }
        return CommandPlan(
            primary=DeviceRequest('movement', params),
            description=f"movement '{movement.name}'"
        )

    def preset_plan(self, preset: str, speed: Optional[int] = None) -> CommandPlan:
        name = self.validate_preset(preset)
        params = {'modo': name}
        if speed is not None:
            params['velocidad'] = clamp_speed(speed)
        return CommandPlan(primary=DeviceRequest('preset', params), description=f"preset '{name}'")

    def speed_plan(self, speed: int) -> CommandPlan:
        value = clamp_speed(speed)
        return CommandPlan(
            primary=DeviceRequest('movement', {'nombre': 'speed', 'velocidad': value}),
            description=f"speed {value}"
        )

    def connection_request(self) -> DeviceRequest:
        return DeviceRequest('')


class PrototypeAdapter(DeviceAdapter):
    """Family B: presets are path segments, speed has its own endpoint."""

    family = DeviceFamily.PROTOTYPE
    presets = frozenset({'left', 'right', 'crazy', 'normal', 'stop', 'swing'})

    @staticmethod
    def mode_for(movement: Movement) -> str:
        """
        Pick the firmware mode for a movement.

        Presets map to themselves; custom movements follow their hand
        directions (mixed directions map to "crazy").
        """
        if movement.preset_name:
            return movement.preset_name

        directions = {movement.hours.direction, movement.minutes.direction}
        if directions == {Direction.CLOCKWISE}:
            return 'right'
        if directions == {Direction.COUNTERCLOCKWISE}:
            return 'left'
        return 'crazy'

    def movement_plan(self, movement: Movement) -> CommandPlan:
        mode = self.mode_for(movement)
        if not movement.preset_name:
            logger.info(f"Custom movement '{movement.name}' mapped to prototype mode '{mode}'")
        return self.preset_plan(mode, movement.hours.speed)

    def preset_plan(self, preset: str, speed: Optional[int] = None) -> CommandPlan:
        name = self.validate_preset(preset)
        follow_ups = []
        if speed is not None:
            follow_ups.append(DeviceRequest('speed', {'value': clamp_speed(speed)}))
        return CommandPlan(primary=DeviceRequest(name), follow_ups=follow_ups, description=f"mode '{name}'")

    def speed_plan(self, speed: int) -> CommandPlan:
        value = clamp_speed(speed)
        return CommandPlan(primary=DeviceRequest('speed', {'value': value}), description=f"speed {value}")

    def connection_request(self) -> DeviceRequest:
        return DeviceRequest('status')


ALL_PRESETS = StepperAdapter.presets | PrototypeAdapter.presets


def classify_root_page(body: str) -> Optional[DeviceFamily]:
    """
    Identify the family from a root-page body.

    The prototype page also mentions the ESP32, so its marker is checked first.
    """
    text = body or ''
    if PROTOTYPE_MARKER in text:
        return DeviceFamily.PROTOTYPE
    if STEPPER_MARKER in text:
        return DeviceFamily.STEPPER
    return None
