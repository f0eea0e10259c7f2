"""Movement data structures and validation for clock hand motion."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional, List


logger = logging.getLogger(__name__)


SPEED_MIN = 1
SPEED_MAX = 100
ANGLE_MIN = 0.1
ANGLE_MAX = 360.0
DEFAULT_SPEED = 50

# Movement names that every firmware understands as a named preset
PRESET_MOVEMENTS = ('left', 'right', 'crazy', 'normal', 'stop', 'swing')


class MovementValidationError(ValueError):
    """Raised when a movement definition is out of range or malformed."""
    pass


class Direction(Enum):
    """Rotation direction of a clock hand (wire values are the API's)."""
    CLOCKWISE = "horario"
    COUNTERCLOCKWISE = "antihorario"

    @classmethod
    def parse(cls, value: Any, default: Optional['Direction'] = None) -> 'Direction':
        """
        Parse a direction from its wire value or English name.

        Args:
            value: "horario", "antihorario", "clockwise", "counterclockwise" or a Direction
            default: Returned when value is empty

        Raises:
            MovementValidationError: If value is not a known direction and no default applies
        """
        if isinstance(value, Direction):
            return value
        if value is None or value == '':
            if default is not None:
                return default
            raise MovementValidationError("Direction is required")

        text = str(value).strip().lower()
        aliases = {
            'horario': cls.CLOCKWISE,
            'clockwise': cls.CLOCKWISE,
            'cw': cls.CLOCKWISE,
            'antihorario': cls.COUNTERCLOCKWISE,
            'counterclockwise': cls.COUNTERCLOCKWISE,
            'ccw': cls.COUNTERCLOCKWISE,
        }
        if text not in aliases:
            raise MovementValidationError(
                f"Invalid direction '{value}'. Must be one of: horario, antihorario"
            )
        return aliases[text]


def clamp_speed(speed: Any) -> int:
    """Clamp a speed to [1, 100]; unparseable values fall back to the default speed."""
    try:
        value = int(float(speed))
    except (TypeError, ValueError):
        logger.debug(f"Unparseable speed {speed!r}, using default {DEFAULT_SPEED}")
        value = DEFAULT_SPEED
    return min(max(value, SPEED_MIN), SPEED_MAX)


def clamp_angle(angle: Any) -> float:
    """Clamp an angle to [0.1, 360]; unparseable values fall back to a full turn."""
    try:
        value = float(angle)
    except (TypeError, ValueError):
        logger.debug(f"Unparseable angle {angle!r}, using {ANGLE_MAX}")
        value = ANGLE_MAX
    return min(max(value, ANGLE_MIN), ANGLE_MAX)


@dataclass
class HandMotion:
    """Motion of a single clock hand."""
    direction: Direction = Direction.CLOCKWISE
    speed: int = DEFAULT_SPEED
    angle: float = ANGLE_MAX

    def validate(self, label: str) -> List[str]:
        """Return a list of range errors for this hand (empty when valid)."""
        errors = []
        if isinstance(self.speed, bool) or not isinstance(self.speed, int):
            errors.append(f"{label} speed must be an integer, got: {self.speed!r}")
        elif not (SPEED_MIN <= self.speed <= SPEED_MAX):
            errors.append(f"{label} speed must be between {SPEED_MIN} and {SPEED_MAX}, got: {self.speed}")

        if isinstance(self.angle, bool) or not isinstance(self.angle, (int, float)):
            errors.append(f"{label} angle must be a number, got: {self.angle!r}")
        elif not (ANGLE_MIN <= self.angle <= ANGLE_MAX):
            errors.append(f"{label} angle must be between {ANGLE_MIN} and {ANGLE_MAX}, got: {self.angle}")
        return errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            'direccion': self.direction.value,
            'velocidad': self.speed,
            'angulo': self.angle,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], fallback_direction: Direction) -> 'HandMotion':
        """Leniently build a hand from API data; range checks happen in validate()."""
        data = data or {}
        if not isinstance(data, dict):
            raise MovementValidationError(f"Hand motion must be a dictionary, got: {type(data).__name__}")
        speed = data.get('velocidad')
        angle = data.get('angulo')
        return cls(
            direction=Direction.parse(data.get('direccion'), default=fallback_direction),
            speed=DEFAULT_SPEED if speed is None else speed,
            angle=ANGLE_MAX if angle is None else angle,
        )


@dataclass
class Movement:
    """A named motion descriptor for both clock hands."""
    id: str
    name: str
    duration: Optional[float] = None
    hours: HandMotion = field(default_factory=HandMotion)
    minutes: HandMotion = field(default_factory=HandMotion)

    @property
    def preset_name(self) -> Optional[str]:
        """Lower-cased name when the movement is one of the firmware presets."""
        name = (self.name or '').strip().lower()
        return name if name in PRESET_MOVEMENTS else None

    @property
    def speed(self) -> int:
        """Operating speed persisted to the store (the hour hand's)."""
        return clamp_speed(self.hours.speed)

    def validate(self) -> None:
        """
        Validate a movement definition before it is created.

        Raises:
            MovementValidationError: If the name is missing or a hand is out of range
        """
        errors = []
        if not self.name or not str(self.name).strip():
            errors.append("Movement name is required")
        errors.extend(self.hours.validate('hours'))
        errors.extend(self.minutes.validate('minutes'))
        if self.duration is not None:
            if not isinstance(self.duration, (int, float)) or self.duration <= 0:
                errors.append(f"duration must be a positive number, got: {self.duration!r}")
        if errors:
            raise MovementValidationError("; ".join(errors))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the API's wire representation."""
        result = {
            'nombre': self.name,
            'movimiento': {
                'horas': self.hours.to_dict(),
                'minutos': self.minutes.to_dict(),
            },
        }
        if self.id:
            result['id'] = self.id
        if self.duration is not None:
            result['duracion'] = self.duration
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Movement':
        """
        Create a movement from API data.

        Missing hand directions fall back to ``direccionGeneral`` and then to
        clockwise; missing speeds fall back to 50.

        Raises:
            MovementValidationError: If the payload or one of its parts is not a mapping,
                or a direction is unknown
        """
        if not isinstance(data, dict):
            raise MovementValidationError(f"Movement must be a dictionary, got: {type(data).__name__}")

        motion = data.get('movimiento') or {}
        if not isinstance(motion, dict):
            raise MovementValidationError(f"movimiento must be a dictionary, got: {type(motion).__name__}")
        general = Direction.parse(motion.get('direccionGeneral'), default=Direction.CLOCKWISE)
        return cls(
            id=str(data.get('id', '')),
            name=data.get('nombre', ''),
            duration=data.get('duracion'),
            hours=HandMotion.from_dict(motion.get('horas'), general),
            minutes=HandMotion.from_dict(motion.get('minutos'), general),
        )

    def __repr__(self) -> str:
        return f"Movement(id='{self.id}', name='{self.name}')"
