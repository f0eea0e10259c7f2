"""Family-agnostic command dispatch to the clock."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from malbouche.devices.device_http import (
    DeviceControllerError,
    DeviceHttpClient,
    DeviceResponse,
    DeviceValidationError,
    validate_ip,
)
from malbouche.devices.device_protocols import (
    ALL_PRESETS,
    CommandPlan,
    DeviceAdapter,
    DeviceFamily,
    PrototypeAdapter,
    StepperAdapter,
)
from malbouche.devices.device_registry import DeviceRegistry
from malbouche.devices.movement_types import Movement


logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Outcome of a command the device accepted (fully or partially)."""
    family: DeviceFamily
    message: str
    partial: bool = False
    responses: List[DeviceResponse] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, object]:
        return {
            'success': True,
            'partial': self.partial,
            'family': self.family.value,
            'message': self.message,
        }


class DeviceDispatcher:
    """
    Sends movements, presets and speed changes to a clock.

    Each operation resolves the device family through the registry and
    delegates encoding to that family's adapter. Failures of the primary
    request raise DeviceControllerError subclasses.
    """

    def __init__(self, registry: DeviceRegistry, http_client: Optional[DeviceHttpClient] = None):
        self.registry = registry
        self.http = http_client or registry.http
        self._stepper = StepperAdapter()
        self._prototype = PrototypeAdapter()

    def adapter_for(self, family: DeviceFamily) -> DeviceAdapter:
        if family is DeviceFamily.STEPPER:
            return self._stepper
        elif family is DeviceFamily.PROTOTYPE:
            return self._prototype
        raise DeviceControllerError(f"No adapter for device family: {family!r}")

    async def _resolve(self, ip: str) -> DeviceAdapter:
        family = await self.registry.detect_family(ip)
        return self.adapter_for(family)

    async def _run(self, ip: str, adapter: DeviceAdapter, plan: CommandPlan) -> DispatchResult:
        logger.info(f"Sending {plan.description} to {adapter.family.value} clock at {ip}")
        primary = await self.http.get(ip, plan.primary)
        result = DispatchResult(
            family=adapter.family,
            message=f"{plan.description} sent to {ip}",
            responses=[primary]
        )

        for follow_up in plan.follow_ups:
            try:
                result.responses.append(await self.http.get(ip, follow_up))
            except DeviceControllerError as e:
                logger.warning(f"{plan.description} accepted by {ip}, but /{follow_up.path} failed: {e}")
                result.partial = True
                result.message = f"{plan.description} sent to {ip}, but /{follow_up.path} failed: {e}"
                break

        return result

    async def send_movement(self, ip: str, movement: Movement) -> DispatchResult:
        """Send a movement; names matching a family preset are sent as that preset."""
        ip = validate_ip(ip)
        adapter = await self._resolve(ip)
        return await self._run(ip, adapter, adapter.movement_plan(movement))

    async def send_preset(self, ip: str, preset: str, speed: Optional[int] = None) -> DispatchResult:
        """
        Send a named preset with an optional speed.

        Raises:
            DeviceValidationError: If no family knows the preset (checked
                before any network call) or the bound family does not
        """
        ip = validate_ip(ip)
        if (preset or '').strip().lower() not in ALL_PRESETS:
            raise DeviceValidationError(
                f"Unknown preset '{preset}'. Available presets: {', '.join(sorted(ALL_PRESETS))}"
            )
        adapter = await self._resolve(ip)
        return await self._run(ip, adapter, adapter.preset_plan(preset, speed))

    async def send_speed(self, ip: str, speed: int) -> DispatchResult:
        """Send a speed update; out-of-range speeds are clamped to [1, 100]."""
        ip = validate_ip(ip)
        adapter = await self._resolve(ip)
        return await self._run(ip, adapter, adapter.speed_plan(speed))

    async def test_connection(self, ip: str) -> DispatchResult:
        """Check that the clock answers its family's connectivity endpoint."""
        ip = validate_ip(ip)
        adapter = await self._resolve(ip)
        response = await self.http.get(ip, adapter.connection_request())
        return DispatchResult(
            family=adapter.family,
            message=f"Connected to {adapter.family.value} clock at {ip}",
            responses=[response]
        )
