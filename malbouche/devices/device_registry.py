"""Per-IP memo of which firmware family a clock speaks."""

import logging
from typing import Dict, Optional

from malbouche.devices.device_http import (
    DeviceControllerError,
    DeviceHttpClient,
    DeviceValidationError,
    validate_ip,
)
from malbouche.devices.device_protocols import (
    DeviceFamily,
    PrototypeAdapter,
    StepperAdapter,
    classify_root_page,
)


logger = logging.getLogger(__name__)


class DeviceRegistry:
    """
    Resolves and memoizes the protocol family for each device IP.

    Bindings live for the lifetime of the registry and change only through
    set_family() or forget().
    """

    def __init__(self, http_client: DeviceHttpClient, probe_timeout_seconds: float = 5.0):
        """
        Initialize registry.

        Args:
            http_client: Transport used for probing
            probe_timeout_seconds: Timeout for each detection request
        """
        self.http = http_client
        self.probe_timeout_seconds = probe_timeout_seconds
        self._bindings: Dict[str, DeviceFamily] = {}

    def get(self, ip: str) -> Optional[DeviceFamily]:
        """Memoized family for ip, without probing."""
        return self._bindings.get(ip)

    def set_family(self, ip: str, family) -> None:
        """
        Bind ip to a family without probing.

        Args:
            ip: Device IP address
            family: DeviceFamily or its string value ("stepper", "prototype")

        Raises:
            DeviceValidationError: If the ip or family is invalid
        """
        ip = validate_ip(ip)
        if not isinstance(family, DeviceFamily):
            try:
                family = DeviceFamily(str(family).strip().lower())
            except ValueError:
                raise DeviceValidationError(
                    f"Invalid device family '{family}'. "
                    f"Must be one of: {', '.join(f.value for f in DeviceFamily)}"
                )
        self._bindings[ip] = family
        logger.info(f"Device family for {ip} set manually to: {family.value}")

    def forget(self, ip: str) -> None:
        if self._bindings.pop(ip, None) is not None:
            logger.info(f"Forgot device family binding for {ip}")

    def clear(self) -> None:
        self._bindings.clear()

    async def detect_family(self, ip: str) -> DeviceFamily:
        """
        Return the family for ip, probing the device on first use.

        Probe order: stepper root page (classified by marker), then the
        prototype handshake; if both fail the stepper family is assumed so the
        clock stays usable.

        Raises:
            DeviceValidationError: If ip is malformed (no network call is made)
        """
        ip = validate_ip(ip)
        cached = self._bindings.get(ip)
        if cached is not None:
            return cached

        logger.info(f"Detecting device family for {ip}...")
        family = await self._probe(ip)
        self._bindings[ip] = family
        logger.info(f"Device at {ip} bound to family: {family.value}")
        return family

    async def _probe(self, ip: str) -> DeviceFamily:
        try:
            response = await self.http.get(
                ip,
                StepperAdapter().connection_request(),
                timeout=self.probe_timeout_seconds
            )
        except DeviceControllerError as e:
            logger.warning(f"Root page probe failed for {ip}: {e}")
        else:
            family = classify_root_page(response.body)
            if family is None:
                logger.info(f"No family marker in root page of {ip}, assuming {DeviceFamily.STEPPER.value}")
                return DeviceFamily.STEPPER
            return family

        try:
            await self.http.get(
                ip,
                PrototypeAdapter().connection_request(),
                timeout=self.probe_timeout_seconds
            )
        except DeviceControllerError as e:
            logger.warning(
                f"Prototype handshake failed for {ip}: {e}; "
                f"defaulting to {DeviceFamily.STEPPER.value}"
            )
            return DeviceFamily.STEPPER

        logger.info(f"Prototype handshake succeeded for {ip}")
        return DeviceFamily.PROTOTYPE

    def describe(self) -> Dict[str, str]:
        return {ip: family.value for ip, family in self._bindings.items()}
