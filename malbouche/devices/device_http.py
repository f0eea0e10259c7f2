"""HTTP transport for the clock's embedded web server."""

import asyncio
import ipaddress
import logging
import socket
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import aiohttp


logger = logging.getLogger(__name__)


class DeviceControllerError(Exception):
    """Device controller error exception."""
    pass


class DeviceValidationError(DeviceControllerError):
    """A command was rejected locally before touching the network."""
    pass


class DeviceConnectionError(DeviceControllerError):
    """The device could not be reached."""
    pass


class DeviceTimeoutError(DeviceControllerError):
    """The device did not answer within the request timeout."""
    pass


class DeviceProtocolError(DeviceControllerError):
    """The device answered with a non-2xx status."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


@dataclass
class DeviceRequest:
    """A single GET against the device: ``/{path}?{params}``."""
    path: str = ''
    params: Dict[str, Any] = field(default_factory=dict)

    def url(self, ip: str, port: int = 80) -> str:
        host = ip if port == 80 else f"{ip}:{port}"
        url = f"http://{host}/{self.path.lstrip('/')}"
        if self.params:
            url = f"{url}?{urlencode(self.params)}"
        return url


@dataclass
class DeviceResponse:
    """Successful (2xx) device response; the body is opaque text."""
    status: int
    body: str
    url: str


def validate_ip(ip: Optional[str]) -> str:
    """
    Validate a dotted-quad IPv4 address.

    Raises:
        DeviceValidationError: If the address is empty or malformed
    """
    if not ip:
        raise DeviceValidationError("No clock IP address configured")
    text = str(ip).strip()
    try:
        ipaddress.IPv4Address(text)
    except ValueError:
        raise DeviceValidationError(f"Invalid IP address format: '{ip}'")
    return text


def has_route_to(ip: str) -> bool:
    """
    Check that the host has a network route to ``ip``.

    Connecting a UDP socket only selects a route; no packet is sent.
    """
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.settimeout(0.1)
        s.connect((ip, 80))
        return True
    except OSError as e:
        logger.debug(f"No route to {ip}: {e}")
        return False
    finally:
        s.close()


class DeviceHttpClient:
    """Issues time-boxed GET requests to a clock's embedded HTTP server."""

    def __init__(self, timeout_seconds: float = 10.0, port: int = 80, check_reachability: bool = True):
        """
        Initialize the transport.

        Args:
            timeout_seconds: Default total timeout per request
            port: HTTP port of the device web server
            check_reachability: Verify a route exists before each request
        """
        self.timeout_seconds = timeout_seconds
        self.port = port
        self.check_reachability = check_reachability

    async def get(self, ip: str, request: DeviceRequest, timeout: Optional[float] = None) -> DeviceResponse:
        """
        Send a GET request to the device.

        Raises:
            DeviceValidationError: If the IP address is malformed
            DeviceConnectionError: If there is no route or the connection fails
            DeviceTimeoutError: If the device does not answer within the timeout
            DeviceProtocolError: If the device answers with a non-2xx status
        """
        ip = validate_ip(ip)
        timeout = self.timeout_seconds if timeout is None else timeout
        url = request.url(ip, self.port)

        if self.check_reachability and not has_route_to(ip):
            raise DeviceConnectionError(f"No network route to clock at {ip}")

        logger.debug(f"Device request: GET {url} (timeout {timeout}s)")
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
                async with session.get(url) as response:
                    body = await response.text()
                    if not 200 <= response.status < 300:
                        logger.error(f"Device at {ip} answered {response.status} for {url}")
                        raise DeviceProtocolError(
                            f"Device at {ip} returned status {response.status} for /{request.path}",
                            status=response.status
                        )
                    logger.debug(f"Device response {response.status} from {url}")
                    return DeviceResponse(status=response.status, body=body, url=url)
        except asyncio.TimeoutError:
            logger.error(f"Timeout after {timeout}s waiting for device at {ip} ({url})")
            raise DeviceTimeoutError(f"Timeout - device at {ip} did not respond within {timeout}s")
        except aiohttp.ClientError as e:
            logger.error(f"Connection error talking to device at {ip}: {type(e).__name__}: {e}")
            raise DeviceConnectionError(f"Failed to connect to device at {ip}: {e}")
