"""REST client for the Malbouche backend (events, movements, current movement)."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp

from malbouche.devices.movement_types import Movement


logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "https://malbouche-backend.onrender.com/api"


class ApiError(Exception):
    """Base exception for backend API failures."""
    pass


class ApiConnectionError(ApiError):
    """The backend could not be reached."""
    pass


class ApiTimeoutError(ApiError):
    """The backend did not answer within the configured timeout."""
    pass


class AuthTokenMissingError(ApiError):
    """No bearer token is available for an authenticated call."""
    pass


class ApiResponseError(ApiError):
    """The backend answered with a non-2xx status or a malformed body."""

    def __init__(self, message: str, status: Optional[int] = None,
                 error: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.status = status
        self.error = error
        self.details = details


class TokenProvider:
    """
    Supplies the bearer token written by the external login flow.

    A token configured inline wins; otherwise the token file is re-read on
    every call so a fresh login is picked up without restarting.
    """

    def __init__(self, token: Optional[str] = None, token_file: Optional[str] = None):
        self.token = token or None
        self.token_file = Path(token_file) if token_file else None

    def get_token(self) -> Optional[str]:
        if self.token:
            return self.token
        if self.token_file is None or not self.token_file.exists():
            return None
        try:
            token = self.token_file.read_text().strip()
        except OSError as e:
            logger.warning(f"Failed to read token file {self.token_file}: {e}")
            return None
        return token or None


class ApiClient:
    """Async client for the backend REST API."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token_provider: Optional[TokenProvider] = None,
        timeout_seconds: float = 15.0
    ):
        """
        Initialize API client.

        Args:
            base_url: Backend base URL, e.g. "https://host/api"
            token_provider: Source of the bearer token (None disables auth)
            timeout_seconds: Total timeout applied to every request
        """
        self._base_url = base_url.rstrip('/')
        self.token_provider = token_provider or TokenProvider()
        self.timeout_seconds = timeout_seconds

    @property
    def base_url(self) -> str:
        return self._base_url

    @base_url.setter
    def base_url(self, value: str):
        self._base_url = value.rstrip('/')
        logger.info(f"Backend URL updated: {self._base_url}")

    def _headers(self, require_auth: bool) -> Dict[str, str]:
        headers = {'Content-Type': 'application/json'}
        token = self.token_provider.get_token()
        if token:
            headers['Authorization'] = f"Bearer {token}"
        elif require_auth:
            raise AuthTokenMissingError("No authentication token available")
        return headers

    async def request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        require_auth: bool = True
    ) -> Dict[str, Any]:
        """
        Perform a request and return the decoded ``{success, data|error}`` body.

        Raises:
            AuthTokenMissingError: If auth is required and no token is available
            ApiTimeoutError: If the request exceeds the timeout
            ApiConnectionError: If the backend cannot be reached
            ApiResponseError: On non-2xx status or a non-JSON body
        """
        url = f"{self._base_url}{endpoint}"
        headers = self._headers(require_auth)
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        logger.debug(f"API request: {method} {url}")
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(method, url, json=payload, headers=headers) as response:
                    logger.debug(f"API response: {method} {url} -> {response.status}")
                    try:
                        data = await response.json(content_type=None)
                    except ValueError:
                        text = await response.text()
                        raise ApiResponseError(
                            f"Malformed response body from {endpoint} (status {response.status}): {text[:200]}",
                            status=response.status
                        )

                    if not isinstance(data, dict):
                        data = {'data': data}

                    if response.status >= 400:
                        error = data.get('error') or data.get('message') or f"HTTP {response.status}"
                        raise ApiResponseError(
                            f"{method} {endpoint} failed with status {response.status}: {error}",
                            status=response.status,
                            error=error,
                            details=data.get('details')
                        )
                    return data
        except asyncio.TimeoutError:
            logger.error(f"Timeout after {self.timeout_seconds}s: {method} {url}")
            raise ApiTimeoutError(f"{method} {endpoint} timed out after {self.timeout_seconds} seconds")
        except aiohttp.ClientError as e:
            logger.error(f"HTTP client error for {method} {url}: {type(e).__name__}: {e}")
            raise ApiConnectionError(f"Failed to reach backend for {method} {endpoint}: {e}")

    @staticmethod
    def _data(body: Dict[str, Any], endpoint: str) -> Any:
        if body.get('success') is False:
            raise ApiResponseError(
                f"{endpoint} reported failure: {body.get('error', 'unknown error')}",
                error=body.get('error'),
                details=body.get('details')
            )
        return body.get('data')

    # Events

    async def get_events(self) -> List[Dict[str, Any]]:
        """Fetch every event (active and inactive) as raw dictionaries."""
        data = self._data(await self.request('GET', '/events'), '/events')
        if not isinstance(data, list):
            raise ApiResponseError("Invalid events payload: 'data' is not a list")
        return data

    async def get_event(self, event_id: str) -> Dict[str, Any]:
        return self._data(await self.request('GET', f"/events/{event_id}"), '/events')

    async def create_event(self, event_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._data(await self.request('POST', '/events', payload=event_data), '/events')

    async def update_event(self, event_id: str, event_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._data(
            await self.request('PUT', f"/events/{event_id}", payload=event_data),
            '/events'
        )

    async def delete_event(self, event_id: str) -> None:
        await self.request('DELETE', f"/events/{event_id}")

    # Movements

    async def get_movements(self) -> List[Movement]:
        """Fetch all movements; malformed entries are skipped with a warning."""
        data = self._data(await self.request('GET', '/movements'), '/movements')
        if not isinstance(data, list):
            raise ApiResponseError("Invalid movements payload: 'data' is not a list")

        movements = []
        for entry in data:
            try:
                movements.append(Movement.from_dict(entry))
            except ValueError as e:
                logger.warning(f"Skipping malformed movement {entry!r}: {e}")
        return movements

    async def get_movement(self, movement_id: str) -> Optional[Movement]:
        """
        Resolve a movement by id.

        The backend has no reliable single-movement endpoint, so the full list
        is fetched and filtered.

        Returns:
            The movement, or None if no movement has that id
        """
        movements = await self.get_movements()
        for movement in movements:
            if movement.id == str(movement_id):
                logger.debug(f"Resolved movement {movement_id} -> '{movement.name}'")
                return movement

        logger.error(f"Movement {movement_id} not found among {len(movements)} movements")
        return None

    async def create_movement(self, movement: Movement) -> Dict[str, Any]:
        """
        Create a new movement definition.

        Raises:
            MovementValidationError: If speed or angle is out of range (no request is made)
        """
        movement.validate()
        body = await self.request('POST', '/movements', payload=movement.to_dict())
        return body.get('data', body)

    async def set_current_movement(self, movement: Movement) -> Dict[str, Any]:
        """Persist the movement as the clock's current operating state."""
        body = await self.request(
            'POST',
            f"/movimiento-actual/{quote(movement.name, safe='')}",
            payload={'velocidad': movement.speed}
        )
        logger.info(f"Current movement set to '{movement.name}' (speed {movement.speed}) in store")
        return self._data(body, '/movimiento-actual')
