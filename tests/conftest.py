"""Pytest fixtures and configuration for testing the clock scheduler."""

import pytest
from datetime import datetime
from typing import Dict, Any
from unittest.mock import AsyncMock, Mock

from malbouche.api.api_client import ApiClient
from malbouche.devices.device_http import DeviceResponse
from malbouche.devices.movement_types import Movement
from malbouche.scheduler.event_types import AutomationEvent
from malbouche.scheduler.execution_guard import ExecutionGuard


# ============================================================================
# Time Fixtures
# ============================================================================

@pytest.fixture
def wednesday_1432():
    """Wednesday 2024-06-19 at 14:32:00."""
    return datetime(2024, 6, 19, 14, 32, 0)


@pytest.fixture
def thursday_1432():
    """Thursday 2024-06-20 at 14:32:00."""
    return datetime(2024, 6, 20, 14, 32, 0)


# ============================================================================
# Event Fixtures
# ============================================================================

@pytest.fixture
def event_config_thursday() -> Dict[str, Any]:
    """Active event on Thursdays at 14:32 (wire format)."""
    return {
        'id': 'evt-1',
        'nombreEvento': 'Afternoon spin',
        'activo': True,
        'horaInicio': '14:32',
        'horaFin': '14:40',
        'diasSemana': ['Th'],
        'movementId': 'mov-1',
    }


@pytest.fixture
def event_config_inactive(event_config_thursday) -> Dict[str, Any]:
    """Same schedule as the Thursday event, but disabled."""
    config = dict(event_config_thursday)
    config['id'] = 'evt-2'
    config['activo'] = False
    return config


@pytest.fixture
def event_thursday(event_config_thursday) -> AutomationEvent:
    return AutomationEvent.from_dict(event_config_thursday)


@pytest.fixture
def event_inactive(event_config_inactive) -> AutomationEvent:
    return AutomationEvent.from_dict(event_config_inactive)


@pytest.fixture
def guard():
    """Fresh execution guard with the default 60 s cooldown."""
    return ExecutionGuard(cooldown_seconds=60)


# ============================================================================
# Movement Fixtures
# ============================================================================

@pytest.fixture
def movement_config_custom() -> Dict[str, Any]:
    """Custom movement with opposite hand directions (wire format)."""
    return {
        'id': 'mov-1',
        'nombre': 'Vaivén',
        'duracion': 30,
        'movimiento': {
            'direccionGeneral': 'horario',
            'horas': {'direccion': 'horario', 'velocidad': 40, 'angulo': 90},
            'minutos': {'direccion': 'antihorario', 'velocidad': 70, 'angulo': 180},
        },
    }


@pytest.fixture
def movement_custom(movement_config_custom) -> Movement:
    return Movement.from_dict(movement_config_custom)


@pytest.fixture
def movement_preset_left() -> Movement:
    """Movement named after the 'left' preset."""
    return Movement.from_dict({
        'id': 'mov-left',
        'nombre': 'left',
        'movimiento': {
            'direccionGeneral': 'antihorario',
            'horas': {'velocidad': 60},
            'minutos': {'velocidad': 60},
        },
    })


# ============================================================================
# Transport Fixtures
# ============================================================================

@pytest.fixture
def mock_api_client():
    """ApiClient double with async methods."""
    client = Mock(spec=ApiClient)
    client.get_events = AsyncMock(return_value=[])
    client.get_movement = AsyncMock(return_value=None)
    client.set_current_movement = AsyncMock(return_value={})
    return client


@pytest.fixture
def ok_response():
    """Factory for successful device responses."""
    def _make(body: str = 'OK', url: str = 'http://192.168.1.50/'):
        return DeviceResponse(status=200, body=body, url=url)
    return _make
