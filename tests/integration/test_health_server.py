"""Integration tests for the health check endpoints."""

import asyncio
from unittest.mock import Mock

import pytest
from aiohttp.test_utils import TestClient, TestServer

from malbouche.devices.device_registry import DeviceRegistry
from malbouche.health.health_server import HealthCheckServer
from malbouche.scheduler.audit_log import AuditLog, ExecutionAuditEntry
from malbouche.scheduler.trigger_loop import TriggerLoop


@pytest.fixture
def trigger_loop():
    loop = Mock(spec=TriggerLoop)
    loop.get_status.return_value = {
        'running': True,
        'events_count': 2,
        'device_ip': '192.168.1.50',
        'events_source': 'api',
    }
    return loop


@pytest.fixture
def registry():
    double = Mock(spec=DeviceRegistry)
    double.describe.return_value = {'192.168.1.50': 'prototype'}
    return double


@pytest.fixture
def audit_log(tmp_path):
    log = AuditLog(log_file=str(tmp_path / "execution_log.json"))
    for i in range(3):
        log.append(ExecutionAuditEntry(
            event_id=f"evt-{i}",
            event_name=f"Event {i}",
            timestamp=f"2024-06-20T14:3{i}:00",
            outcome='success',
            phase='dispatch',
            message='ok'
        ))
    return log


def _get(server: HealthCheckServer, path: str):
    async def run_test():
        async with TestClient(TestServer(server.app)) as client:
            response = await client.get(path)
            return response.status, await response.json()

    return asyncio.run(run_test())


class TestHealthEndpoints:

    def test_basic_health(self, trigger_loop):
        status, body = _get(HealthCheckServer(trigger_loop), '/health')

        assert status == 200
        assert body['status'] == 'ok'
        assert body['service'] == 'malbouche_scheduler'

    def test_scheduler_running(self, trigger_loop, registry):
        status, body = _get(HealthCheckServer(trigger_loop, registry=registry), '/health/scheduler')

        assert status == 200
        assert body['status'] == 'ok'
        assert body['scheduler']['events_count'] == 2
        assert body['device_families'] == {'192.168.1.50': 'prototype'}

    def test_scheduler_stopped_is_503(self, trigger_loop):
        trigger_loop.get_status.return_value = {'running': False}

        status, body = _get(HealthCheckServer(trigger_loop), '/health/scheduler')

        assert status == 503
        assert body['status'] == 'stopped'
        assert 'device_families' not in body

    def test_recent_executions_newest_first(self, trigger_loop, audit_log):
        status, body = _get(HealthCheckServer(trigger_loop, audit_log=audit_log), '/health/executions?limit=2')

        assert status == 200
        assert [entry['event_id'] for entry in body['executions']] == ['evt-2', 'evt-1']

    def test_executions_bad_limit(self, trigger_loop, audit_log):
        status, body = _get(HealthCheckServer(trigger_loop, audit_log=audit_log), '/health/executions?limit=x')

        assert status == 400
        assert body['status'] == 'error'

    def test_executions_without_log(self, trigger_loop):
        status, body = _get(HealthCheckServer(trigger_loop), '/health/executions')

        assert status == 200
        assert body == {'executions': []}
