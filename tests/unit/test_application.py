"""Test wiring of the application from configuration."""

import asyncio
import logging
from datetime import datetime
from unittest.mock import AsyncMock, Mock

import pytest

import main
from main import Application, log_env_overrides, make_clock
from malbouche.config import Config, ENV_VAR_MAPPING
from malbouche.devices import DeviceFamily


@pytest.fixture
def clean_env(monkeypatch):
    for var in list(ENV_VAR_MAPPING) + ['MALBOUCHE_CONFIG_PATH']:
        monkeypatch.delenv(var, raising=False)


def _config(tmp_path, body: str) -> Config:
    path = tmp_path / "config.yaml"
    path.write_text(body)
    return Config(str(path))


class TestMakeClock:

    def test_no_timezone_means_host_time(self):
        assert make_clock(None) is None
        assert make_clock('') is None

    def test_timezone_aware_clock(self):
        clock = make_clock('America/Mexico_City')
        now = clock()
        assert isinstance(now, datetime)
        assert now.tzinfo is not None


class TestApplication:

    def test_wires_components(self, tmp_path, clean_env):
        config = _config(tmp_path, f"""
api:
  base_url: "http://backend.local/api"
  token: "abc"
device:
  ip: "192.168.0.175"
  family: "prototype"
scheduler:
  check_interval_seconds: 15
  cooldown_seconds: 90
storage:
  events_cache_file: "{tmp_path / 'events.json'}"
  audit_log_file: "{tmp_path / 'log.json'}"
  audit_log_max_entries: 20
health_server:
  enabled: true
  port: 8099
""")

        app = Application(config)

        assert app.api_client.base_url == 'http://backend.local/api'
        assert app.registry.get('192.168.0.175') is DeviceFamily.PROTOTYPE
        assert app.trigger_loop.device_ip == '192.168.0.175'
        assert app.trigger_loop.check_interval_seconds == 15
        assert app.trigger_loop.cooldown_seconds == 90
        assert app.trigger_loop.conflict_client is app.events_client
        assert app.audit_log.max_entries == 20
        assert app.health_server.port == 8099

    def test_defaults_without_device(self, tmp_path, clean_env):
        config = _config(tmp_path, f"""
storage:
  events_cache_file: "{tmp_path / 'events.json'}"
  audit_log_file: "{tmp_path / 'log.json'}"
""")

        app = Application(config)

        assert app.trigger_loop.device_ip is None
        assert app.registry.describe() == {}
        assert app.health_server is None
        assert app.clock is None

    def test_run_waits_for_shutdown_in_fresh_loop(self, tmp_path, clean_env):
        """The module-level shutdown event is usable inside asyncio.run."""
        config = _config(tmp_path, f"""
storage:
  events_cache_file: "{tmp_path / 'events.json'}"
  audit_log_file: "{tmp_path / 'log.json'}"
""")
        app = Application(config)
        app.trigger_loop = Mock()
        app.trigger_loop.start = AsyncMock()
        app.trigger_loop.stop = AsyncMock()

        main.shutdown_event.set()
        try:
            asyncio.run(app.run())
        finally:
            main.shutdown_event.clear()

        app.trigger_loop.start.assert_awaited_once()
        app.trigger_loop.stop.assert_awaited_once()


class TestEnvOverrideLogging:

    def test_logs_overridden_paths(self, tmp_path, clean_env, monkeypatch, caplog):
        monkeypatch.setenv('MALBOUCHE_DEVICE_IP', '10.0.0.9')
        config = _config(tmp_path, "device:\n  ip: \"192.168.0.175\"\n")

        with caplog.at_level(logging.INFO, logger='main'):
            log_env_overrides(config)

        assert 'Config device.ip overridden by MALBOUCHE_DEVICE_IP' in caplog.text
        assert '10.0.0.9' not in caplog.text
