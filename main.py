"""Main application for the Malbouche clock event scheduler."""

import asyncio
import logging
import signal
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from malbouche.api import ApiClient, ConflictAwareClient, TokenProvider
from malbouche.config import Config, ConfigError
from malbouche.devices import DeviceDispatcher, DeviceHttpClient, DeviceRegistry
from malbouche.health import HealthCheckServer
from malbouche.scheduler import AuditLog, EventCache, EventExecutor, TriggerLoop
from version import __version__


# Global flag for graceful shutdown
shutdown_event = asyncio.Event()


def setup_logging(config: Config):
    """Set up console and rotating file logging."""
    log_config = config.logging_config
    log_level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)

    log_dir = Path('logs')
    log_dir.mkdir(exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(log_level)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    max_bytes = log_config.get('max_file_size_mb', 10) * 1024 * 1024
    backup_count = log_config.get('backup_count', 5)

    file_handler = RotatingFileHandler(
        log_dir / 'malbouche_scheduler.log',
        maxBytes=max_bytes,
        backupCount=backup_count
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logging.info("Logging initialized")


def signal_handler(signum, frame):
    """Handle shutdown signals."""
    logging.info(f"Received signal {signum}, initiating graceful shutdown...")
    shutdown_event.set()


def log_env_overrides(config: Config):
    """Log which configuration values came from environment variables."""
    logger = logging.getLogger(__name__)
    for path, env_var in sorted(config.env_overridden_paths.items()):
        logger.info(f"Config {path} overridden by {env_var}")


def make_clock(timezone: Optional[str]) -> Optional[Callable[[], datetime]]:
    """Local-time source for the scheduler; None means host time."""
    if not timezone:
        return None
    tz = ZoneInfo(timezone)
    return lambda: datetime.now(tz)


class Application:
    """Wires the scheduler components together from configuration."""

    def __init__(self, config: Config):
        self.config = config
        api_cfg = config.api
        device_cfg = config.device
        scheduler_cfg = config.scheduler
        storage_cfg = config.storage

        self.clock = make_clock(scheduler_cfg.get('timezone'))

        self.api_client = ApiClient(
            base_url=api_cfg['base_url'],
            token_provider=TokenProvider(token=api_cfg.get('token'), token_file=api_cfg.get('token_file')),
            timeout_seconds=float(api_cfg['timeout_seconds'])
        )
        self.events_client = ConflictAwareClient(self.api_client)

        self.http_client = DeviceHttpClient(timeout_seconds=float(device_cfg['timeout_seconds']))
        self.registry = DeviceRegistry(
            self.http_client,
            probe_timeout_seconds=float(device_cfg['probe_timeout_seconds'])
        )
        if device_cfg.get('ip') and device_cfg.get('family'):
            self.registry.set_family(device_cfg['ip'], device_cfg['family'])
        self.dispatcher = DeviceDispatcher(self.registry, self.http_client)

        self.audit_log = AuditLog(
            log_file=storage_cfg['audit_log_file'],
            max_entries=int(storage_cfg['audit_log_max_entries'])
        )
        self.executor = EventExecutor(self.api_client, self.dispatcher, self.audit_log, clock=self.clock)
        self.cache = EventCache(self.api_client, cache_file=storage_cfg['events_cache_file'])

        self.trigger_loop = TriggerLoop(
            cache=self.cache,
            executor=self.executor,
            device_ip=device_cfg.get('ip'),
            check_interval_seconds=float(scheduler_cfg['check_interval_seconds']),
            refresh_interval_minutes=float(scheduler_cfg['refresh_interval_minutes']),
            firing_window_minutes=float(scheduler_cfg['firing_window_minutes']),
            cooldown_seconds=float(scheduler_cfg['cooldown_seconds']),
            clock=self.clock,
            conflict_client=self.events_client
        )

        self.health_server = None
        health_cfg = config.health_server
        if health_cfg.get('enabled'):
            self.health_server = HealthCheckServer(
                self.trigger_loop,
                registry=self.registry,
                audit_log=self.audit_log,
                host=health_cfg.get('host', '0.0.0.0'),
                port=health_cfg.get('port', 4329)
            )

    async def run(self):
        """Run until shutdown_event is set."""
        logger = logging.getLogger(__name__)

        if self.health_server:
            await self.health_server.start()

        await self.trigger_loop.start()
        try:
            await shutdown_event.wait()
        finally:
            logger.info("Shutting down scheduler...")
            await self.trigger_loop.stop()
            if self.health_server:
                await self.health_server.stop()
            logger.info("Shutdown complete")


async def main():
    """Main entry point for the application."""
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        config = Config()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)

    logger = logging.getLogger(__name__)
    logger.info("=" * 60)
    logger.info(f"Malbouche Clock Scheduler v{__version__}")
    logger.info("=" * 60)
    logger.info(f"Backend API: {config.api['base_url']}")
    logger.info(f"Clock IP: {config.device.get('ip') or 'not configured'}")
    log_env_overrides(config)

    try:
        await Application(config).run()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
