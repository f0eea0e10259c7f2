"""HTTP server for health check endpoints."""

import logging
from datetime import datetime
from typing import Optional

from aiohttp import web

from malbouche.devices.device_registry import DeviceRegistry
from malbouche.scheduler.audit_log import AuditLog
from malbouche.scheduler.trigger_loop import TriggerLoop


logger = logging.getLogger(__name__)


class HealthCheckServer:
    """HTTP server exposing scheduler health and recent executions."""

    def __init__(
        self,
        trigger_loop: TriggerLoop,
        registry: Optional[DeviceRegistry] = None,
        audit_log: Optional[AuditLog] = None,
        host: str = '0.0.0.0',
        port: int = 4329
    ):
        """
        Initialize health check server.

        Args:
            trigger_loop: Scheduler whose status is reported
            registry: Device family bindings to report
            audit_log: Source of recent executions
            host: Host to bind to (default: 0.0.0.0)
            port: Port to bind to (default: 4329)
        """
        self.trigger_loop = trigger_loop
        self.registry = registry
        self.audit_log = audit_log
        self.host = host
        self.port = port
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None

        self.app.router.add_get('/health', self.handle_health)
        self.app.router.add_get('/health/scheduler', self.handle_scheduler_health)
        self.app.router.add_get('/health/executions', self.handle_executions)

        logger.info(f"Health check server initialized on {host}:{port}")

    async def handle_health(self, request: web.Request) -> web.Response:
        """Basic liveness endpoint; 200 while the process is up."""
        logger.debug("Health check request: /health -> OK")
        return web.json_response({
            'status': 'ok',
            'timestamp': datetime.now().isoformat(),
            'service': 'malbouche_scheduler'
        })

    async def handle_scheduler_health(self, request: web.Request) -> web.Response:
        """
        Scheduler status endpoint.

        Returns 200 with status 'ok' while the trigger loop runs, 503 with
        status 'stopped' otherwise.
        """
        status = self.trigger_loop.get_status()
        response_data = {
            'status': 'ok' if status['running'] else 'stopped',
            'timestamp': datetime.now().isoformat(),
            'scheduler': status,
        }
        if self.registry is not None:
            response_data['device_families'] = self.registry.describe()

        return web.json_response(response_data, status=200 if status['running'] else 503)

    async def handle_executions(self, request: web.Request) -> web.Response:
        """Most recent execution attempts, newest first (``?limit=N``, default 10)."""
        if self.audit_log is None:
            return web.json_response({'executions': []})

        try:
            limit = int(request.query.get('limit', 10))
        except ValueError:
            return web.json_response({'status': 'error', 'message': 'limit must be an integer'}, status=400)

        entries = [entry.to_dict() for entry in self.audit_log.recent(limit)]
        return web.json_response({'executions': entries})

    async def start(self):
        """Start the health check server."""
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()
            self.site = web.TCPSite(self.runner, self.host, self.port)
            await self.site.start()
            logger.info(f"Health check server started on http://{self.host}:{self.port}")
            logger.info(f"  - Basic health: http://{self.host}:{self.port}/health")
            logger.info(f"  - Scheduler health: http://{self.host}:{self.port}/health/scheduler")
        except OSError as e:
            logger.error(f"Failed to start health check server: {e}")
            raise

    async def stop(self):
        """Stop the health check server."""
        if self.site:
            await self.site.stop()
        if self.runner:
            await self.runner.cleanup()
        logger.info("Health check server stopped")
