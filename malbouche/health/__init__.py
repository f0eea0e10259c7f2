"""Health check and monitoring package."""

from .health_server import HealthCheckServer

__all__ = [
    'HealthCheckServer',
]
