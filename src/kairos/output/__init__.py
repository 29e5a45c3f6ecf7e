"""Output adapters - HTTP health and metrics endpoint."""

from .health_server import HealthServer

__all__ = ['HealthServer']
