"""
Middleware modules for the AdCast server.
"""

from adcast.server.middleware.metrics import MetricsMiddleware, metrics_endpoint

__all__ = ["MetricsMiddleware", "metrics_endpoint"]
