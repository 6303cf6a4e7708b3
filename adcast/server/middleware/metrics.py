"""
Prometheus metrics middleware for monitoring.

Provides:
- Request latency histograms
- Request counters by endpoint
- Active request gauge
- Sync metrics (playlist publishes, heartbeat flushes, impression recomputes)
"""

import re
import time
from typing import Callable

from fastapi import Request, Response
from prometheus_client import Counter, Gauge, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response as StarletteResponse

from adcast import __version__
from adcast.common.logger import get_logger

logger = get_logger(__name__)

_ID_SEGMENT = re.compile(r"^([0-9a-fA-F-]{32,36}|\d+)$")

# =============================================================================
# Prometheus Metrics Definitions
# =============================================================================

APP_INFO = Info("adcast_app", "AdCast application information")
APP_INFO.info({
    "version": __version__,
    "name": "adcast",
    "description": "Digital signage scheduling and push",
})

# HTTP request metrics
HTTP_REQUEST_TOTAL = Counter(
    "adcast_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "adcast_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "adcast_http_requests_in_progress",
    "HTTP requests currently in progress",
    ["method", "endpoint"],
)

# Scheduling
SCHEDULE_ENTRIES_CREATED = Counter(
    "adcast_schedule_entries_created_total",
    "Schedule rows created by expansion",
    ["content_type"],
)

# Push
PLAYLIST_PUBLISH_TOTAL = Counter(
    "adcast_playlist_publish_total",
    "Group playlist publishes",
    ["status"],
)

PLAYLIST_ITEMS = Histogram(
    "adcast_playlist_items",
    "Items per assembled playlist",
    buckets=(0, 1, 2, 5, 10, 20, 50, 100),
)

URL_RESOLUTION_FAILURES = Counter(
    "adcast_url_resolution_failures_total",
    "Media URLs that could not be resolved",
)

# Heartbeats
HEARTBEAT_FLUSH_SIZE = Histogram(
    "adcast_heartbeat_flush_size",
    "Distinct devices written per heartbeat flush",
    buckets=(0, 1, 10, 50, 100, 500, 1000, 5000),
)

HEARTBEAT_WRITE_FAILURES = Counter(
    "adcast_heartbeat_write_failures_total",
    "Device last-seen updates that failed",
)

# Impressions
RECOMPUTE_DURATION = Histogram(
    "adcast_impression_recompute_duration_seconds",
    "Impression recompute latency",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

RECOMPUTE_ROWS = Counter(
    "adcast_impression_rows_written_total",
    "Impression summary rows written",
)

RECOMPUTE_FAILURES = Counter(
    "adcast_impression_recompute_failures_total",
    "Impression recomputes rolled back",
)


# =============================================================================
# Metrics Middleware
# =============================================================================

class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware that collects Prometheus metrics for all HTTP requests.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        """Process request and record metrics."""
        method = request.method
        endpoint = self._get_endpoint(request)

        HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=endpoint).inc()

        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except Exception as e:
            logger.error("Request error", error=str(e))
            raise
        finally:
            duration = time.perf_counter() - start_time

            HTTP_REQUEST_TOTAL.labels(
                method=method,
                endpoint=endpoint,
                status=str(status_code),
            ).inc()

            HTTP_REQUEST_DURATION.labels(
                method=method,
                endpoint=endpoint,
            ).observe(duration)

            HTTP_REQUESTS_IN_PROGRESS.labels(
                method=method,
                endpoint=endpoint,
            ).dec()

    def _get_endpoint(self, request: Request) -> str:
        """Get endpoint path with id segments collapsed."""
        # /api/v1/push/playlist/<uuid> -> /api/v1/push/playlist/{id}
        return "/".join(
            "{id}" if _ID_SEGMENT.match(part) else part
            for part in request.url.path.split("/")
        )


# =============================================================================
# Metrics Endpoint
# =============================================================================

async def metrics_endpoint() -> StarletteResponse:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    return StarletteResponse(
        content=generate_latest(),
        media_type="text/plain; charset=utf-8",
    )


# =============================================================================
# Helper Functions for Recording Sync Metrics
# =============================================================================

def record_entries_created(content_type: str, count: int) -> None:
    SCHEDULE_ENTRIES_CREATED.labels(content_type=content_type).inc(count)


def record_publish(success: bool) -> None:
    """Record one group playlist publish attempt."""
    PLAYLIST_PUBLISH_TOTAL.labels(status="success" if success else "failed").inc()


def record_playlist_items(count: int) -> None:
    PLAYLIST_ITEMS.observe(count)


def record_url_failure() -> None:
    URL_RESOLUTION_FAILURES.inc()


def record_heartbeat_flush(size: int, failures: int) -> None:
    """Record one heartbeat flush."""
    HEARTBEAT_FLUSH_SIZE.observe(size)
    if failures:
        HEARTBEAT_WRITE_FAILURES.inc(failures)


def record_recompute(duration: float, rows: int) -> None:
    """Record a committed impression recompute."""
    RECOMPUTE_DURATION.observe(duration)
    RECOMPUTE_ROWS.inc(rows)


def record_recompute_failure() -> None:
    RECOMPUTE_FAILURES.inc()
