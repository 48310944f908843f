"""Prometheus metrics for relcache.

Tracks agent runs, entities written, cache size and API requests.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from flask import Flask, Response, g, request
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from relcache.keys import Namespace

logger = logging.getLogger(__name__)

# Agent metrics
AGENT_RUNS = Counter(
    "relcache_agent_runs_total",
    "Caching agent runs by outcome",
    ["agent", "status"],
)

AGENT_DURATION = Histogram(
    "relcache_agent_run_duration_seconds",
    "Caching agent run duration in seconds",
    ["agent"],
    buckets=[0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
)

ENTITIES_WRITTEN = Counter(
    "relcache_entities_written_total",
    "Entities written to the cache store",
    ["namespace"],
)

CACHE_ENTITIES = Gauge(
    "relcache_cache_entities",
    "Entities currently held per namespace",
    ["namespace"],
)

# Request metrics
REQUEST_COUNT = Counter(
    "relcache_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "relcache_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

APP_INFO = Info("relcache", "relcache application information")


def record_agent_run(agent: str, status: str, duration: float, written: Optional[dict] = None) -> None:
    """Record the outcome of one caching agent run.

    Args:
        agent: Agent type
        status: Run outcome (success, failed, timeout)
        duration: Wall-clock seconds spent
        written: namespace -> entity count for successful runs
    """
    AGENT_RUNS.labels(agent=agent, status=status).inc()
    AGENT_DURATION.labels(agent=agent).observe(duration)
    for namespace, count in (written or {}).items():
        ENTITIES_WRITTEN.labels(namespace=namespace).inc(count)


def init_metrics(app: Flask, version: str, store=None) -> None:
    """Set up request timing and the /metrics endpoint on a Flask app.

    Args:
        app: Flask application instance
        version: Application version string
        store: Optional cache store whose per-namespace sizes are
            refreshed on every scrape
    """
    APP_INFO.info({"version": version, "name": "relcache"})

    @app.before_request
    def before_request() -> None:
        g.start_time = time.time()

    @app.after_request
    def after_request(response: Response) -> Response:
        endpoint = request.url_rule.rule if request.url_rule else "unmatched"
        if hasattr(g, "start_time"):
            REQUEST_LATENCY.labels(method=request.method, endpoint=endpoint).observe(time.time() - g.start_time)
        REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, status=response.status_code).inc()
        return response

    @app.route("/metrics")
    def metrics() -> Response:
        if store is not None:
            # empty namespaces are absent from stats() and must read as zero
            counts = store.stats()
            for namespace in Namespace.values():
                CACHE_ENTITIES.labels(namespace=namespace).set(counts.get(namespace, 0))
        return Response(generate_latest(REGISTRY), mimetype=CONTENT_TYPE_LATEST)
