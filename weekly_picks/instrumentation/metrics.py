"""Prometheus metrics instrumentation for the weekly picks service."""

import logging

from fastapi import FastAPI
from prometheus_client import Counter, Histogram, Info
from prometheus_fastapi_instrumentator import Instrumentator, metrics

logger = logging.getLogger(__name__)

# Custom business metrics
IMPORT_ATTEMPTS = Counter(
    'report_import_attempts_total',
    'Report import attempts by outcome',
    ['status', 'category']
)

IMPORT_DURATION = Histogram(
    'report_import_duration_seconds',
    'Time taken by the import engine for one attempt',
    ['status']
)

IMPORT_PICKS = Histogram(
    'report_import_picks',
    'Number of picks per successfully imported report',
    buckets=(1, 2, 3, 4, 5)
)

READ_VIEW_REFRESHES = Counter(
    'picks_history_refreshes_total',
    'Read view refreshes',
    ['status']
)

SYSTEM_INFO = Info(
    'weekly_picks_system_info',
    'System information and version'
)


def record_import(status: str, category: str, duration_seconds: float, pick_count: int = 0) -> None:
    """Record one finished import attempt."""
    IMPORT_ATTEMPTS.labels(status=status, category=category or "none").inc()
    IMPORT_DURATION.labels(status=status).observe(duration_seconds)
    if pick_count:
        IMPORT_PICKS.observe(pick_count)


def setup_metrics(app: FastAPI) -> Instrumentator:
    """Setup Prometheus metrics for the FastAPI app."""

    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/health"],
        env_var_name="ENABLE_METRICS",
        inprogress_name="weekly_picks_requests_inprogress",
        inprogress_labels=True,
    )

    instrumentator.add(
        metrics.latency(
            should_include_handler=True,
            should_include_method=True,
            should_include_status=True,
            metric_namespace="weekly_picks",
            metric_subsystem="requests",
        )
    ).add(
        metrics.requests(
            should_include_handler=True,
            should_include_method=True,
            should_include_status=True,
            metric_namespace="weekly_picks",
            metric_subsystem="requests",
        )
    )

    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint="/metrics")

    SYSTEM_INFO.info({"service": "weekly_picks", "version": "1.0.0"})
    logger.info("Prometheus metrics configured and exposed at /metrics")
    return instrumentator
