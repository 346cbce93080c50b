"""Prometheus metrics helpers for the build worker."""
from __future__ import annotations

from prometheus_client import Counter
from prometheus_client import Histogram
from prometheus_client import start_http_server as _start_http_server

WORK_ORDERS_TOTAL = Counter(
    "build_worker_work_orders_total",
    "Work orders processed, grouped by outcome",
    labelnames=("result",),
)
STAGE_FAILURES_TOTAL = Counter(
    "build_worker_stage_failures_total",
    "Work orders that failed, grouped by the stage that failed",
    labelnames=("stage",),
)
PACKAGE_TESTS_TOTAL = Counter(
    "build_worker_package_tests_total",
    "Test package runs, grouped by outcome",
    labelnames=("result",),
)
WORK_ORDER_DURATION = Histogram(
    "build_worker_work_order_duration_seconds",
    "Wall time spent executing a work order",
    buckets=(1, 5, 10, 30, 60, 120, 300, 600, 1800),
)


def record_work_order(result: str, duration_seconds: float | None = None) -> None:
    """Count a finished work order and observe its runtime."""

    WORK_ORDERS_TOTAL.labels(result=result).inc()
    if duration_seconds is not None:
        WORK_ORDER_DURATION.observe(duration_seconds)


def record_stage_failure(stage: str) -> None:
    STAGE_FAILURES_TOTAL.labels(stage=stage).inc()


def record_package_test(passed: bool) -> None:
    PACKAGE_TESTS_TOTAL.labels(result="passed" if passed else "failed").inc()


def start_server(port: int, host: str = "0.0.0.0") -> None:
    """Expose metrics over HTTP."""

    _start_http_server(port, addr=host)
