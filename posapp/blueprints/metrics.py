"""
Prometheus metrics for the sale pipeline.

/metrics is unauthenticated; restrict it at the network level.
"""
import os
import time

from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, CollectorRegistry, CONTENT_TYPE_LATEST, REGISTRY
from prometheus_client import generate_latest, multiprocess

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers write to PROMETHEUS_MULTIPROC_DIR and are aggregated at scrape time
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY

_metric_registry = None if MULTIPROCESS_MODE else registry

# Only cart, checkout and budget endpoints are timed
TIMED_BLUEPRINTS = ('sales', 'budgets')

request_duration_seconds = Histogram(
    'pos_request_duration_seconds',
    'Latency of cart, checkout and budget requests',
    ['endpoint', 'status'],
    registry=_metric_registry,
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

sales_committed_total = Counter(
    'pos_sales_committed_total',
    'Sales committed, by origin (checkout or budget)',
    ['source'],
    registry=_metric_registry
)

sale_write_failures_total = Counter(
    'pos_sale_write_failures_total',
    'Commits aborted because the sale or its items could not be written',
    ['source'],
    registry=_metric_registry
)

stock_reconcile_failures_total = Counter(
    'pos_stock_reconcile_failures_total',
    'Sale lines whose stock decrement failed after the sale was committed',
    registry=_metric_registry
)

budget_status_update_failures_total = Counter(
    'pos_budget_status_update_failures_total',
    'Budget conversions where the sale succeeded but the budget stayed open',
    registry=_metric_registry
)


def setup_metrics_instrumentation(app):
    """Time requests to the POS blueprints."""

    @app.before_request
    def start_timer():
        if request.blueprint in TIMED_BLUEPRINTS:
            g._pos_request_started = time.perf_counter()

    @app.after_request
    def observe_duration(response):
        started = g.pop('_pos_request_started', None)
        if started is not None:
            request_duration_seconds.labels(
                endpoint=request.endpoint,
                status=response.status_code
            ).observe(time.perf_counter() - started)
        return response


def record_stock_failures(failures) -> None:
    if failures:
        stock_reconcile_failures_total.inc(len(failures))


def record_commit(result, source: str) -> None:
    """Count a committed sale and any stock lines it left unreconciled."""
    sales_committed_total.labels(source=source).inc()
    record_stock_failures(result.stock_failures)


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus exposition (text format)."""
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
