"""
Prometheus metrics configuration
"""
import os

from prometheus_client import (CONTENT_TYPE_LATEST, Counter, Gauge, Histogram,
                               generate_latest)
from prometheus_client.multiprocess import MultiProcessCollector
from prometheus_client.registry import REGISTRY, CollectorRegistry

if os.environ.get('PROMETHEUS_MULTIPROC_DIR'):
    _registry = CollectorRegistry()
    MultiProcessCollector(_registry)
else:
    _registry = REGISTRY

# ============================================================================
# HTTP Request Metrics
# ============================================================================

http_requests_total = Counter(
    'lams_http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration_seconds = Histogram(
    'lams_http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

# ============================================================================
# Database Metrics
# ============================================================================

db_queries_total = Counter(
    'lams_db_queries_total',
    'Total number of database queries',
    ['operation']
)

db_query_duration_seconds = Histogram(
    'lams_db_query_duration_seconds',
    'Database query duration in seconds',
    ['operation'],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0)
)

# ============================================================================
# Workflow Metrics
# ============================================================================

workflow_transitions_total = Counter(
    'lams_workflow_transitions_total',
    'Workflow actions attempted, by entity, action and outcome',
    ['entity', 'action', 'outcome']  # outcome: committed | rejected | conflict
)

draws_total = Counter(
    'lams_draws_total',
    'E-draw invocations by result',
    ['result']  # conducted | reset | refused
)

domain_events_total = Counter(
    'lams_domain_events_total',
    'Domain events delivered to subscribers',
    ['event', 'status']  # delivered | failed
)

sla_breaches = Gauge(
    'lams_sla_breaches',
    'Open SLA breaches found by the last scan',
    ['kind']
)


def get_metrics() -> bytes:
    """Render the registry in Prometheus text format"""
    return generate_latest(_registry)


def get_content_type() -> str:
    """Content type for the metrics endpoint"""
    return CONTENT_TYPE_LATEST
