"""Curator Prometheus metrics.

Counters for curations, steps and hooks, a gauge of running curator Jobs
and a histogram of step durations.
"""

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from curator.config.settings import settings


# Create custom registry if needed, otherwise use default
registry = REGISTRY if settings.observability.metrics_enabled else CollectorRegistry()


# ============================================================================
# Counter Metrics
# ============================================================================

curations_started_total = Counter(
    name="curations_started_total",
    documentation="Total number of curator Jobs created",
    labelnames=["curation"],
    registry=registry,
    namespace=settings.observability.metrics_namespace,
)

curation_steps_total = Counter(
    name="curation_steps_total",
    documentation="Total number of curation steps executed",
    labelnames=["step", "result"],
    registry=registry,
    namespace=settings.observability.metrics_namespace,
)

hook_jobs_total = Counter(
    name="hook_jobs_total",
    documentation="Total number of AnsibleJob hooks run",
    labelnames=["phase", "result"],
    registry=registry,
    namespace=settings.observability.metrics_namespace,
)

curator_jobs_finished_total = Counter(
    name="curator_jobs_finished_total",
    documentation="Total number of curator Jobs observed to finish",
    labelnames=["result"],
    registry=registry,
    namespace=settings.observability.metrics_namespace,
)


# ============================================================================
# Gauge Metrics
# ============================================================================

active_curations = Gauge(
    name="active_curations",
    documentation="Number of curator Jobs currently running",
    registry=registry,
    namespace=settings.observability.metrics_namespace,
)


# ============================================================================
# Histogram Metrics
# ============================================================================

curation_step_duration_seconds = Histogram(
    name="curation_step_duration_seconds",
    documentation="Time taken by each curation step",
    labelnames=["step"],
    buckets=[1.0, 10.0, 30.0, 60.0, 300.0, 900.0, 1800.0, 3600.0, 7200.0],
    registry=registry,
    namespace=settings.observability.metrics_namespace,
)


__all__ = [
    "active_curations",
    "curation_step_duration_seconds",
    "curation_steps_total",
    "curations_started_total",
    "curator_jobs_finished_total",
    "hook_jobs_total",
    "registry",
]
