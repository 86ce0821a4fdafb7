"""
Metrics definitions for GeoShade.

This module defines Prometheus metrics for monitoring
the sampling pipeline and the polygon store.
"""

from prometheus_client import Counter, Histogram, Gauge

# 카운터 메트릭
sampling_runs = Counter(
    "sampling_runs_total",
    "Number of sampling runs by outcome",
    ["outcome"]
)

sample_requests = Counter(
    "sample_requests_total",
    "Number of provider requests issued for sample points",
    ["data_source", "outcome"]
)

threshold_evaluations = Counter(
    "threshold_evaluations_total",
    "Number of threshold engine passes"
)

polygon_events = Counter(
    "polygon_events_total",
    "Geometry events handled by the map session",
    ["event"]
)

# 히스토그램 메트릭
sampling_run_seconds = Histogram(
    "sampling_run_duration_seconds",
    "Wall time of a complete sampling run",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

# 게이지 메트릭
sampling_progress = Gauge(
    "sampling_progress_percent",
    "Progress of the in-flight sampling run"
)

polygons_stored = Gauge(
    "polygons_stored",
    "Current number of polygons in the store"
)
