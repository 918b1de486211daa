from __future__ import annotations

from http_exporter.metrics.collector import SnapshotCollector
from http_exporter.metrics.models import PHASE_METRICS, PhaseMetric, ns_to_ms, status_class

__all__ = ["PHASE_METRICS", "PhaseMetric", "SnapshotCollector", "ns_to_ms", "status_class"]
