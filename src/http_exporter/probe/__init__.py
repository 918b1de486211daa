from __future__ import annotations

from http_exporter.probe.client import (
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_TIMEOUT_SEC,
    FailureKind,
    InvalidTargetError,
    Probe,
    ProbeFailure,
    ProbeOutcome,
    ProbeSuccess,
    parse_target,
    resolve_timeout,
)
from http_exporter.probe.timing import Checkpoint, TimingTrace, TraceRecorder

__all__ = [
    "Checkpoint",
    "DEFAULT_MAX_REDIRECTS",
    "DEFAULT_TIMEOUT_SEC",
    "FailureKind",
    "InvalidTargetError",
    "Probe",
    "ProbeFailure",
    "ProbeOutcome",
    "ProbeSuccess",
    "TimingTrace",
    "TraceRecorder",
    "parse_target",
    "resolve_timeout",
]
