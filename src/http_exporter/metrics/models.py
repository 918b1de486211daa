from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from http_exporter.probe import TimingTrace

STATUS_LABELS = ("status_code",)
UNKNOWN_STATUS = "unknown"


def status_class(status_code: int | None) -> str:
    if status_code is None or not 100 <= status_code <= 599:
        return UNKNOWN_STATUS
    return f"{status_code // 100}xx"


def ns_to_ms(duration_ns: int) -> float:
    return duration_ns / 1_000_000


@dataclass(frozen=True, slots=True)
class PhaseMetric:
    name: str
    documentation: str
    derive: Callable[[TimingTrace], int]


PHASE_METRICS: tuple[PhaseMetric, ...] = (
    PhaseMetric(
        "dns_lookup_time",
        "A gauge of the DNS lookup duration(ms)",
        TimingTrace.dns_lookup,
    ),
    PhaseMetric(
        "tcp_handshake_time",
        "A gauge of the TCP handshake duration(ms)",
        TimingTrace.tcp_connect,
    ),
    PhaseMetric(
        "tls_handshake_time",
        "A gauge of the TLS handshake duration(ms)",
        TimingTrace.tls_handshake,
    ),
    PhaseMetric(
        "server_processing_time",
        "A gauge of the server processing duration(ms)",
        TimingTrace.server_processing,
    ),
    PhaseMetric(
        "content_transfer_time",
        "A gauge of the content transfer duration(ms)",
        TimingTrace.content_transfer,
    ),
    PhaseMetric(
        "ttfb",
        "A gauge of the time to first byte(ms)",
        TimingTrace.time_to_first_byte,
    ),
)
