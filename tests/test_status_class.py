from __future__ import annotations

from http_exporter.metrics import PHASE_METRICS, ns_to_ms, status_class


def test_status_class_buckets() -> None:
    assert status_class(100) == "1xx"
    assert status_class(204) == "2xx"
    assert status_class(301) == "3xx"
    assert status_class(404) == "4xx"
    assert status_class(599) == "5xx"


def test_status_class_unknown() -> None:
    assert status_class(None) == "unknown"
    assert status_class(999) == "unknown"
    assert status_class(99) == "unknown"
    assert status_class(600) == "unknown"


def test_ns_to_ms() -> None:
    assert ns_to_ms(1_500_000) == 1.5
    assert ns_to_ms(0) == 0.0


def test_phase_metric_names() -> None:
    assert [metric.name for metric in PHASE_METRICS] == [
        "dns_lookup_time",
        "tcp_handshake_time",
        "tls_handshake_time",
        "server_processing_time",
        "content_transfer_time",
        "ttfb",
    ]
