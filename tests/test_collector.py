from __future__ import annotations

import asyncio
import dataclasses
import logging
import ssl

import pytest

from prometheus_client import CollectorRegistry, generate_latest

from http_exporter.metrics import PHASE_METRICS, SnapshotCollector
from http_exporter.metrics import collector as collector_module
from http_exporter.probe import FailureKind, Probe, ProbeFailure, ProbeOutcome, ProbeSuccess, TimingTrace

PHASES = (
    "dns_lookup_time",
    "tcp_handshake_time",
    "tls_handshake_time",
    "server_processing_time",
    "content_transfer_time",
    "ttfb",
)


class FakeProbe(Probe):
    def __init__(self, outcome: ProbeOutcome) -> None:
        super().__init__()
        self.outcome = outcome
        self.calls: list[tuple[str, float | None]] = []

    async def run(self, target_url: str, timeout_sec: float | None = None) -> ProbeOutcome:
        self.calls.append((target_url, timeout_sec))
        return self.outcome


def _trace() -> TimingTrace:
    return TimingTrace(
        start=0,
        dns_start=1_000_000,
        dns_done=3_000_000,
        connect_start=3_000_000,
        connect_done=4_000_000,
        got_connection=4_500_000,
        first_response_byte=10_500_000,
        finish=11_000_000,
    )


def _samples(collector: SnapshotCollector) -> dict[str, tuple[dict[str, str], float]]:
    samples = {}
    for family in collector.collect():
        for sample in family.samples:
            samples[sample.name] = (sample.labels, sample.value)
    return samples


def test_describe_does_not_probe() -> None:
    probe = FakeProbe(ProbeSuccess(status_code=200, trace=_trace()))
    collector = SnapshotCollector("http://example.com/", 5, probe=probe)
    families = collector.describe()
    assert [family.name for family in families] == list(PHASES)
    assert all(not family.samples for family in families)
    assert probe.calls == []


def test_success_yields_six_labelled_samples() -> None:
    probe = FakeProbe(ProbeSuccess(status_code=204, trace=_trace()))
    samples = _samples(SnapshotCollector("http://example.com/", 5, probe=probe))
    assert set(samples) == set(PHASES)
    assert all(labels == {"status_code": "2xx"} for labels, _ in samples.values())
    assert samples["dns_lookup_time"][1] == 2.0
    assert samples["tcp_handshake_time"][1] == 1.0
    assert samples["tls_handshake_time"][1] == 0.0
    assert samples["server_processing_time"][1] == 6.0
    assert samples["content_transfer_time"][1] == 0.5
    assert samples["ttfb"][1] == 10.5
    assert probe.calls == [("http://example.com/", 5)]


def test_unknown_status_label() -> None:
    probe = FakeProbe(ProbeSuccess(status_code=999, trace=_trace()))
    samples = _samples(SnapshotCollector("http://example.com/", 5, probe=probe))
    assert samples["ttfb"][0] == {"status_code": "unknown"}


def test_failure_yields_families_without_samples() -> None:
    failure = ProbeFailure(kind=FailureKind.CONNECT, error=ConnectionRefusedError("refused"), trace=TimingTrace())
    collector = SnapshotCollector("http://example.com/", 5, probe=FakeProbe(failure))
    families = list(collector.collect())
    assert len(families) == 6
    assert all(not family.samples for family in families)


def test_every_collect_probes_again() -> None:
    probe = FakeProbe(ProbeSuccess(status_code=200, trace=_trace()))
    collector = SnapshotCollector("http://example.com/", 3, probe=probe)
    list(collector.collect())
    list(collector.collect())
    assert len(probe.calls) == 2


def test_rendered_exposition_on_failure_keeps_metadata() -> None:
    registry = CollectorRegistry()
    registry.register(SnapshotCollector("", 5))
    text = generate_latest(registry).decode()
    for name in PHASES:
        assert f"# HELP {name} " in text
        assert f"# TYPE {name} gauge" in text
    assert "status_code=" not in text


def test_plain_http_scrape(http_server: str) -> None:
    samples = _samples(SnapshotCollector(f"http://{http_server}/", 5))
    assert set(samples) == set(PHASES)
    assert all(labels == {"status_code": "2xx"} for labels, _ in samples.values())
    assert samples["dns_lookup_time"][1] >= 0
    assert samples["tcp_handshake_time"][1] >= 0
    assert samples["tls_handshake_time"][1] == 0


def test_https_scrape(https_server: str, client_ssl_context: ssl.SSLContext) -> None:
    collector = SnapshotCollector(f"https://{https_server}/", 5, probe=Probe(verify=client_ssl_context))
    samples = _samples(collector)
    assert samples["tls_handshake_time"][1] > 0
    for name in PHASES:
        assert samples[name][1] >= 0


def test_rendered_exposition_line(http_server: str) -> None:
    registry = CollectorRegistry()
    registry.register(SnapshotCollector(f"http://{http_server}/missing", 5))
    text = generate_latest(registry).decode()
    assert 'tls_handshake_time{status_code="4xx"} 0.0' in text


def test_prepared_outcome_is_rendered_once() -> None:
    probe = FakeProbe(ProbeSuccess(status_code=200, trace=_trace()))
    collector = SnapshotCollector("http://example.com/", 5, probe=probe)
    asyncio.run(collector.prepare())
    assert len(probe.calls) == 1
    assert len(_samples(collector)) == 6
    assert len(probe.calls) == 1
    _samples(collector)
    assert len(probe.calls) == 2


def test_broken_metric_does_not_drop_the_others(
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    def broken(trace: TimingTrace) -> int:
        raise ValueError("bad duration")

    patched = tuple(
        dataclasses.replace(metric, derive=broken) if metric.name == "tcp_handshake_time" else metric
        for metric in PHASE_METRICS
    )
    monkeypatch.setattr(collector_module, "PHASE_METRICS", patched)
    collector = SnapshotCollector("http://example.com/", 5, probe=FakeProbe(ProbeSuccess(200, _trace())))

    with caplog.at_level(logging.ERROR, logger="http_exporter.metrics.collector"):
        families = {family.name: family for family in collector.collect()}

    assert len(families) == 6
    assert not families["tcp_handshake_time"].samples
    for name in PHASES:
        if name != "tcp_handshake_time":
            assert len(families[name].samples) == 1
    errors = [record for record in caplog.records if record.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "tcp_handshake_time" in errors[0].getMessage()
