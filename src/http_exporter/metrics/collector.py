from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from http_exporter.metrics.models import PHASE_METRICS, STATUS_LABELS, ns_to_ms, status_class
from http_exporter.probe import Probe, ProbeFailure, ProbeOutcome

logger = logging.getLogger(__name__)


class SnapshotCollector(Collector):
    """Probes ``target_url`` once per ``collect`` call.

    Built per scrape and thrown away afterwards. Inside an event loop, await
    ``prepare`` first: the probe then runs on that loop and is cancelled with
    it, and the next ``collect`` renders its outcome. Without ``prepare``,
    ``collect`` drives its own loop and must not be called from a running one.
    """

    def __init__(self, target_url: str, timeout_sec: float | None, probe: Probe | None = None) -> None:
        self._target_url = target_url
        self._timeout_sec = timeout_sec
        self._probe = probe if probe is not None else Probe()
        self._prepared: ProbeOutcome | None = None

    def describe(self) -> list[GaugeMetricFamily]:
        return [_family(metric.name, metric.documentation) for metric in PHASE_METRICS]

    async def prepare(self) -> None:
        self._prepared = await self._probe.run(self._target_url, self._timeout_sec)

    def collect(self) -> Iterable[Metric]:
        outcome, self._prepared = self._prepared, None
        if outcome is None:
            outcome = asyncio.run(self._probe.run(self._target_url, self._timeout_sec))
        return self.snapshot(outcome)

    def snapshot(self, outcome: ProbeOutcome) -> list[GaugeMetricFamily]:
        families = self.describe()
        if isinstance(outcome, ProbeFailure):
            phase = outcome.trace.last_reached()
            logger.warning(
                "URL visit error: target=%s kind=%s phase=%s error=%s",
                self._target_url,
                outcome.kind.value,
                phase.value if phase is not None else "none",
                outcome.error,
            )
            return families

        label = status_class(outcome.status_code)
        for metric, family in zip(PHASE_METRICS, families):
            try:
                family.add_metric([label], ns_to_ms(metric.derive(outcome.trace)))
            except (TypeError, ValueError) as exc:
                logger.error("%s metric generation error for %s: %s", metric.name, self._target_url, exc)
        return families


def _family(name: str, documentation: str) -> GaugeMetricFamily:
    return GaugeMetricFamily(name, documentation, labels=STATUS_LABELS)
