from __future__ import annotations

import asyncio
import contextlib
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from http_exporter.config import ExporterConfig
from http_exporter.metrics import SnapshotCollector
from http_exporter.probe import Probe

logger = logging.getLogger(__name__)

SCRAPE_TIMEOUT_HEADER = "X-Prometheus-Scrape-Timeout-Seconds"
# Left for rendering the response once the probe returns.
SCRAPE_TIMEOUT_MARGIN_SEC = 0.5
DISCONNECT_POLL_SEC = 0.25


def parse_timeout(raw: str | None, default: float) -> float:
    if raw is None or raw == "":
        return default
    try:
        timeout = int(raw)
    except ValueError:
        logger.warning("Invalid timeout parameter %r. Use default timeout: %g", raw, default)
        return default
    if timeout <= 0:
        logger.warning("Non-positive timeout parameter %r. Use default timeout: %g", raw, default)
        return default
    return float(timeout)


def cap_to_scrape_deadline(timeout: float, header: str | None) -> float:
    if not header:
        return timeout
    try:
        scrape_timeout = float(header)
    except ValueError:
        logger.warning("Ignoring invalid %s header %r", SCRAPE_TIMEOUT_HEADER, header)
        return timeout
    budget = scrape_timeout - SCRAPE_TIMEOUT_MARGIN_SEC
    if budget <= 0:
        return timeout
    return min(timeout, budget)


def render_snapshot(collector: SnapshotCollector) -> bytes:
    registry = CollectorRegistry(auto_describe=True)
    registry.register(collector)
    return generate_latest(registry)


async def prepare_until_disconnect(request: Request, collector: SnapshotCollector) -> bool:
    """Run the collector's probe on this loop; cancel it if the client leaves.

    Returns False when the client disconnected first. Cancelling the handler
    cancels the probe too.
    """
    task = asyncio.ensure_future(collector.prepare())
    try:
        while not task.done():
            await asyncio.wait({task}, timeout=DISCONNECT_POLL_SEC)
            if not task.done() and await request.is_disconnected():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
                return False
        await task
        return True
    finally:
        if not task.done():
            task.cancel()


def create_app(config: ExporterConfig | None = None, probe: Probe | None = None) -> FastAPI:
    config = config or ExporterConfig()
    probe = probe or Probe(max_redirects=config.max_redirects)
    app = FastAPI(title="HTTP Exporter", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/", response_class=PlainTextResponse)
    async def index() -> str:
        return "HTTP Exporter: GET /metrics?target=<url>&timeout=<seconds>\n"

    @app.get("/metrics")
    async def metrics(request: Request, target: str | None = None, timeout: str | None = None) -> Response:
        if not target:
            raise HTTPException(status_code=400, detail="Target param is missing")
        timeout_sec = parse_timeout(timeout, config.default_timeout_sec)
        timeout_sec = cap_to_scrape_deadline(timeout_sec, request.headers.get(SCRAPE_TIMEOUT_HEADER))
        collector = SnapshotCollector(target, timeout_sec, probe=probe)
        if not await prepare_until_disconnect(request, collector):
            logger.info("Client disconnected, cancelled scrape of %s", target)
            return Response(status_code=204)
        body = render_snapshot(collector)
        return Response(content=body, media_type=CONTENT_TYPE_LATEST)

    return app
