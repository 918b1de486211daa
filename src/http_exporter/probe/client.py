from __future__ import annotations

import asyncio
import ssl
import time
from dataclasses import dataclass
from enum import Enum

import httpcore
import httpx

from http_exporter.probe.backend import Resolver, resolve_host
from http_exporter.probe.timing import Checkpoint, Clock, TimingTrace, TraceRecorder
from http_exporter.probe.transport import TracingTransport

DEFAULT_TIMEOUT_SEC = 10.0
DEFAULT_MAX_REDIRECTS = 10


class FailureKind(str, Enum):
    CONFIG = "config"
    TIMEOUT = "timeout"
    CONNECT = "connect"
    TLS = "tls"
    NETWORK = "network"
    PROTOCOL = "protocol"
    OTHER = "other"


class InvalidTargetError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class ProbeSuccess:
    status_code: int
    trace: TimingTrace
    peer_certificate: bytes | None = None


@dataclass(frozen=True, slots=True)
class ProbeFailure:
    kind: FailureKind
    error: Exception
    trace: TimingTrace


ProbeOutcome = ProbeSuccess | ProbeFailure


def resolve_timeout(timeout_sec: float | None) -> float:
    if timeout_sec is None or timeout_sec <= 0:
        return DEFAULT_TIMEOUT_SEC
    return float(timeout_sec)


def parse_target(target_url: str) -> httpx.URL:
    try:
        url = httpx.URL(target_url)
    except (httpx.InvalidURL, TypeError) as exc:
        raise InvalidTargetError(f"Invalid target URL {target_url!r}: {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        msg = f"Invalid target URL {target_url!r}: expected an absolute http(s) URL"
        raise InvalidTargetError(msg)
    return url


def classify_error(exc: BaseException) -> FailureKind:
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return FailureKind.TIMEOUT
    if _caused_by(exc, ssl.SSLError):
        return FailureKind.TLS
    if isinstance(exc, (httpx.ConnectError, httpx.ProxyError)):
        return FailureKind.CONNECT
    if isinstance(exc, httpx.NetworkError):
        return FailureKind.NETWORK
    if isinstance(exc, (httpx.ProtocolError, httpx.TooManyRedirects, httpx.UnsupportedProtocol)):
        return FailureKind.PROTOCOL
    return FailureKind.OTHER


def _caused_by(exc: BaseException, kind: type[BaseException]) -> bool:
    current: BaseException | None = exc
    while current is not None:
        if isinstance(current, kind):
            return True
        current = current.__cause__ or current.__context__
    return False


class Probe:
    """Issues one instrumented GET per ``run`` call.

    A probe holds no per-run state; every run builds its own trace, transport
    and client, so one instance can serve concurrent runs.
    """

    def __init__(
        self,
        *,
        verify: ssl.SSLContext | bool = True,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        trust_env: bool = True,
        clock: Clock = time.perf_counter_ns,
        network_backend: httpcore.AsyncNetworkBackend | None = None,
        resolver: Resolver = resolve_host,
    ) -> None:
        self._verify = verify
        self._max_redirects = max_redirects
        self._trust_env = trust_env
        self._clock = clock
        self._network_backend = network_backend
        self._resolver = resolver

    async def run(self, target_url: str, timeout_sec: float | None = None) -> ProbeOutcome:
        trace = TimingTrace()
        try:
            url = parse_target(target_url)
        except InvalidTargetError as exc:
            return ProbeFailure(kind=FailureKind.CONFIG, error=exc, trace=trace)

        timeout = resolve_timeout(timeout_sec)
        recorder = TraceRecorder(trace, self._clock)
        try:
            status_code = await asyncio.wait_for(self._fetch(url, recorder, timeout), timeout)
        except asyncio.TimeoutError:
            error = TimeoutError(f"Probe of {url} exceeded {timeout:g}s")
            return ProbeFailure(kind=FailureKind.TIMEOUT, error=error, trace=trace)
        except httpx.HTTPError as exc:
            return ProbeFailure(kind=classify_error(exc), error=exc, trace=trace)
        return ProbeSuccess(status_code=status_code, trace=trace, peer_certificate=recorder.peer_certificate)

    async def _fetch(self, url: httpx.URL, recorder: TraceRecorder, timeout: float) -> int:
        transport = TracingTransport(
            recorder,
            verify=self._verify,
            trust_env=self._trust_env,
            network_backend=self._network_backend,
            resolver=self._resolver,
        )
        async with httpx.AsyncClient(
            transport=transport,
            timeout=timeout,
            follow_redirects=True,
            max_redirects=self._max_redirects,
            trust_env=False,
        ) as client:
            recorder.mark(Checkpoint.START)
            async with client.stream("GET", url) as response:
                recorder.mark(Checkpoint.FINISH)
                return response.status_code
