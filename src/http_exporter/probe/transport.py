from __future__ import annotations

import contextlib
import ssl
import typing

import httpcore
import httpx

from http_exporter.probe.backend import Resolver, TracingBackend, resolve_host
from http_exporter.probe.proxies import proxy_for
from http_exporter.probe.timing import TraceRecorder

# Most specific first; the first isinstance match wins.
_EXCEPTION_MAP: tuple[tuple[type[Exception], type[httpx.HTTPError]], ...] = (
    (httpcore.ConnectTimeout, httpx.ConnectTimeout),
    (httpcore.ReadTimeout, httpx.ReadTimeout),
    (httpcore.WriteTimeout, httpx.WriteTimeout),
    (httpcore.PoolTimeout, httpx.PoolTimeout),
    (httpcore.TimeoutException, httpx.TimeoutException),
    (httpcore.ConnectError, httpx.ConnectError),
    (httpcore.ReadError, httpx.ReadError),
    (httpcore.WriteError, httpx.WriteError),
    (httpcore.NetworkError, httpx.NetworkError),
    (httpcore.ProxyError, httpx.ProxyError),
    (httpcore.UnsupportedProtocol, httpx.UnsupportedProtocol),
    (httpcore.RemoteProtocolError, httpx.RemoteProtocolError),
    (httpcore.LocalProtocolError, httpx.LocalProtocolError),
    (httpcore.ProtocolError, httpx.ProtocolError),
)


@contextlib.contextmanager
def _map_httpcore_errors() -> typing.Iterator[None]:
    try:
        yield
    except Exception as exc:
        for source, target in _EXCEPTION_MAP:
            if isinstance(exc, source):
                raise target(str(exc)) from exc
        raise


class _TracedResponseStream(httpx.AsyncByteStream):
    def __init__(self, stream: typing.AsyncIterable[bytes]) -> None:
        self._stream = stream

    async def __aiter__(self) -> typing.AsyncIterator[bytes]:
        with _map_httpcore_errors():
            async for part in self._stream:
                yield part

    async def aclose(self) -> None:
        aclose = getattr(self._stream, "aclose", None)
        if aclose is not None:
            await aclose()


class TracingTransport(httpx.AsyncBaseTransport):
    """httpx transport whose connections report to a ``TraceRecorder``.

    With ``trust_env`` the environment proxy is looked up for every request,
    so a redirect to another scheme or a ``no_proxy`` host gets its own pool.
    """

    def __init__(
        self,
        recorder: TraceRecorder,
        *,
        verify: ssl.SSLContext | bool = True,
        trust_env: bool = True,
        network_backend: httpcore.AsyncNetworkBackend | None = None,
        resolver: Resolver = resolve_host,
    ) -> None:
        if isinstance(verify, ssl.SSLContext):
            self._ssl_context = verify
        else:
            self._ssl_context = httpx.create_ssl_context(verify=verify)
        self._trust_env = trust_env
        self._backend = TracingBackend(recorder, inner=network_backend, resolver=resolver)
        self._pools: dict[str | None, httpcore.AsyncConnectionPool] = {}

    def pool_for(self, url: httpx.URL) -> httpcore.AsyncConnectionPool:
        proxy = proxy_for(url) if self._trust_env else None
        pool = self._pools.get(proxy)
        if pool is None:
            if proxy is None:
                pool = httpcore.AsyncConnectionPool(
                    ssl_context=self._ssl_context,
                    network_backend=self._backend,
                )
            else:
                pool = httpcore.AsyncHTTPProxy(
                    proxy_url=proxy,
                    ssl_context=self._ssl_context,
                    network_backend=self._backend,
                )
            self._pools[proxy] = pool
        return pool

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        core_request = httpcore.Request(
            method=request.method,
            url=httpcore.URL(
                scheme=request.url.raw_scheme,
                host=request.url.raw_host,
                port=request.url.port,
                target=request.url.raw_path,
            ),
            headers=request.headers.raw,
            content=request.stream,
            extensions=request.extensions,
        )
        pool = self.pool_for(request.url)
        with _map_httpcore_errors():
            core_response = await pool.handle_async_request(core_request)
        return httpx.Response(
            status_code=core_response.status,
            headers=core_response.headers,
            stream=_TracedResponseStream(core_response.stream),
            extensions=core_response.extensions,
        )

    async def aclose(self) -> None:
        for pool in self._pools.values():
            await pool.aclose()
        self._pools.clear()
