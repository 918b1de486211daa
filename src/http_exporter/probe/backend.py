from __future__ import annotations

import ipaddress
import socket
import ssl
import typing
from typing import Awaitable, Callable

import anyio
import httpcore

from http_exporter.probe.timing import Checkpoint, TraceRecorder

Resolver = Callable[[str, int], Awaitable[list[str]]]


async def resolve_host(host: str, port: int) -> list[str]:
    infos = await anyio.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    addresses: list[str] = []
    for _family, _type, _proto, _canonname, sockaddr in infos:
        address = str(sockaddr[0])
        if address not in addresses:
            addresses.append(address)
    return addresses


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    return True


class TracingBackend(httpcore.AsyncNetworkBackend):
    """Network backend that records lifecycle checkpoints on a recorder.

    DNS is resolved here rather than inside the inner backend so that the
    lookup and the TCP connect are timed separately.
    """

    def __init__(
        self,
        recorder: TraceRecorder,
        inner: httpcore.AsyncNetworkBackend | None = None,
        resolver: Resolver = resolve_host,
    ) -> None:
        self._recorder = recorder
        self._inner = inner if inner is not None else httpcore.AnyIOBackend()
        self._resolver = resolver

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: float | None = None,
        local_address: str | None = None,
        socket_options: typing.Iterable[httpcore.SOCKET_OPTION] | None = None,
    ) -> httpcore.AsyncNetworkStream:
        if _is_ip_literal(host):
            addresses = [host]
        else:
            self._recorder.mark(Checkpoint.DNS_START)
            try:
                addresses = await self._resolver(host, port)
            except OSError as exc:
                raise httpcore.ConnectError(f"DNS lookup for {host} failed: {exc}") from exc
            finally:
                self._recorder.mark(Checkpoint.DNS_DONE)
            if not addresses:
                raise httpcore.ConnectError(f"DNS lookup for {host} returned no addresses")

        self._recorder.mark(Checkpoint.CONNECT_START)
        try:
            stream = await self._connect_first(addresses, port, timeout, local_address, socket_options)
        finally:
            self._recorder.mark(Checkpoint.CONNECT_DONE)
        return TracingStream(stream, self._recorder)

    async def _connect_first(
        self,
        addresses: list[str],
        port: int,
        timeout: float | None,
        local_address: str | None,
        socket_options: typing.Iterable[httpcore.SOCKET_OPTION] | None,
    ) -> httpcore.AsyncNetworkStream:
        last_error: httpcore.ConnectError | httpcore.ConnectTimeout | None = None
        for address in addresses:
            try:
                return await self._inner.connect_tcp(
                    address,
                    port,
                    timeout=timeout,
                    local_address=local_address,
                    socket_options=socket_options,
                )
            except (httpcore.ConnectError, httpcore.ConnectTimeout) as exc:
                last_error = exc
        if last_error is None:
            raise httpcore.ConnectError("No addresses to connect to")
        raise last_error

    async def sleep(self, seconds: float) -> None:
        await self._inner.sleep(seconds)


class TracingStream(httpcore.AsyncNetworkStream):
    """Stream wrapper marking TLS, connection-acquired and first-byte checkpoints.

    A request exchange opens on the first write and closes on the first
    non-empty read, so a reused connection records each exchange again.
    """

    def __init__(self, stream: httpcore.AsyncNetworkStream, recorder: TraceRecorder) -> None:
        self._stream = stream
        self._recorder = recorder
        self._awaiting_response = False

    async def read(self, max_bytes: int, timeout: float | None = None) -> bytes:
        data = await self._stream.read(max_bytes, timeout=timeout)
        if data and self._awaiting_response:
            self._awaiting_response = False
            self._recorder.mark(Checkpoint.FIRST_RESPONSE_BYTE)
        return data

    async def write(self, buffer: bytes, timeout: float | None = None) -> None:
        if not self._awaiting_response:
            self._awaiting_response = True
            self._recorder.mark(Checkpoint.GOT_CONNECTION)
        await self._stream.write(buffer, timeout=timeout)

    async def aclose(self) -> None:
        await self._stream.aclose()

    async def start_tls(
        self,
        ssl_context: ssl.SSLContext,
        server_hostname: str | None = None,
        timeout: float | None = None,
    ) -> httpcore.AsyncNetworkStream:
        self._recorder.mark(Checkpoint.TLS_START)
        try:
            stream = await self._stream.start_tls(ssl_context, server_hostname=server_hostname, timeout=timeout)
        finally:
            self._recorder.mark(Checkpoint.TLS_DONE)
        self._recorder.peer_certificate = _leaf_certificate(stream)
        return TracingStream(stream, self._recorder)

    def get_extra_info(self, info: str) -> typing.Any:
        return self._stream.get_extra_info(info)


def _leaf_certificate(stream: httpcore.AsyncNetworkStream) -> bytes | None:
    ssl_object = stream.get_extra_info("ssl_object")
    getpeercert = getattr(ssl_object, "getpeercert", None)
    if getpeercert is None:
        return None
    return getpeercert(binary_form=True)
