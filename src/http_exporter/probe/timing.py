from __future__ import annotations

import time
from dataclasses import dataclass, fields
from enum import Enum
from typing import Callable

Clock = Callable[[], int]


class Checkpoint(str, Enum):
    START = "start"
    DNS_START = "dns_start"
    DNS_DONE = "dns_done"
    CONNECT_START = "connect_start"
    CONNECT_DONE = "connect_done"
    TLS_START = "tls_start"
    TLS_DONE = "tls_done"
    GOT_CONNECTION = "got_connection"
    FIRST_RESPONSE_BYTE = "first_response_byte"
    FINISH = "finish"


@dataclass(slots=True)
class TimingTrace:
    """Monotonic nanosecond readings for one probe.

    ``None`` means the checkpoint was never reached. Every derived duration
    is 0 when either end is missing and is clamped at 0 otherwise.
    """

    start: int | None = None
    dns_start: int | None = None
    dns_done: int | None = None
    connect_start: int | None = None
    connect_done: int | None = None
    tls_start: int | None = None
    tls_done: int | None = None
    got_connection: int | None = None
    first_response_byte: int | None = None
    finish: int | None = None

    def dns_lookup(self) -> int:
        return _span(self.dns_start, self.dns_done)

    def tcp_connect(self) -> int:
        return _span(self.connect_start, self.connect_done)

    def tls_handshake(self) -> int:
        return _span(self.tls_start, self.tls_done)

    def server_processing(self) -> int:
        return _span(self.got_connection, self.first_response_byte)

    def content_transfer(self) -> int:
        return _span(self.first_response_byte, self.finish)

    def time_to_first_byte(self) -> int:
        return _span(self.start, self.first_response_byte)

    def last_reached(self) -> Checkpoint | None:
        reached = None
        for checkpoint in Checkpoint:
            if getattr(self, checkpoint.value) is not None:
                reached = checkpoint
        return reached

    def as_dict(self) -> dict[str, int | None]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _span(begin: int | None, end: int | None) -> int:
    if begin is None or end is None:
        return 0
    return max(0, end - begin)


@dataclass(slots=True)
class TraceRecorder:
    trace: TimingTrace
    clock: Clock = time.perf_counter_ns
    peer_certificate: bytes | None = None

    def mark(self, checkpoint: Checkpoint) -> None:
        setattr(self.trace, checkpoint.value, self.clock())
