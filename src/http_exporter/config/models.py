from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from http_exporter.probe import DEFAULT_MAX_REDIRECTS, DEFAULT_TIMEOUT_SEC

DEFAULT_LISTEN_ADDRESS = "127.0.0.1:8888"


@dataclass(frozen=True, slots=True)
class ExporterConfig:
    listen_host: str = "127.0.0.1"
    listen_port: int = 8888
    default_timeout_sec: float = DEFAULT_TIMEOUT_SEC
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not 0 <= self.listen_port <= 65535:
            msg = f"Listen port out of range: {self.listen_port}"
            raise ValueError(msg)
        if self.default_timeout_sec <= 0:
            msg = f"Default timeout must be positive: {self.default_timeout_sec}"
            raise ValueError(msg)
        if self.max_redirects < 0:
            msg = f"Max redirects must not be negative: {self.max_redirects}"
            raise ValueError(msg)

    @property
    def listen_address(self) -> str:
        if ":" in self.listen_host:
            return f"[{self.listen_host}]:{self.listen_port}"
        return f"{self.listen_host}:{self.listen_port}"

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "listen_address": self.listen_address,
            "default_timeout_sec": self.default_timeout_sec,
            "max_redirects": self.max_redirects,
            "log_level": self.log_level,
        }


def parse_listen_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        msg = f"Invalid listen address {address!r}: expected host:port"
        raise ValueError(msg)
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        msg = f"Invalid listen address {address!r}: IPv6 hosts must be bracketed"
        raise ValueError(msg)
    return host or "0.0.0.0", int(port)
