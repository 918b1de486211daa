from __future__ import annotations

from http_exporter.config.models import DEFAULT_LISTEN_ADDRESS, ExporterConfig, parse_listen_address

__all__ = ["DEFAULT_LISTEN_ADDRESS", "ExporterConfig", "parse_listen_address"]
