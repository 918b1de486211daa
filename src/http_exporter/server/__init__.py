from __future__ import annotations

from http_exporter.server.app import create_app, parse_timeout, prepare_until_disconnect, render_snapshot

__all__ = ["create_app", "parse_timeout", "prepare_until_disconnect", "render_snapshot"]
