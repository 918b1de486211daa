from __future__ import annotations

from http_exporter.notify.slack import Attachment, Payload, SlackClient, SlackError

__all__ = ["Attachment", "Payload", "SlackClient", "SlackError"]
