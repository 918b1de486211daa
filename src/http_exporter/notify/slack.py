from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field

import httpx

logger = logging.getLogger(__name__)


class SlackError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class Attachment:
    title: str
    pretext: str
    text: str
    color: str


@dataclass(frozen=True, slots=True)
class Payload:
    channel: str
    username: str
    attachments: list[Attachment] = field(default_factory=list)


class SlackClient:
    """Posts single-attachment messages to a Slack incoming webhook."""

    def __init__(
        self,
        webhook_url: str,
        channel: str,
        username: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        try:
            url = httpx.URL(webhook_url)
        except httpx.InvalidURL as exc:
            raise ValueError(f"Invalid webhook URL: {webhook_url!r}") from exc
        if url.scheme not in ("http", "https") or not url.host:
            msg = f"Invalid webhook URL: {webhook_url!r}"
            raise ValueError(msg)
        self.webhook_url = webhook_url
        self.channel = channel
        self.username = username
        self._client = client

    def build_payload(self, title: str, pretext: str, text: str, color: str) -> Payload:
        attachment = Attachment(title=title, pretext=pretext, text=text, color=color)
        return Payload(channel=self.channel, username=self.username, attachments=[attachment])

    async def post(self, title: str, pretext: str, text: str, color: str) -> None:
        body = json.dumps(asdict(self.build_payload(title, pretext, text, color)))
        if self._client is not None:
            resp = await self._client.post(self.webhook_url, data={"payload": body})
        else:
            async with httpx.AsyncClient() as client:
                resp = await client.post(self.webhook_url, data={"payload": body})
        if resp.status_code != 200:
            logger.warning("Slack webhook %s answered %s", self.webhook_url, resp.status_code)
            msg = f"slack webhook request error: {resp.status_code} {resp.reason_phrase}"
            raise SlackError(msg)
