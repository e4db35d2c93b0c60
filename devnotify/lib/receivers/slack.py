from __future__ import annotations

import logging
from typing import Optional

import httpx

from devnotify.lib.broker.models import Message
from devnotify.lib.config import AppConfig

from .base import Receiver, ReceiverError, ReceiverNotConfiguredError, is_unset


logger = logging.getLogger("devnotify.receivers.slack")


class SlackReceiver(Receiver):
    name = "slack"

    def __init__(
        self,
        webhook_url: str,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_config(cls, config: AppConfig) -> "SlackReceiver":
        if is_unset(config.slack_webhook_url):
            raise ReceiverNotConfiguredError("missing slack webhook")
        return cls(config.slack_webhook_url)

    def close(self) -> None:
        self._client.close()

    def send(self, message: Message, additional_info: str) -> None:
        self._post(self.create_payload(message))

    def _post(self, text: str) -> None:
        try:
            response = self._client.post(self._webhook_url, json={"text": text})
        except httpx.HTTPError as exc:
            logger.error("Slack webhook request failed: %s", exc)
            raise ReceiverError(f"slack webhook request failed: {exc}") from exc
        if response.status_code > 299:
            error = ReceiverError(f"unexpected status code {response.status_code}: {response.text}")
            logger.error("%s", error)
            raise error

    @staticmethod
    def create_payload(message: Message) -> str:
        lines = [f"*{message.title}*", f"from `{message.sender}`"]
        if message.tags:
            lines.append("tags: " + ", ".join(f"`{tag}`" for tag in message.tags))
        if message.body:
            lines.extend(["", message.body])
        return "\n".join(lines)
