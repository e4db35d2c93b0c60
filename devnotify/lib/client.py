from __future__ import annotations

import logging
from typing import Callable, Optional

import httpx

from devnotify.lib.broker.models import Message


__all__ = [
    "ClientError",
    "NotificationClient",
    "StubClient",
]


logger = logging.getLogger("devnotify.client")


class ClientError(RuntimeError):
    """Raised when a message cannot be handed to the notification service."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotificationClient:
    """Thin client for the ``POST /messages`` endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._client = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "NotificationClient":
        return self

    def __exit__(self, *_exc_info) -> None:
        self.close()

    def send_message(self, message: Message) -> None:
        try:
            response = self._client.post("/messages", json=message.to_dict())
        except httpx.HTTPError as exc:
            raise ClientError(f"Request to notification service failed: {exc}") from exc
        if response.is_success:
            return
        detail = response.text
        try:
            detail = response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            pass
        logger.warning("Notification service rejected message %r: %s", message.title, detail)
        raise ClientError(
            f"unexpected status code {response.status_code}: {detail}",
            status_code=response.status_code,
        )


class StubClient:
    """Stand-in for ``NotificationClient`` that forwards to an optional hook."""

    def __init__(self, send_message_hook: Optional[Callable[[Message], None]] = None) -> None:
        self._hook = send_message_hook

    def send_message(self, message: Message) -> None:
        if self._hook is not None:
            self._hook(message)
