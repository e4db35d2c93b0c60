from __future__ import annotations

from typing import Protocol

from devnotify.lib.broker.models import Message


class ReceiverNotConfiguredError(RuntimeError):
    """Raised by a receiver factory when its settings are absent."""


class ReceiverError(RuntimeError):
    """Raised when a receiver fails to deliver a message."""


class Receiver(Protocol):
    name: str

    def send(self, message: Message, additional_info: str) -> None:
        ...


def is_unset(value: object) -> bool:
    """Config values that are empty or ``-`` count as not configured."""
    if value is None:
        return True
    text = str(value).strip()
    return text in ("", "-")
