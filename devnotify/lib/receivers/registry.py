from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from devnotify.lib.config import AppConfig

from .base import Receiver, ReceiverNotConfiguredError
from .mail import MailReceiver
from .slack import SlackReceiver


logger = logging.getLogger("devnotify.receivers")

ReceiverFactory = Callable[[AppConfig], Receiver]

DEFAULT_RECEIVER_FACTORIES: Tuple[Tuple[str, ReceiverFactory], ...] = (
    (MailReceiver.name, MailReceiver.from_config),
    (SlackReceiver.name, SlackReceiver.from_config),
)


class ReceiverRegistry:
    """Read-only mapping of receiver name to a configured receiver."""

    def __init__(self, receivers: Optional[Dict[str, Receiver]] = None) -> None:
        self._receivers: Dict[str, Receiver] = dict(receivers or {})

    def get(self, name: str) -> Optional[Receiver]:
        return self._receivers.get(name)

    def names(self) -> List[str]:
        return sorted(self._receivers)

    def __contains__(self, name: object) -> bool:
        return name in self._receivers

    def __iter__(self) -> Iterator[str]:
        return iter(self._receivers)

    def __len__(self) -> int:
        return len(self._receivers)

    def close(self) -> None:
        for receiver in self._receivers.values():
            close_fn = getattr(receiver, "close", None)
            if callable(close_fn):
                close_fn()


def build_registry(
    config: AppConfig,
    factories: Sequence[Tuple[str, ReceiverFactory]] = DEFAULT_RECEIVER_FACTORIES,
) -> ReceiverRegistry:
    """
    Build every receiver from ``factories``.

    A factory raising ``ReceiverNotConfiguredError`` leaves its receiver out;
    any other exception aborts construction.
    """
    receivers: Dict[str, Receiver] = {}
    for name, factory in factories:
        try:
            receiver = factory(config)
        except ReceiverNotConfiguredError as exc:
            logger.info("%s receiver not configured (%s) -> skip", name, exc)
            continue
        except Exception:
            logger.exception("Failed to initialize %s receiver", name)
            raise
        if name in receivers:
            raise ValueError(f"Duplicate receiver name '{name}'")
        logger.info("Initialized %s receiver", name)
        receivers[name] = receiver
    return ReceiverRegistry(receivers)
