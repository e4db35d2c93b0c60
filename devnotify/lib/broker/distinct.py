from __future__ import annotations

import base64
import hashlib
import json
import logging
import threading
import time
from typing import Callable, Dict, Optional

from .models import Message, Subscription


logger = logging.getLogger("devnotify.broker.distinct")


def message_digest(message: Message) -> str:
    """
    Stable digest over the literal message structure.

    Tag order is part of the digest: ``["a", "b"]`` and ``["b", "a"]`` are
    different messages for duplicate suppression.
    """
    payload = json.dumps(
        [message.sender, message.title, message.body, list(message.tags)],
        ensure_ascii=False,
        separators=(",", ":"),
    )
    digest = hashlib.sha256(payload.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


class DistinctCache:
    """
    Time-windowed record of messages already dispatched per subscription.

    Entries map ``<subscription key>_<digest>`` to an expiry timestamp and are
    evicted lazily when looked up, plus a sweep at most once per
    ``cleanup_interval`` seconds.
    """

    def __init__(
        self,
        *,
        cleanup_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: Dict[str, float] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._cleanup_interval = cleanup_interval
        self._next_cleanup = clock() + cleanup_interval

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def is_distinct(self, message: Message, subscription: Subscription) -> bool:
        key = f"{subscription.key}_{message_digest(message)}"
        window = subscription.distinct_time_window_duration
        window_seconds = window.total_seconds() if window is not None else 0.0

        with self._lock:
            now = self._clock()
            if now >= self._next_cleanup:
                self._sweep(now)
            expires_at: Optional[float] = self._entries.get(key)
            if expires_at is not None:
                if now < expires_at:
                    return False
                del self._entries[key]
            self._entries[key] = now + window_seconds
            return True

    def purge_expired(self) -> int:
        with self._lock:
            return self._sweep(self._clock())

    def _sweep(self, now: float) -> int:
        expired = [key for key, expires_at in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._next_cleanup = now + self._cleanup_interval
        if expired:
            logger.debug("Evicted %s expired distinct entries", len(expired))
        return len(expired)
