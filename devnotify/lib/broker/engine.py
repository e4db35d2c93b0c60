from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple

from .distinct import DistinctCache
from .models import Message, Subscription

if TYPE_CHECKING:
    from devnotify.lib.receivers.registry import ReceiverRegistry


logger = logging.getLogger("devnotify.broker")


class UnknownReceiverError(LookupError):
    """Raised when a subscription names a receiver missing from the registry."""


class DispatchError(RuntimeError):
    """Aggregate of every delivery failure for one message."""

    def __init__(self, errors: Sequence[Tuple[str, BaseException]]) -> None:
        self.errors: List[Tuple[str, BaseException]] = list(errors)
        super().__init__("\n".join(f"{key}: {exc}" for key, exc in self.errors))

    @property
    def subscription_keys(self) -> List[str]:
        return [key for key, _ in self.errors]


class Broker:
    """
    Routes messages to the receivers of every matching subscription.

    Subscriptions and the registry are fixed at construction; ``dispatch``
    may be called from several threads at once.
    """

    def __init__(
        self,
        subscriptions: Iterable[Subscription],
        receivers: "ReceiverRegistry",
        *,
        cache: Optional[DistinctCache] = None,
        debug: bool = False,
        max_workers: Optional[int] = None,
    ) -> None:
        self._subscriptions: Tuple[Subscription, ...] = tuple(subscriptions)
        self._receivers = receivers
        self._cache = cache if cache is not None else DistinctCache()
        self._debug = debug
        self._max_workers = max_workers

    @property
    def subscriptions(self) -> Tuple[Subscription, ...]:
        return self._subscriptions

    @property
    def receivers(self) -> "ReceiverRegistry":
        return self._receivers

    def dispatch(self, message: Message) -> None:
        matches: List[str] = []
        targets: List[Subscription] = []
        for subscription in self._subscriptions:
            if not subscription.match(message):
                continue
            matches.append(subscription.key)
            if self._cache.is_distinct(message, subscription):
                targets.append(subscription)
            else:
                logger.debug("Suppressing duplicate message for subscription %s", subscription.key)

        errors: List[Tuple[str, BaseException]] = []
        if targets:
            workers = self._max_workers or len(targets)
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="devnotify-dispatch") as pool:
                futures: List[Tuple[Subscription, Future]] = [
                    (subscription, pool.submit(self._send, message, subscription))
                    for subscription in targets
                ]
                wait([future for _, future in futures])
            for subscription, future in futures:
                exc = future.exception()
                if exc is not None:
                    logger.warning("Delivery for subscription %s failed: %s", subscription.key, exc)
                    errors.append((subscription.key, exc))

        error = DispatchError(errors) if errors else None
        if self._debug:
            logger.debug(
                "Message(sender=%s, title=%s, tags=%s) result: matches=%s distinct=%s error=%s",
                message.sender,
                message.title,
                list(message.tags),
                matches,
                [subscription.key for subscription in targets],
                error,
            )
        if error is not None:
            raise error

    def _send(self, message: Message, subscription: Subscription) -> None:
        receiver = self._receivers.get(subscription.receiver)
        if receiver is None:
            raise UnknownReceiverError(f"unknown or unconfigured receiver ({subscription.receiver})")
        if self._debug:
            logger.debug("Sending message to receiver %s for %s", subscription.receiver, subscription.key)
        receiver.send(message, subscription.additional_receiver_info)
