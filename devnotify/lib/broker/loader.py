from __future__ import annotations

import dataclasses
import json
import logging
import re
from datetime import timedelta
from pathlib import Path
from typing import Container, Iterable, List, Optional, Union

from .models import Subscription


logger = logging.getLogger("devnotify.loader")

DISABLED_DIRECTORY_VALUES = {"", "-"}

SubscriptionSource = Union[Subscription, dict]


class SubscriptionLoadError(RuntimeError):
    """Raised when the subscription set cannot be built."""


_UNIT_MICROSECONDS = {
    "ns": 0.001,
    "us": 1.0,
    "µs": 1.0,
    "μs": 1.0,
    "ms": 1_000.0,
    "s": 1_000_000.0,
    "m": 60 * 1_000_000.0,
    "h": 3600 * 1_000_000.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(raw: str) -> timedelta:
    """
    Parse a duration such as ``5m``, ``24h``, ``1h30m`` or ``1.5h``.

    A leading sign is allowed; the bare string ``0`` is zero. Every number
    needs a unit.
    """
    text = str(raw).strip()
    if not text:
        raise ValueError("invalid duration ''")

    sign = 1
    body = text
    if body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body:
        raise ValueError(f"invalid duration {raw!r}")

    total = 0.0
    position = 0
    while position < len(body):
        match = _DURATION_PART.match(body, position)
        if match is None:
            raise ValueError(f"invalid duration {raw!r}")
        amount, unit = match.groups()
        total += float(amount) * _UNIT_MICROSECONDS[unit]
        position = match.end()
    try:
        return timedelta(microseconds=sign * total)
    except OverflowError as exc:
        raise ValueError(f"invalid duration {raw!r}") from exc


def load_json(location: Path) -> List[Subscription]:
    with location.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise ValueError(f"expected a list of subscriptions, got {type(payload).__name__}")
    return [Subscription.from_dict(entry) for entry in payload]


def load_subscription_files(directory: Union[str, Path]) -> List[Subscription]:
    """Recursively collect subscriptions from ``*.json`` files below ``directory``."""
    root = Path(directory)
    try:
        entries = sorted(root.iterdir(), key=lambda entry: entry.name)
    except OSError as exc:
        raise SubscriptionLoadError(f"Unable to read subscription directory {root}: {exc}") from exc

    subscriptions: List[Subscription] = []
    for entry in entries:
        if entry.is_dir():
            subscriptions.extend(load_subscription_files(entry))
            continue
        suffix = entry.suffix.lower()
        if suffix == ".md":
            continue
        if suffix != ".json":
            logger.warning("Unknown file type %r in subscription directory: %s", suffix, entry)
            continue
        try:
            loaded = load_json(entry)
        except (OSError, ValueError) as exc:
            logger.warning("Unable to load subscription file %s: %s", entry, exc)
            continue
        logger.debug("Loaded %s subscriptions from %s", len(loaded), entry)
        subscriptions.extend(loaded)
    return subscriptions


def _coerce(entry: SubscriptionSource) -> Subscription:
    if isinstance(entry, Subscription):
        return entry
    try:
        return Subscription.from_dict(entry)
    except ValueError as exc:
        raise SubscriptionLoadError(f"Invalid subscription: {exc}") from exc


def add_subscriptions(
    existing: Iterable[Subscription],
    added: Iterable[SubscriptionSource],
) -> List[Subscription]:
    """Append enabled entries of ``added`` with their time window parsed."""
    result = list(existing)
    for entry in added:
        subscription = _coerce(entry)
        if subscription.disabled:
            logger.debug("Skipping disabled subscription %s", subscription.key)
            continue
        try:
            window = parse_duration(subscription.distinct_time_window)
        except ValueError as exc:
            raise SubscriptionLoadError(
                f"Subscription '{subscription.key}' has an invalid distinct_time_window: {exc}"
            ) from exc
        result.append(dataclasses.replace(subscription, distinct_time_window_duration=window))
    return result


def drop_unknown_receivers(
    subscriptions: Iterable[Subscription],
    receivers: Container[str],
) -> List[Subscription]:
    kept: List[Subscription] = []
    for subscription in subscriptions:
        if subscription.receiver not in receivers:
            logger.warning(
                "Ignoring subscription %s to unknown or unconfigured receiver %s",
                subscription.key,
                subscription.receiver,
            )
            continue
        kept.append(subscription)
    return kept


def load_subscriptions(
    static: Iterable[SubscriptionSource],
    directory: Optional[Union[str, Path]] = None,
    *,
    receivers: Optional[Container[str]] = None,
) -> List[Subscription]:
    subscriptions = add_subscriptions([], static)
    if directory is not None and str(directory).strip() not in DISABLED_DIRECTORY_VALUES:
        subscriptions = add_subscriptions(subscriptions, load_subscription_files(directory))
    if receivers is not None:
        subscriptions = drop_unknown_receivers(subscriptions, receivers)
    logger.info("Loaded %s subscriptions", len(subscriptions))
    return subscriptions
