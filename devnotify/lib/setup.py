from __future__ import annotations

import logging
from typing import Sequence, Tuple

from devnotify.lib.broker import Broker, DistinctCache, load_subscriptions
from devnotify.lib.config import AppConfig
from devnotify.lib.receivers import DEFAULT_RECEIVER_FACTORIES, ReceiverFactory, build_registry


logger = logging.getLogger("devnotify.setup")


def build_broker(
    config: AppConfig,
    factories: Sequence[Tuple[str, ReceiverFactory]] = DEFAULT_RECEIVER_FACTORIES,
    *,
    cache: DistinctCache | None = None,
) -> Broker:
    """Build receivers and subscriptions, then wire them into a broker."""
    receivers = build_registry(config, factories)
    try:
        subscriptions = load_subscriptions(
            config.subscriptions,
            config.subscription_files_dir,
            receivers=receivers,
        )
    except Exception:
        receivers.close()
        raise
    logger.info(
        "Broker ready with receivers=%s subscriptions=%s",
        receivers.names(),
        [subscription.key for subscription in subscriptions],
    )
    return Broker(subscriptions, receivers, cache=cache, debug=config.debug)
