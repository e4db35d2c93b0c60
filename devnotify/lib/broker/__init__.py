"""Broker package exposing subscription matching, suppression and dispatch."""

from .distinct import DistinctCache, message_digest
from .engine import Broker, DispatchError, UnknownReceiverError
from .loader import SubscriptionLoadError, load_subscription_files, load_subscriptions, parse_duration
from .models import FilterType, KnownTags, Message, MessageFilter, Subscription

__all__ = [
    "Broker",
    "DispatchError",
    "DistinctCache",
    "FilterType",
    "KnownTags",
    "Message",
    "MessageFilter",
    "Subscription",
    "SubscriptionLoadError",
    "UnknownReceiverError",
    "load_subscription_files",
    "load_subscriptions",
    "message_digest",
    "parse_duration",
]
