"""Delivery channels and the registry the broker dispatches through."""

from .base import Receiver, ReceiverError, ReceiverNotConfiguredError
from .mail import MailReceiver
from .registry import DEFAULT_RECEIVER_FACTORIES, ReceiverFactory, ReceiverRegistry, build_registry
from .slack import SlackReceiver

__all__ = [
    "DEFAULT_RECEIVER_FACTORIES",
    "MailReceiver",
    "Receiver",
    "ReceiverError",
    "ReceiverFactory",
    "ReceiverNotConfiguredError",
    "ReceiverRegistry",
    "SlackReceiver",
    "build_registry",
]
