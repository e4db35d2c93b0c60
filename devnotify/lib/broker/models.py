from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from devnotify.lib.utils.coerce import to_bool


logger = logging.getLogger("devnotify.broker.models")


class KnownTags:
    ERROR = "error"
    WARNING = "warning"
    NOTIFICATION = "notification"


class FilterType(str, Enum):
    SENDER = "sender"
    TAG = "tag"


@dataclass(frozen=True, slots=True)
class Message:
    """Notification payload routed by the broker."""

    sender: str
    title: str
    body: str = ""
    tags: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Callers may hand in lists; store tags as an immutable tuple.
        object.__setattr__(self, "tags", tuple(self.tags or ()))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            sender=str(data.get("sender") or ""),
            title=str(data.get("title") or ""),
            body=str(data.get("body") or ""),
            tags=tuple(str(tag) for tag in data.get("tags") or ()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sender": self.sender,
            "title": self.title,
            "body": self.body,
            "tags": list(self.tags),
        }


def _field_ci(data: Dict[str, Any], name: str) -> Any:
    if name in data:
        return data[name]
    lowered = name.lower()
    for key, value in data.items():
        if str(key).lower() == lowered:
            return value
    return None


@dataclass(frozen=True, slots=True)
class MessageFilter:
    type: str
    value: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MessageFilter":
        if not isinstance(data, dict):
            raise ValueError(f"Filter must be a mapping, got {type(data).__name__}")
        return cls(
            type=str(_field_ci(data, "type") or ""),
            value=str(_field_ci(data, "value") or ""),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "value": self.value}

    def match(self, message: Message) -> bool:
        if self.type == FilterType.SENDER.value:
            return message.sender == self.value
        if self.type == FilterType.TAG.value:
            return self.value in message.tags
        logger.error("Unknown filter type %r (value=%r)", self.type, self.value)
        return False


@dataclass(frozen=True, slots=True)
class Subscription:
    """
    Routing rule binding a set of filters to a receiver.

    ``distinct_time_window_duration`` is ``None`` until the loader has parsed
    ``distinct_time_window``; subscriptions held by a broker always carry it.
    """

    key: str
    receiver: str
    distinct_time_window: str = ""
    filter: Tuple[MessageFilter, ...] = ()
    additional_receiver_info: str = ""
    disabled: bool = False
    distinct_time_window_duration: Optional[timedelta] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "filter", tuple(self.filter or ()))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Subscription":
        """
        Build a subscription from its JSON/YAML record.

        ``disabled`` is read first: a disabled record is kept even when it is
        incomplete, so the loader can drop it without failing its file.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Subscription must be a mapping, got {type(data).__name__}")
        disabled = to_bool(_field_ci(data, "disabled"), name="disabled")
        key = _field_ci(data, "key")
        receiver = _field_ci(data, "receiver")
        raw_filters = _field_ci(data, "filter") or []
        window = _field_ci(data, "distinct_time_window")

        if disabled:
            if not isinstance(raw_filters, list) or not all(isinstance(entry, dict) for entry in raw_filters):
                raw_filters = []
        else:
            if not key:
                raise ValueError("Subscription missing 'key'")
            if not receiver:
                raise ValueError(f"Subscription '{key}' missing 'receiver'")
            if not isinstance(raw_filters, list):
                raise ValueError(f"Subscription '{key}' has a non-list 'filter'")

        return cls(
            key=str(key or ""),
            receiver=str(receiver or ""),
            distinct_time_window="" if window is None else str(window),
            filter=tuple(MessageFilter.from_dict(entry) for entry in raw_filters),
            additional_receiver_info=str(_field_ci(data, "additional_receiver_info") or ""),
            disabled=disabled,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "receiver": self.receiver,
            "distinct_time_window": self.distinct_time_window,
            "filter": [entry.to_dict() for entry in self.filter],
            "additional_receiver_info": self.additional_receiver_info,
            "disabled": self.disabled,
        }

    def match(self, message: Message) -> bool:
        """True when every filter matches; no filters means catch-all."""
        return all(entry.match(message) for entry in self.filter)
