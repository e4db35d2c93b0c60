from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from devnotify.lib.broker.models import Message


class MessagePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sender: str = ""
    title: str = ""
    body: str = ""
    tags: List[str] = Field(default_factory=list)

    @field_validator("sender", "title", "body", mode="before")
    @classmethod
    def _null_text(cls, value):
        return "" if value is None else value

    @field_validator("tags", mode="before")
    @classmethod
    def _null_tags(cls, value):
        return [] if value is None else value

    def to_message(self) -> Message:
        return Message(sender=self.sender, title=self.title, body=self.body, tags=tuple(self.tags))


class MessageAccepted(BaseModel):
    status: str = "ok"


class HealthResponse(BaseModel):
    status: str
    receivers: List[str] = Field(default_factory=list)
    subscriptions: int = Field(0, ge=0)
    detail: Optional[str] = None
