"""Request bodies accepted by the HTTP API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from support_relay.core.types import Feedback


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class MessageIn(_Body):
    text: str


class FeedbackIn(_Body):
    message_id: int = Field(alias="messageId")
    rating: Feedback
    comment: Optional[str] = None


class RequestCodeIn(_Body):
    identity: str


class VerifyCodeIn(_Body):
    identity: str
    code: str


class RespondIn(_Body):
    text: str


class PatternIn(_Body):
    keywords: list[str]
    response: str
    confidence: float = 0.8


class Interaction(_Body):
    user_message: str = Field(alias="userMessage")
    ai_response: Optional[str] = Field(default=None, alias="aiResponse")


class LearnIn(_Body):
    interaction: Interaction
    feedback: Feedback
