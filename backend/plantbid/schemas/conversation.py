"""Conversation Schemas — posted messages, whole-array replacement, transcript reads.

Invariants:
    - Posted messages carry role customer or vendor; system messages come only from controllers
    - MessagesReplace must name the version it was based on
"""

from typing import Literal

from pydantic import Field, field_validator

from plantbid.schemas.base import CamelModel


class MessageCreate(CamelModel):
    role: Literal["customer", "vendor"]
    content: str = Field(min_length=1, max_length=5000)
    vendor_id: int | None = None
    images: list[str] | None = Field(None, max_length=5)

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("content cannot be empty or whitespace")
        return v


class MessagesReplace(CamelModel):
    messages: list[dict]
    expected_version: int = Field(ge=0)


class ConversationResponse(CamelModel):
    id: int
    messages: list[dict]
    version: int
