from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=2000)

    @field_validator("question")
    @classmethod
    def _strip_question(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("question must not be blank")
        return value


class ChatMessageInput(BaseModel):
    role: MessageRole
    content: str = Field(..., min_length=1)
    metadata: Optional[Dict[str, Any]] = Field(default=None)


class ChatMessage(BaseModel):
    id: str
    role: MessageRole
    content: str
    metadata: Optional[Dict[str, Any]] = Field(default=None)
    created_at: str


class PaginatedMessages(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)
    next_cursor: Optional[str] = Field(default=None)
