"""Pydantic records for the refinement chat assistant."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: str = Field(..., pattern=r"^(user|assistant)$")
    content: str


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    message: str
    usage: Optional[TokenUsage] = None


class Conversation(BaseModel):
    id: str
    user_id: str
    messages: List[ChatMessage] = Field(default_factory=list)
    refined_idea: Optional[str] = None
    created_at: datetime
