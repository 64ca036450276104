"""
Refinement chat proxy
"""

from typing import Annotated, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ideaplan.schemas.chat import ChatMessage, ChatResponse
from ideaplan.services.chat_service import ChatService
from ideaplan.api.deps import get_chat

router = APIRouter(prefix="/api/chat", tags=["chat"])


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1)


@router.post("", response_model=ChatResponse)
async def send_message(req: ChatRequest, chat: Annotated[ChatService, Depends(get_chat)]):
    """Forward the conversation to the assistant with the caller's credential"""
    return await chat.send_message(req.messages)
