"""
Saved refinement chat conversations
"""
from uuid import uuid4

from sqlalchemy import Column, DateTime, JSON, String, Text

from ideaplan.core.clock import utcnow
from ideaplan.core.db import Base


class ChatConversation(Base):
    """Conversation with the refinement assistant, kept per user"""

    __tablename__ = "chat_conversations"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    messages = Column(JSON, nullable=False, default=list)  # [{"role": "user", "content": "..."}]
    refined_idea = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
