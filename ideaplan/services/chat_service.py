"""
Refinement chat client and conversation history.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import httpx
import structlog

from ideaplan.core.clock import Clock, utcnow
from ideaplan.core.errors import AuthorizationError, NotFoundError, UpstreamError
from ideaplan.core.identity import IdentityProvider
from ideaplan.schemas.chat import ChatMessage, ChatResponse, Conversation
from ideaplan.store import CHAT_CONVERSATIONS, DocumentStore, Where

logger = structlog.get_logger(__name__)

DEFAULT_UPSTREAM_ERROR = "Failed to get response from the assistant"


class ChatService:
    """Talks to the refinement assistant on behalf of the current user"""

    def __init__(
        self,
        api_url: Optional[str],
        identity: IdentityProvider,
        store: DocumentStore,
        clock: Clock = utcnow,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.timeout = timeout
        self._identity = identity
        self._conversations = store.collection(CHAT_CONVERSATIONS)
        self._clock = clock
        self._transport = transport

    def _client(self, token: str) -> httpx.AsyncClient:
        """Create configured HTTP client; use with 'async with'."""
        return httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
            transport=self._transport,
        )

    async def send_message(self, messages: Sequence[ChatMessage]) -> ChatResponse:
        """
        Send the conversation so far and return the assistant's reply.

        Raises:
            AuthorizationError: caller has no bearer credential
            UpstreamError: the assistant failed or could not be reached
        """
        token = self._identity.access_token()
        if not token:
            raise AuthorizationError("Not authenticated")
        if not messages:
            raise ValueError("At least one message is required")
        if not self.api_url:
            raise UpstreamError("Chat assistant is not configured")

        payload = {"messages": [m.model_dump() for m in messages]}
        try:
            async with self._client(token) as client:
                response = await client.post(self.api_url, json=payload)
        except httpx.HTTPError as e:
            logger.error("chat_service.send.transport_error", error=str(e))
            raise UpstreamError(DEFAULT_UPSTREAM_ERROR) from e

        if response.status_code >= 400:
            detail = DEFAULT_UPSTREAM_ERROR
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("error"):
                    detail = str(body["error"])
            except ValueError:
                pass
            logger.error(
                "chat_service.send.upstream_error", status=response.status_code, detail=detail
            )
            raise UpstreamError(detail)

        try:
            result = ChatResponse.model_validate(response.json())
        except ValueError as e:
            raise UpstreamError("Assistant returned an invalid response") from e
        logger.info(
            "chat_service.send.ok",
            turns=len(messages),
            total_tokens=result.usage.total_tokens if result.usage else None,
        )
        return result

    async def save_conversation(
        self, messages: Sequence[ChatMessage], refined_idea: Optional[str] = None
    ) -> str:
        user_id = self._identity.current_user_id()
        if user_id is None:
            raise AuthorizationError("Not authenticated")
        row = await self._conversations.insert(
            {
                "user_id": user_id,
                "messages": [m.model_dump() for m in messages],
                "refined_idea": refined_idea,
                "created_at": self._clock(),
            }
        )
        return row["id"]

    async def get_conversations(self) -> List[Conversation]:
        user_id = self._identity.current_user_id()
        if user_id is None:
            raise AuthorizationError("Not authenticated")
        rows = (
            await self._conversations.select(Where.of(user_id=user_id))
            .order("created_at", desc=True)
            .list()
        )
        return [Conversation.model_validate(r) for r in rows]

    async def delete_conversation(self, conversation_id: str) -> None:
        user_id = self._identity.current_user_id()
        if user_id is None:
            raise AuthorizationError("Not authenticated")
        removed = await self._conversations.delete(
            Where.of(id=conversation_id, user_id=user_id)
        )
        if not removed:
            raise NotFoundError(f"Conversation {conversation_id} not found")
