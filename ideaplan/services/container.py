"""
Explicit wiring of the store and the identity-scoped services.

One container per process (or per test). Services built from it share the
store and broadcaster but hold no other state, so each request gets its own
instances bound to the caller's identity.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.engine import Engine

from ideaplan.core.clock import Clock, utcnow
from ideaplan.core.db import create_db_engine
from ideaplan.core.identity import IdentityProvider
from ideaplan.core.settings import Settings
from ideaplan.infra.broadcast import Broadcast, make_broadcaster
from ideaplan.store import SqlDocumentStore

from .chat_service import ChatService
from .plan_service import PlanService
from .presence_tracker import PresenceTracker
from .share_registry import ShareRegistry
from .sync_controller import PlanListener, SyncSession
from .version_ledger import VersionLedger


class ServiceContainer:
    def __init__(
        self,
        settings: Settings,
        engine: Optional[Engine] = None,
        broadcaster: Optional[Broadcast] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.settings = settings
        self.clock = clock
        self.engine = engine if engine is not None else create_db_engine(settings.DATABASE_URL)
        self.broadcaster = (
            broadcaster if broadcaster is not None else make_broadcaster(settings.REDIS_URL)
        )
        self.store = SqlDocumentStore(
            self.engine, self.broadcaster, settings.CHANGE_CHANNEL_PREFIX
        )

    def versions(self, identity: IdentityProvider) -> VersionLedger:
        return VersionLedger(self.store, identity, self.clock)

    def shares(self, identity: IdentityProvider) -> ShareRegistry:
        return ShareRegistry(
            self.store,
            identity,
            self.clock,
            token_length=self.settings.SHARE_TOKEN_LENGTH,
            base_url=self.settings.SHARE_BASE_URL,
        )

    def presence(self, identity: IdentityProvider) -> PresenceTracker:
        return PresenceTracker(
            self.store, identity, self.clock, presence_ttl=self.settings.PRESENCE_TTL_SEC
        )

    def plans(self, identity: IdentityProvider) -> PlanService:
        return PlanService(self.store, identity, self.versions(identity), self.clock)

    def chat(self, identity: IdentityProvider) -> ChatService:
        return ChatService(
            self.settings.CHAT_ASSISTANT_URL,
            identity,
            self.store,
            self.clock,
            timeout=self.settings.CHAT_TIMEOUT_SEC,
        )

    def sync_session(
        self,
        identity: IdentityProvider,
        session_id: Optional[str] = None,
        on_plan_update: Optional[PlanListener] = None,
    ) -> SyncSession:
        return SyncSession(
            self.store,
            self.shares(identity),
            self.presence(identity),
            self.clock,
            heartbeat_interval=self.settings.HEARTBEAT_SEC,
            session_id=session_id,
            on_plan_update=on_plan_update,
        )

    async def close(self) -> None:
        await self.store.close()
        await self.broadcaster.close()
