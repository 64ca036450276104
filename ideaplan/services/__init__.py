"""Domain services: versions, sharing, presence, sync sessions, plans and chat."""

from ideaplan.services.chat_service import ChatService
from ideaplan.services.container import ServiceContainer
from ideaplan.services.plan_service import PlanService
from ideaplan.services.presence_tracker import PresenceTracker, generate_session_id
from ideaplan.services.share_registry import ShareRegistry
from ideaplan.services.sync_controller import ConnectionState, PlanView, SyncSession
from ideaplan.services.version_ledger import VersionLedger

__all__ = [
    "ChatService",
    "ConnectionState",
    "PlanService",
    "PlanView",
    "PresenceTracker",
    "ServiceContainer",
    "ShareRegistry",
    "SyncSession",
    "VersionLedger",
    "generate_session_id",
]
