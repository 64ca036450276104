"""FastAPI dependency injection providers."""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ideaplan.core.identity import IdentityProvider, StaticIdentity
from ideaplan.services.chat_service import ChatService
from ideaplan.services.container import ServiceContainer
from ideaplan.services.plan_service import PlanService
from ideaplan.services.presence_tracker import PresenceTracker
from ideaplan.services.share_registry import ShareRegistry
from ideaplan.services.version_ledger import VersionLedger

__all__ = [
    "get_chat",
    "get_container",
    "get_identity",
    "get_plans",
    "get_presence",
    "get_shares",
    "get_versions",
]

_bearer = HTTPBearer(auto_error=False)


def get_container(request: Request) -> ServiceContainer:
    """The container created by the application lifespan."""
    return request.app.state.container


def get_identity(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(_bearer)],
    x_user_id: Annotated[Optional[str], Header(alias="X-User-Id")] = None,
) -> IdentityProvider:
    """
    Identity of the caller.

    The user id comes from the upstream auth proxy in `X-User-Id`; the bearer
    credential is forwarded to the chat assistant.
    """
    token = credentials.credentials if credentials else None
    return StaticIdentity(user_id=x_user_id, token=token)


def get_versions(
    container: Annotated[ServiceContainer, Depends(get_container)],
    identity: Annotated[IdentityProvider, Depends(get_identity)],
) -> VersionLedger:
    return container.versions(identity)


def get_shares(
    container: Annotated[ServiceContainer, Depends(get_container)],
    identity: Annotated[IdentityProvider, Depends(get_identity)],
) -> ShareRegistry:
    return container.shares(identity)


def get_presence(
    container: Annotated[ServiceContainer, Depends(get_container)],
    identity: Annotated[IdentityProvider, Depends(get_identity)],
) -> PresenceTracker:
    return container.presence(identity)


def get_plans(
    container: Annotated[ServiceContainer, Depends(get_container)],
    identity: Annotated[IdentityProvider, Depends(get_identity)],
) -> PlanService:
    return container.plans(identity)


def get_chat(
    container: Annotated[ServiceContainer, Depends(get_container)],
    identity: Annotated[IdentityProvider, Depends(get_identity)],
) -> ChatService:
    return container.chat(identity)
