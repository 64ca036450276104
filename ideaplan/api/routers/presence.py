"""
Collaborator presence API (join, heartbeat, active list)

Every route needs either the plan owner's identity or a usable share token
for the same plan.
"""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from ideaplan.core.errors import AuthorizationError
from ideaplan.schemas.sharing import Collaborator
from ideaplan.services.plan_service import PlanService
from ideaplan.services.presence_tracker import PresenceTracker, generate_session_id
from ideaplan.services.share_registry import ShareRegistry
from ideaplan.api.deps import get_plans, get_presence, get_shares

router = APIRouter(tags=["presence"])


class JoinRequest(BaseModel):
    token: str
    session_id: Optional[str] = None


class HeartbeatRequest(BaseModel):
    session_id: str
    token: Optional[str] = None


async def _require_plan_access(
    plan_id: str, token: Optional[str], shares: ShareRegistry, plans: PlanService
) -> None:
    if token is None:
        await plans.require_owner(plan_id)
        return
    link = await shares.check_token(token)
    if link is None or link.plan_id != plan_id:
        raise AuthorizationError("Access denied")


@router.post("/api/plans/{plan_id}/presence/join", response_model=Collaborator)
async def join(
    plan_id: str,
    req: JoinRequest,
    presence: Annotated[PresenceTracker, Depends(get_presence)],
    shares: Annotated[ShareRegistry, Depends(get_shares)],
):
    """Join a shared plan with the permission carried by the share token"""
    link = await shares.get_share_by_token(req.token)
    if link is None or link.plan_id != plan_id:
        raise AuthorizationError("Access denied")
    session_id = req.session_id or generate_session_id()
    return await presence.join_as_collaborator(plan_id, link.permission, session_id)


@router.post(
    "/api/presence/{collaborator_id}/heartbeat", status_code=status.HTTP_204_NO_CONTENT
)
async def heartbeat(
    collaborator_id: str,
    req: HeartbeatRequest,
    presence: Annotated[PresenceTracker, Depends(get_presence)],
    shares: Annotated[ShareRegistry, Depends(get_shares)],
    plans: Annotated[PlanService, Depends(get_plans)],
):
    """Refresh last_seen_at of the caller's own presence row"""
    collaborator = await presence.get_collaborator(collaborator_id)
    if collaborator is None or collaborator.session_id != req.session_id:
        raise AuthorizationError("Access denied")
    await _require_plan_access(collaborator.plan_id, req.token, shares, plans)
    await presence.update_last_seen(collaborator_id)


@router.get("/api/plans/{plan_id}/collaborators", response_model=List[Collaborator])
async def active_collaborators(
    plan_id: str,
    presence: Annotated[PresenceTracker, Depends(get_presence)],
    shares: Annotated[ShareRegistry, Depends(get_shares)],
    plans: Annotated[PlanService, Depends(get_plans)],
    token: Annotated[Optional[str], Query()] = None,
):
    """Collaborators seen within the presence TTL, most recent first"""
    await _require_plan_access(plan_id, token, shares, plans)
    return await presence.get_active_collaborators(plan_id)
