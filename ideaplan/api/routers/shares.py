"""
Share links API and public token resolution
"""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ideaplan.core.errors import NotFoundError
from ideaplan.schemas.plans import Plan
from ideaplan.schemas.sharing import Permission, ShareLink
from ideaplan.services.plan_service import PlanService
from ideaplan.services.share_registry import ShareRegistry
from ideaplan.api.deps import get_plans, get_shares

router = APIRouter(tags=["shares"])


class CreateShareRequest(BaseModel):
    permission: Permission = Permission.VIEW
    expires_in_days: Optional[int] = Field(default=None, ge=0)


class UpdateShareRequest(BaseModel):
    permission: Permission


class ShareLinkResponse(ShareLink):
    url: str


class SharedPlanResponse(BaseModel):
    plan: Plan
    permission: Permission
    share_id: str


def _with_url(shares: ShareRegistry, link: ShareLink) -> ShareLinkResponse:
    return ShareLinkResponse(**link.model_dump(), url=shares.share_url(link))


async def _owned_link(share_id: str, shares: ShareRegistry, plans: PlanService) -> ShareLink:
    link = await shares.get_share_link(share_id)
    await plans.require_owner(link.plan_id)
    return link


@router.post(
    "/api/plans/{plan_id}/shares",
    response_model=ShareLinkResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_share(
    plan_id: str,
    req: CreateShareRequest,
    shares: Annotated[ShareRegistry, Depends(get_shares)],
    plans: Annotated[PlanService, Depends(get_plans)],
):
    """Create a share link (plan owner only)"""
    await plans.require_owner(plan_id)
    link = await shares.create_share_link(plan_id, req.permission, req.expires_in_days)
    return _with_url(shares, link)


@router.get("/api/plans/{plan_id}/shares", response_model=List[ShareLinkResponse])
async def list_shares(
    plan_id: str,
    shares: Annotated[ShareRegistry, Depends(get_shares)],
    plans: Annotated[PlanService, Depends(get_plans)],
):
    """Active share links of a plan, newest first"""
    await plans.require_owner(plan_id)
    return [_with_url(shares, link) for link in await shares.get_share_links(plan_id)]


@router.post("/api/shares/{share_id}/revoke", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_share(
    share_id: str,
    shares: Annotated[ShareRegistry, Depends(get_shares)],
    plans: Annotated[PlanService, Depends(get_plans)],
):
    await _owned_link(share_id, shares, plans)
    await shares.revoke_share_link(share_id)


@router.patch("/api/shares/{share_id}", response_model=ShareLinkResponse)
async def update_share(
    share_id: str,
    req: UpdateShareRequest,
    shares: Annotated[ShareRegistry, Depends(get_shares)],
    plans: Annotated[PlanService, Depends(get_plans)],
):
    """Change a link's permission; the token stays the same"""
    await _owned_link(share_id, shares, plans)
    link = await shares.update_share_permission(share_id, req.permission)
    return _with_url(shares, link)


@router.delete("/api/shares/{share_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_share(
    share_id: str,
    shares: Annotated[ShareRegistry, Depends(get_shares)],
    plans: Annotated[PlanService, Depends(get_plans)],
):
    await _owned_link(share_id, shares, plans)
    await shares.delete_share_link(share_id)


@router.get("/shared/{token}", response_model=SharedPlanResponse)
async def open_shared(
    token: str,
    shares: Annotated[ShareRegistry, Depends(get_shares)],
    plans: Annotated[PlanService, Depends(get_plans)],
):
    """
    Resolve a share token to its plan.

    Unknown, revoked and expired tokens all get the same 403 so callers
    can't probe which tokens exist.
    """
    link = await shares.get_share_by_token(token)
    plan = None
    if link is not None:
        try:
            plan = await plans.get_plan(link.plan_id)
        except NotFoundError:
            plan = None
    if link is None or plan is None:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"error": "FORBIDDEN", "detail": "Access denied"},
        )
    return SharedPlanResponse(plan=plan, permission=link.permission, share_id=link.id)
