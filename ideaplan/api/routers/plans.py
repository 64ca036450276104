"""
Plans and version history API
"""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from ideaplan.schemas.plans import Plan, PlanContent, PlanVersion, VersionDiff
from ideaplan.services.plan_service import PlanService
from ideaplan.services.version_ledger import VersionLedger, content_of
from ideaplan.api.deps import get_plans, get_versions

router = APIRouter(prefix="/api/plans", tags=["plans"])


class SavePlanRequest(PlanContent):
    title: str


class RevisePlanRequest(PlanContent):
    title: Optional[str] = None


class CompareResponse(BaseModel):
    older: int
    newer: int
    diffs: List[VersionDiff]
    summary: str


@router.post("", response_model=Plan, status_code=status.HTTP_201_CREATED)
async def save_plan(req: SavePlanRequest, plans: Annotated[PlanService, Depends(get_plans)]):
    """Save a new plan; records version 1"""
    return await plans.save_plan(req.title, PlanContent.model_validate(req.content_dict()))


@router.get("", response_model=List[Plan])
async def list_plans(plans: Annotated[PlanService, Depends(get_plans)]):
    """List the caller's plans, newest first"""
    return await plans.list_plans()


@router.get("/{plan_id}", response_model=Plan)
async def get_plan(plan_id: str, plans: Annotated[PlanService, Depends(get_plans)]):
    return await plans.get_plan(plan_id)


@router.put("/{plan_id}", response_model=PlanVersion)
async def revise_plan(
    plan_id: str, req: RevisePlanRequest, plans: Annotated[PlanService, Depends(get_plans)]
):
    """Save new content as the next version (409 if someone saved first)"""
    return await plans.save_revision(
        plan_id, PlanContent.model_validate(req.content_dict()), title=req.title
    )


@router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_plan(plan_id: str, plans: Annotated[PlanService, Depends(get_plans)]):
    await plans.delete_plan(plan_id)


@router.get("/{plan_id}/versions", response_model=List[PlanVersion])
async def list_versions(
    plan_id: str,
    plans: Annotated[PlanService, Depends(get_plans)],
    versions: Annotated[VersionLedger, Depends(get_versions)],
):
    await plans.require_owner(plan_id)
    return await versions.get_versions(plan_id)


# Declared before /versions/{version_number} so "compare" isn't parsed as a number
@router.get("/{plan_id}/versions/compare", response_model=CompareResponse)
async def compare_versions(
    plan_id: str,
    older: Annotated[int, Query(ge=1)],
    newer: Annotated[int, Query(ge=1)],
    plans: Annotated[PlanService, Depends(get_plans)],
    versions: Annotated[VersionLedger, Depends(get_versions)],
):
    await plans.require_owner(plan_id)
    old = await versions.get_version(plan_id, older)
    new = await versions.get_version(plan_id, newer)
    diffs = VersionLedger.compare_versions(
        content_of(old.model_dump()), content_of(new.model_dump())
    )
    return CompareResponse(
        older=older,
        newer=newer,
        diffs=diffs,
        summary=VersionLedger.generate_changes_summary(diffs),
    )


@router.get("/{plan_id}/versions/{version_number}", response_model=PlanVersion)
async def get_version(
    plan_id: str,
    version_number: int,
    plans: Annotated[PlanService, Depends(get_plans)],
    versions: Annotated[VersionLedger, Depends(get_versions)],
):
    await plans.require_owner(plan_id)
    return await versions.get_version(plan_id, version_number)


@router.post("/{plan_id}/versions/{version_number}/restore", response_model=PlanVersion)
async def restore_version(
    plan_id: str, version_number: int, plans: Annotated[PlanService, Depends(get_plans)]
):
    """Save an older version's content as a new version"""
    await plans.require_owner(plan_id)
    return await plans.restore_version(plan_id, version_number)
