"""
Plan service: save, revise, restore and delete plans for their owner.

Every content change goes through the version ledger first, so the plan row
only moves once its snapshot slot has been claimed.
"""

from __future__ import annotations

from typing import List, Optional

import structlog

from ideaplan.core.clock import Clock, utcnow
from ideaplan.core.errors import AuthorizationError, NotFoundError
from ideaplan.core.identity import IdentityProvider
from ideaplan.schemas.plans import Plan, PlanContent, PlanVersion
from ideaplan.store import PLAN_VERSIONS, PLANS, SHARE_LINKS, DocumentStore, Where

from .version_ledger import VersionLedger, content_of

logger = structlog.get_logger(__name__)

INITIAL_SUMMARY = "Initial version"


class PlanService:
    def __init__(
        self,
        store: DocumentStore,
        identity: IdentityProvider,
        versions: VersionLedger,
        clock: Clock = utcnow,
    ) -> None:
        self._plans = store.collection(PLANS)
        self._versions = store.collection(PLAN_VERSIONS)
        self._links = store.collection(SHARE_LINKS)
        self._identity = identity
        self._ledger = versions
        self._clock = clock

    def _require_user(self) -> str:
        user_id = self._identity.current_user_id()
        if user_id is None:
            raise AuthorizationError("Authentication required")
        return user_id

    async def save_plan(self, title: str, content: PlanContent) -> Plan:
        """Create a plan and record its first version."""
        user_id = self._require_user()
        now = self._clock()
        row = await self._plans.insert(
            {
                "owner_id": user_id,
                "title": title,
                "current_version": 0,
                "total_versions": 0,
                "created_at": now,
                "updated_at": now,
                **content.content_dict(),
            }
        )
        await self._ledger.create_version(row["id"], 1, content, INITIAL_SUMMARY)
        logger.info("plan_service.save", plan_id=row["id"], owner_id=user_id)
        return await self.get_plan(row["id"])

    async def save_revision(
        self, plan_id: str, content: PlanContent, title: Optional[str] = None
    ) -> PlanVersion:
        """
        Record `content` as the next version and write it to the plan.

        ConflictError means another writer saved first; refetch and retry.
        """
        plan = await self._owned_plan(plan_id)
        diffs = VersionLedger.compare_versions(content_of(plan.model_dump()), content)
        summary = VersionLedger.generate_changes_summary(diffs)
        patch = content.content_dict()
        if title is not None:
            patch["title"] = title
        version = await self._ledger.create_version(
            plan_id, plan.total_versions + 1, content, summary, plan_patch=patch
        )
        logger.info(
            "plan_service.revise",
            plan_id=plan_id,
            version=version.version_number,
            summary=summary,
        )
        return version

    async def restore_version(self, plan_id: str, version_number: int) -> PlanVersion:
        """Save an older snapshot's content as a new version."""
        await self._owned_plan(plan_id)
        old = await self._ledger.get_version(plan_id, version_number)
        return await self.save_revision(plan_id, content_of(old.model_dump()))

    async def get_plan(self, plan_id: str) -> Plan:
        row = await self._plans.select(Where.of(id=plan_id)).maybe_single()
        if row is None:
            raise NotFoundError(f"Plan {plan_id} not found")
        return Plan.model_validate(row)

    async def list_plans(self) -> List[Plan]:
        user_id = self._require_user()
        rows = (
            await self._plans.select(Where.of(owner_id=user_id))
            .order("created_at", desc=True)
            .list()
        )
        return [Plan.model_validate(r) for r in rows]

    async def delete_plan(self, plan_id: str) -> None:
        """Delete a plan with its versions and share links."""
        await self._owned_plan(plan_id)
        versions = await self._versions.delete(Where.of(plan_id=plan_id))
        links = await self._links.delete(Where.of(plan_id=plan_id))
        await self._plans.delete(Where.of(id=plan_id))
        logger.info("plan_service.delete", plan_id=plan_id, versions=versions, links=links)

    async def _owned_plan(self, plan_id: str) -> Plan:
        user_id = self._require_user()
        plan = await self.get_plan(plan_id)
        if plan.owner_id != user_id:
            raise AuthorizationError(f"Plan {plan_id} belongs to another user")
        return plan

    async def require_owner(self, plan_id: str) -> Plan:
        """Plan `plan_id` if the current user owns it."""
        return await self._owned_plan(plan_id)
