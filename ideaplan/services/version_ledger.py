"""
Version ledger: append-only, contiguously numbered plan snapshots.

Writers must pass `version_number == plan.total_versions + 1` computed from a
freshly fetched plan. Three guards turn a lost race into ConflictError:

1. the pre-check against the plan's current counter,
2. the unique (plan_id, version_number) index on plan_versions,
3. a compare-and-set of the plan counters on `total_versions == n - 1`.

A failed compare-and-set removes the snapshot again, so the plan row and
its latest version never disagree.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

import structlog

from ideaplan.core.clock import Clock, utcnow
from ideaplan.core.errors import AuthorizationError, ConflictError, IdeaPlanError, NotFoundError
from ideaplan.core.identity import IdentityProvider
from ideaplan.schemas.plans import CONTENT_FIELDS, DiffType, PlanContent, PlanVersion, VersionDiff
from ideaplan.store import PLAN_VERSIONS, PLANS, DocumentStore, Where

logger = structlog.get_logger(__name__)

NO_CHANGES = "No changes detected"


def _unique(names: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for name in names:
        seen.setdefault(name, None)
    return list(seen)


def _set_diffs(field: str, older: List[str], newer: List[str]) -> List[VersionDiff]:
    old_names = set(older)
    new_names = set(newer)
    diffs = [
        VersionDiff(field=field, new_value=name, type=DiffType.ADDED)
        for name in _unique(newer)
        if name not in old_names
    ]
    diffs.extend(
        VersionDiff(field=field, old_value=name, type=DiffType.REMOVED)
        for name in _unique(older)
        if name not in new_names
    )
    return diffs


class VersionLedger:
    def __init__(
        self,
        store: DocumentStore,
        identity: IdentityProvider,
        clock: Clock = utcnow,
    ) -> None:
        self._plans = store.collection(PLANS)
        self._versions = store.collection(PLAN_VERSIONS)
        self._identity = identity
        self._clock = clock

    async def create_version(
        self,
        plan_id: str,
        version_number: int,
        snapshot: PlanContent,
        changes_summary: Optional[str] = None,
        plan_patch: Optional[Mapping[str, Any]] = None,
    ) -> PlanVersion:
        """
        Append snapshot `version_number` and advance the plan's counters to it.

        `plan_patch` is written to the plan row in the same update as the
        counters, so the plan moves to the new version and its content at once.
        """
        user_id = self._identity.current_user_id()
        if user_id is None:
            raise AuthorizationError("Authentication required to save a version")

        plan = await self._plans.select(Where.of(id=plan_id)).maybe_single()
        if plan is None:
            raise NotFoundError(f"Plan {plan_id} not found")

        expected = plan["total_versions"] + 1
        if version_number != expected:
            logger.info(
                "version_ledger.create.stale",
                plan_id=plan_id,
                requested=version_number,
                expected=expected,
            )
            raise ConflictError(
                f"Plan {plan_id} is at version {plan['total_versions']}; "
                f"refetch and save as version {expected}"
            )

        now = self._clock()
        # ConflictError from the unique index propagates as-is
        row = await self._versions.insert(
            {
                "plan_id": plan_id,
                "owner_id": user_id,
                "version_number": version_number,
                "changes_summary": changes_summary,
                "created_at": now,
                **snapshot.content_dict(),
            }
        )

        patch = dict(plan_patch or {})
        patch.update(
            current_version=version_number,
            total_versions=version_number,
            updated_at=now,
        )
        try:
            advanced = await self._plans.update(
                Where.of(id=plan_id, total_versions=version_number - 1), patch
            )
        except IdeaPlanError:
            await self._versions.delete(Where.of(id=row["id"]))
            logger.warning(
                "version_ledger.create.plan_update_failed", plan_id=plan_id, version=version_number
            )
            raise
        if not advanced:
            await self._versions.delete(Where.of(id=row["id"]))
            logger.warning(
                "version_ledger.create.lost_race", plan_id=plan_id, version=version_number
            )
            raise ConflictError(f"Plan {plan_id} moved past version {version_number - 1}")

        logger.info("version_ledger.create.ok", plan_id=plan_id, version=version_number)
        return PlanVersion.model_validate(row)

    async def get_versions(self, plan_id: str) -> List[PlanVersion]:
        rows = (
            await self._versions.select(Where.of(plan_id=plan_id))
            .order("version_number", desc=True)
            .list()
        )
        return [PlanVersion.model_validate(r) for r in rows]

    async def get_version(self, plan_id: str, version_number: int) -> PlanVersion:
        row = await self._versions.select(
            Where.of(plan_id=plan_id, version_number=version_number)
        ).maybe_single()
        if row is None:
            raise NotFoundError(f"Version {version_number} of plan {plan_id} not found")
        return PlanVersion.model_validate(row)

    async def delete_version(self, version_id: str) -> None:
        """Remove one snapshot; siblings keep their numbers."""
        removed = await self._versions.delete(Where.of(id=version_id))
        logger.info("version_ledger.delete", version_id=version_id, removed=removed)

    @staticmethod
    def compare_versions(older: PlanContent, newer: PlanContent) -> List[VersionDiff]:
        """
        Diff two snapshots.

        Only the description and the tech stack / roadmap name sets are
        compared. Entries whose name is unchanged produce no diff even when
        their other fields changed. Structure and deployment are not diffed.
        """
        diffs: List[VersionDiff] = []
        if older.description != newer.description:
            diffs.append(
                VersionDiff(
                    field="Description",
                    old_value=older.description,
                    new_value=newer.description,
                    type=DiffType.MODIFIED,
                )
            )
        diffs.extend(
            _set_diffs(
                "Tech Stack",
                [t.name for t in older.tech_stack],
                [t.name for t in newer.tech_stack],
            )
        )
        diffs.extend(
            _set_diffs(
                "Roadmap Phase",
                [p.phase for p in older.roadmap],
                [p.phase for p in newer.roadmap],
            )
        )
        return diffs

    @staticmethod
    def generate_changes_summary(diffs: List[VersionDiff]) -> str:
        if not diffs:
            return NO_CHANGES

        added = [d for d in diffs if d.type == DiffType.ADDED]
        removed = [d for d in diffs if d.type == DiffType.REMOVED]
        modified = [d for d in diffs if d.type == DiffType.MODIFIED]

        parts = []
        if added:
            parts.append("Added: " + ", ".join(f"{d.field} ({d.new_value})" for d in added))
        if removed:
            parts.append("Removed: " + ", ".join(f"{d.field} ({d.old_value})" for d in removed))
        if modified:
            parts.append("Modified: " + ", ".join(d.field for d in modified))
        return "; ".join(parts)


def content_of(record: Mapping[str, Any]) -> PlanContent:
    """Extract the content fields of a plan or version row."""
    return PlanContent.model_validate({k: record[k] for k in CONTENT_FIELDS if k in record})
