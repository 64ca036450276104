"""Tests for version numbering, conflicts and snapshot diffs."""

import asyncio

import pytest

from conftest import sample_content
from ideaplan.core.errors import AuthorizationError, ConflictError, NotFoundError, StoreError
from ideaplan.schemas.plans import DiffType, PlanContent
from ideaplan.services.version_ledger import VersionLedger
from ideaplan.store import Where


async def _new_plan(store, clock, owner_id="user-owner"):
    now = clock()
    return await store.collection("plans").insert(
        {"owner_id": owner_id, "title": "Plan", "created_at": now, "updated_at": now}
    )


class TestCreateVersion:
    """Contiguous numbering and conflict detection"""

    @pytest.mark.asyncio
    async def test_sequential_saves_are_contiguous(self, store, ledger, clock):
        plan = await _new_plan(store, clock)
        for n in range(1, 6):
            await ledger.create_version(plan["id"], n, sample_content(description=f"v{n}"))

        stored = await store.collection("plans").select(Where.of(id=plan["id"])).single()
        assert stored["total_versions"] == 5
        assert stored["current_version"] == 5

        versions = await ledger.get_versions(plan["id"])
        assert [v.version_number for v in versions] == [5, 4, 3, 2, 1]
        assert versions[0].description == "v5"

    @pytest.mark.asyncio
    async def test_wrong_number_conflicts(self, store, ledger, clock):
        plan = await _new_plan(store, clock)
        await ledger.create_version(plan["id"], 1, sample_content())

        with pytest.raises(ConflictError):
            await ledger.create_version(plan["id"], 1, sample_content())
        with pytest.raises(ConflictError):
            await ledger.create_version(plan["id"], 3, sample_content())

        assert len(await ledger.get_versions(plan["id"])) == 1

    @pytest.mark.asyncio
    async def test_taken_slot_conflicts(self, store, ledger, clock):
        """A snapshot already occupying slot N makes the insert lose."""
        plan = await _new_plan(store, clock)
        await store.collection("plan_versions").insert(
            {"plan_id": plan["id"], "owner_id": "someone", "version_number": 1}
        )

        with pytest.raises(ConflictError):
            await ledger.create_version(plan["id"], 1, sample_content())

        stored = await store.collection("plans").select(Where.of(id=plan["id"])).single()
        assert stored["total_versions"] == 0

    @pytest.mark.asyncio
    async def test_moved_counter_rolls_back_snapshot(self, store, ledger, clock, monkeypatch):
        """If the plan counter moves after the pre-check, the new snapshot is removed."""
        plan = await _new_plan(store, clock)
        versions = store.collection("plan_versions")
        plans = store.collection("plans")
        original_insert = versions.insert

        async def insert_then_race(doc):
            row = await original_insert(doc)
            await plans.update(Where.of(id=plan["id"]), {"total_versions": 1})
            return row

        monkeypatch.setattr(versions, "insert", insert_then_race)

        with pytest.raises(ConflictError):
            await ledger.create_version(plan["id"], 1, sample_content())
        assert await versions.select(Where.of(plan_id=plan["id"])).list() == []

    @pytest.mark.asyncio
    async def test_plan_patch_written_with_counters(self, store, ledger, clock):
        plan = await _new_plan(store, clock)
        await ledger.create_version(
            plan["id"], 1, sample_content(), plan_patch={"title": "Renamed", "description": "v1"}
        )

        stored = await store.collection("plans").select(Where.of(id=plan["id"])).single()
        assert stored["total_versions"] == 1
        assert stored["title"] == "Renamed"
        assert stored["description"] == "v1"

    @pytest.mark.asyncio
    async def test_failed_plan_update_removes_snapshot(self, store, ledger, clock, monkeypatch):
        plan = await _new_plan(store, clock)
        plans = store.collection("plans")

        async def broken_update(where, patch):
            raise StoreError("database is locked")

        monkeypatch.setattr(plans, "update", broken_update)

        with pytest.raises(StoreError):
            await ledger.create_version(plan["id"], 1, sample_content())
        assert await ledger.get_versions(plan["id"]) == []

    @pytest.mark.asyncio
    async def test_concurrent_writers_one_wins(self, store, clock, owner):
        plan = await _new_plan(store, clock)
        a = VersionLedger(store, owner, clock)
        b = VersionLedger(store, owner, clock)

        results = await asyncio.gather(
            a.create_version(plan["id"], 1, sample_content(description="a")),
            b.create_version(plan["id"], 1, sample_content(description="b")),
            return_exceptions=True,
        )

        assert sum(isinstance(r, ConflictError) for r in results) == 1
        assert len(await a.get_versions(plan["id"])) == 1

    @pytest.mark.asyncio
    async def test_requires_authentication(self, store, clock, anonymous):
        plan = await _new_plan(store, clock)
        with pytest.raises(AuthorizationError):
            await VersionLedger(store, anonymous, clock).create_version(
                plan["id"], 1, sample_content()
            )

    @pytest.mark.asyncio
    async def test_unknown_plan(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.create_version("missing", 1, sample_content())


class TestReadAndDelete:
    @pytest.mark.asyncio
    async def test_get_version(self, store, ledger, clock):
        plan = await _new_plan(store, clock)
        await ledger.create_version(plan["id"], 1, sample_content(), "Initial version")

        version = await ledger.get_version(plan["id"], 1)
        assert version.changes_summary == "Initial version"
        assert version.owner_id == "user-owner"
        assert version.tech_stack[0].name == "React"

        with pytest.raises(NotFoundError):
            await ledger.get_version(plan["id"], 2)

    @pytest.mark.asyncio
    async def test_delete_version_keeps_sibling_numbers(self, store, ledger, clock):
        plan = await _new_plan(store, clock)
        for n in (1, 2, 3):
            await ledger.create_version(plan["id"], n, sample_content())

        middle = await ledger.get_version(plan["id"], 2)
        await ledger.delete_version(middle.id)

        versions = await ledger.get_versions(plan["id"])
        assert [v.version_number for v in versions] == [3, 1]


class TestCompareVersions:
    """Diff algorithm over description, tech stack names and roadmap phases"""

    def test_identical_snapshots_have_no_diff(self):
        content = sample_content()
        assert VersionLedger.compare_versions(content, content) == []
        assert VersionLedger.generate_changes_summary([]) == "No changes detected"

    def test_entry_detail_changes_are_ignored(self):
        older = sample_content()
        newer = sample_content(
            tech_stack=[
                {"name": "React", "description": "Different", "category": "ui"},
                {"name": "Postgres", "description": "Storage", "category": "database"},
            ]
        )
        assert VersionLedger.compare_versions(older, newer) == []

    def test_structure_and_deployment_are_not_diffed(self):
        older = sample_content()
        newer = sample_content(structure=["lib/"], deployment=["Fly.io"])
        assert VersionLedger.compare_versions(older, newer) == []

    def test_added_removed_and_modified(self):
        older = sample_content()
        newer = sample_content(
            description="Book and pay for classes",
            tech_stack=[
                {"name": "React"},
                {"name": "Stripe"},
            ],
            roadmap=[{"phase": "MVP"}, {"phase": "Launch"}],
        )

        diffs = VersionLedger.compare_versions(older, newer)

        assert [(d.field, d.type) for d in diffs] == [
            ("Description", DiffType.MODIFIED),
            ("Tech Stack", DiffType.ADDED),
            ("Tech Stack", DiffType.REMOVED),
            ("Roadmap Phase", DiffType.ADDED),
        ]
        assert diffs[1].new_value == "Stripe" and diffs[1].old_value == ""
        assert diffs[2].old_value == "Postgres" and diffs[2].new_value == ""

        summary = VersionLedger.generate_changes_summary(diffs)
        assert summary == (
            "Added: Tech Stack (Stripe), Roadmap Phase (Launch); "
            "Removed: Tech Stack (Postgres); "
            "Modified: Description"
        )

    def test_duplicate_names_collapse(self):
        older = PlanContent()
        newer = PlanContent.model_validate(
            {"tech_stack": [{"name": "Redis"}, {"name": "Redis"}]}
        )
        diffs = VersionLedger.compare_versions(older, newer)
        assert [(d.new_value, d.type) for d in diffs] == [("Redis", DiffType.ADDED)]
