"""Tests for share link minting, resolution and revocation."""

import pytest

from ideaplan.core.errors import AuthorizationError, NotFoundError, StoreError
from ideaplan.schemas.sharing import Permission
from ideaplan.services.share_registry import TOKEN_ALPHABET, ShareRegistry
from ideaplan.store import Where


async def _plan_id(store, clock):
    now = clock()
    row = await store.collection("plans").insert(
        {"owner_id": "user-owner", "title": "Fitness Booking App", "created_at": now, "updated_at": now}
    )
    return row["id"]


class TestCreate:
    @pytest.mark.asyncio
    async def test_token_shape(self, store, shares, clock):
        link = await shares.create_share_link(await _plan_id(store, clock))

        assert len(link.share_token) == 12
        assert set(link.share_token) <= set(TOKEN_ALPHABET)
        assert link.permission == Permission.VIEW
        assert link.active is True
        assert link.expires_at is None
        assert link.access_count == 0

    @pytest.mark.asyncio
    async def test_expiry_from_days(self, store, shares, clock):
        link = await shares.create_share_link(await _plan_id(store, clock), "edit", 3)
        assert link.permission == Permission.EDIT
        assert (link.expires_at - clock.now).days == 3

    @pytest.mark.asyncio
    async def test_zero_days_never_expires(self, store, shares, clock):
        link = await shares.create_share_link(await _plan_id(store, clock), expires_in_days=0)
        assert link.expires_at is None

    @pytest.mark.asyncio
    async def test_negative_days_rejected(self, store, shares, clock):
        with pytest.raises(ValueError):
            await shares.create_share_link(await _plan_id(store, clock), expires_in_days=-1)

    @pytest.mark.asyncio
    async def test_anonymous_cannot_share(self, store, clock, anonymous):
        registry = ShareRegistry(store, anonymous, clock)
        with pytest.raises(AuthorizationError):
            await registry.create_share_link(await _plan_id(store, clock))

    @pytest.mark.asyncio
    async def test_share_url(self, store, shares, clock):
        link = await shares.create_share_link(await _plan_id(store, clock))
        assert shares.share_url(link) == f"https://ideas.example/shared/{link.share_token}"


class TestResolve:
    """get_share_by_token"""

    @pytest.mark.asyncio
    async def test_counts_access_until_expiry(self, store, shares, clock):
        """View link expiring in a day: resolves twice, then denied two days later."""
        link = await shares.create_share_link(await _plan_id(store, clock), "view", 1)

        first = await shares.get_share_by_token(link.share_token)
        assert first is not None
        assert first.access_count == 1
        assert first.last_accessed_at == clock.now

        clock.advance(minutes=5)
        second = await shares.get_share_by_token(link.share_token)
        assert second.access_count == 2

        clock.advance(days=2)
        assert await shares.get_share_by_token(link.share_token) is None

    @pytest.mark.asyncio
    async def test_expired_active_link_is_denied(self, store, shares, clock):
        link = await shares.create_share_link(await _plan_id(store, clock), expires_in_days=1)
        await store.collection("share_links").update(
            Where.of(id=link.id), {"expires_at": clock.now.replace(year=2020)}
        )
        assert await shares.get_share_by_token(link.share_token) is None

    @pytest.mark.asyncio
    async def test_unknown_and_revoked_look_the_same(self, store, shares, clock):
        link = await shares.create_share_link(await _plan_id(store, clock))
        await shares.revoke_share_link(link.id)

        assert await shares.get_share_by_token(link.share_token) is None
        assert await shares.get_share_by_token("doesnotexist") is None
        assert await shares.get_share_by_token("") is None

    @pytest.mark.asyncio
    async def test_counter_failure_still_resolves(self, store, shares, clock, monkeypatch):
        link = await shares.create_share_link(await _plan_id(store, clock))
        links = store.collection("share_links")

        async def broken_update(where, patch):
            raise StoreError("database is locked")

        monkeypatch.setattr(links, "update", broken_update)

        resolved = await shares.get_share_by_token(link.share_token)
        assert resolved is not None
        assert resolved.id == link.id

    @pytest.mark.asyncio
    async def test_check_token_does_not_count(self, store, shares, clock):
        link = await shares.create_share_link(await _plan_id(store, clock), expires_in_days=1)

        checked = await shares.check_token(link.share_token)
        assert checked.id == link.id
        assert (await shares.get_share_link(link.id)).access_count == 0

        clock.advance(days=2)
        assert await shares.check_token(link.share_token) is None
        assert await shares.check_token("") is None


class TestManage:
    @pytest.mark.asyncio
    async def test_revoke_is_idempotent(self, store, shares, clock):
        link = await shares.create_share_link(await _plan_id(store, clock))

        await shares.revoke_share_link(link.id)
        assert (await shares.get_share_link(link.id)).active is False
        await shares.revoke_share_link(link.id)
        assert (await shares.get_share_link(link.id)).active is False

    @pytest.mark.asyncio
    async def test_list_active_newest_first(self, store, shares, clock):
        plan_id = await _plan_id(store, clock)
        old = await shares.create_share_link(plan_id)
        clock.advance(minutes=1)
        revoked = await shares.create_share_link(plan_id)
        clock.advance(minutes=1)
        new = await shares.create_share_link(plan_id)
        await shares.revoke_share_link(revoked.id)

        listed = await shares.get_share_links(plan_id)
        assert [link.id for link in listed] == [new.id, old.id]

    @pytest.mark.asyncio
    async def test_update_permission_keeps_token(self, store, shares, clock):
        link = await shares.create_share_link(await _plan_id(store, clock))

        updated = await shares.update_share_permission(link.id, Permission.EDIT)

        assert updated.permission == Permission.EDIT
        assert updated.share_token == link.share_token

    @pytest.mark.asyncio
    async def test_update_unknown_link(self, shares):
        with pytest.raises(NotFoundError):
            await shares.update_share_permission("missing", "edit")

    @pytest.mark.asyncio
    async def test_delete(self, store, shares, clock):
        link = await shares.create_share_link(await _plan_id(store, clock))
        await shares.delete_share_link(link.id)
        with pytest.raises(NotFoundError):
            await shares.get_share_link(link.id)
