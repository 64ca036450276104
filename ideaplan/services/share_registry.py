"""
Share-link registry.

A share link is a bearer capability: whoever holds the token gets the link's
permission on the plan. Resolution deliberately collapses unknown, revoked
and expired tokens into a single None so callers cannot tell them apart.
"""

from __future__ import annotations

import secrets
import string
from datetime import timedelta
from typing import List, Optional, Union

import structlog

from ideaplan.core.clock import Clock, utcnow
from ideaplan.core.errors import AuthorizationError, IdeaPlanError, NotFoundError
from ideaplan.core.identity import IdentityProvider
from ideaplan.core.obs_logging import mask_token
from ideaplan.schemas.sharing import Permission, ShareLink
from ideaplan.store import SHARE_LINKS, DocumentStore, Increment, Where

logger = structlog.get_logger(__name__)

TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_token(length: int = 12) -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


class ShareRegistry:
    def __init__(
        self,
        store: DocumentStore,
        identity: IdentityProvider,
        clock: Clock = utcnow,
        token_length: int = 12,
        base_url: str = "http://localhost:5173",
    ) -> None:
        self._links = store.collection(SHARE_LINKS)
        self._identity = identity
        self._clock = clock
        self._token_length = token_length
        self._base_url = base_url.rstrip("/")

    async def create_share_link(
        self,
        plan_id: str,
        permission: Union[Permission, str] = Permission.VIEW,
        expires_in_days: Optional[int] = None,
    ) -> ShareLink:
        """
        Mint a link for `plan_id`.

        Ownership of the plan is checked by the caller; here only an
        authenticated user is required. `expires_in_days` of None or 0 means
        the link never expires.
        """
        user_id = self._identity.current_user_id()
        if user_id is None:
            raise AuthorizationError("Authentication required to share a plan")
        if expires_in_days is not None and expires_in_days < 0:
            raise ValueError("expires_in_days must not be negative")

        now = self._clock()
        expires_at = now + timedelta(days=expires_in_days) if expires_in_days else None
        token = generate_token(self._token_length)
        row = await self._links.insert(
            {
                "plan_id": plan_id,
                "owner_id": user_id,
                "share_token": token,
                "permission": Permission(permission).value,
                "active": True,
                "expires_at": expires_at,
                "access_count": 0,
                "created_at": now,
                "updated_at": now,
            }
        )
        logger.info(
            "share_registry.create",
            plan_id=plan_id,
            token=mask_token(token),
            permission=row["permission"],
            expires_at=expires_at.isoformat() if expires_at else None,
        )
        return ShareLink.model_validate(row)

    async def get_share_links(self, plan_id: str) -> List[ShareLink]:
        """Active links of a plan, newest first. Revoked links are left out."""
        rows = (
            await self._links.select(Where.of(plan_id=plan_id, active=True))
            .order("created_at", desc=True)
            .list()
        )
        return [ShareLink.model_validate(r) for r in rows]

    async def get_share_by_token(self, token: str) -> Optional[ShareLink]:
        """
        Resolve a token to a usable link, or None.

        Counts the access as a side effect. Counting is best effort: if the
        counter update fails the link still resolves.
        """
        link = await self.check_token(token)
        if link is None:
            return None

        now = self._clock()
        try:
            updated = await self._links.update(
                Where.of(id=link.id),
                {"access_count": Increment(1), "last_accessed_at": now},
            )
        except IdeaPlanError as e:
            logger.warning(
                "share_registry.resolve.count_failed", share_id=link.id, error=str(e)
            )
            return link
        return ShareLink.model_validate(updated[0]) if updated else link

    async def check_token(self, token: str) -> Optional[ShareLink]:
        """Like get_share_by_token, without counting an access."""
        if not token:
            return None
        row = await self._links.select(Where.of(share_token=token)).maybe_single()
        link = ShareLink.model_validate(row) if row is not None else None
        if link is None or not link.is_usable(self._clock()):
            logger.info("share_registry.resolve.denied", token=mask_token(token))
            return None
        return link

    async def revoke_share_link(self, share_id: str) -> None:
        """Deactivate a link. Revoking twice is harmless."""
        await self._links.update(
            Where.of(id=share_id), {"active": False, "updated_at": self._clock()}
        )
        logger.info("share_registry.revoke", share_id=share_id)

    async def update_share_permission(
        self, share_id: str, permission: Union[Permission, str]
    ) -> ShareLink:
        """Change the permission of a link. The token stays the same."""
        rows = await self._links.update(
            Where.of(id=share_id),
            {"permission": Permission(permission).value, "updated_at": self._clock()},
        )
        if not rows:
            raise NotFoundError(f"Share link {share_id} not found")
        logger.info("share_registry.permission", share_id=share_id, permission=rows[0]["permission"])
        return ShareLink.model_validate(rows[0])

    async def get_share_link(self, share_id: str) -> ShareLink:
        row = await self._links.select(Where.of(id=share_id)).maybe_single()
        if row is None:
            raise NotFoundError(f"Share link {share_id} not found")
        return ShareLink.model_validate(row)

    async def delete_share_link(self, share_id: str) -> None:
        await self._links.delete(Where.of(id=share_id))
        logger.info("share_registry.delete", share_id=share_id)

    def share_url(self, link: ShareLink) -> str:
        return f"{self._base_url}/shared/{link.share_token}"
