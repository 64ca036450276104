"""Pydantic records for share links and collaborator presence."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Permission(str, Enum):
    """
    Access level carried by a share link.

    - view: read-only access to the shared plan
    - edit: may write plan content through a sync session
    """

    VIEW = "view"
    EDIT = "edit"


class ShareLink(BaseModel):
    id: str
    plan_id: str
    owner_id: str
    share_token: str
    permission: Permission
    active: bool = True
    expires_at: Optional[datetime] = None
    access_count: int = 0
    last_accessed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    def is_usable(self, now: datetime) -> bool:
        """Active and either open-ended or not yet expired."""
        return self.active and (self.expires_at is None or self.expires_at > now)


class Collaborator(BaseModel):
    id: str
    plan_id: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    permission: Permission
    last_seen_at: datetime
    created_at: datetime
