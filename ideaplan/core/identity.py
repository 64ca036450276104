"""Identity/session seam consumed by the services."""

from __future__ import annotations

import abc
from typing import Optional


class IdentityProvider(abc.ABC):
    """Yields the current user (if any) and a bearer credential for upstream calls."""

    @abc.abstractmethod
    def current_user_id(self) -> Optional[str]:
        """Authenticated user id, or None for anonymous viewers."""
        ...

    @abc.abstractmethod
    def access_token(self) -> Optional[str]:
        """Bearer credential for authenticated upstream calls."""
        ...

    def is_authenticated(self) -> bool:
        return self.current_user_id() is not None


class StaticIdentity(IdentityProvider):
    """Fixed identity, built per request by the API or directly in tests."""

    def __init__(self, user_id: Optional[str] = None, token: Optional[str] = None) -> None:
        self._user_id = user_id or None
        self._token = token or None

    def current_user_id(self) -> Optional[str]:
        return self._user_id

    def access_token(self) -> Optional[str]:
        return self._token

    def __repr__(self) -> str:
        return f"StaticIdentity(user_id={self._user_id!r})"


ANONYMOUS = StaticIdentity()
