"""
Collaborator presence for shared plans.

Presence is advisory: a viewer counts as active while its `last_seen_at` is
within the TTL window. Nobody deletes presence rows; staleness is decided
at query time.
"""

from __future__ import annotations

import inspect
import time
import uuid
from datetime import timedelta
from typing import Awaitable, Callable, List, Optional, Union

import structlog

from ideaplan.core.clock import Clock, utcnow
from ideaplan.core.errors import ConflictError
from ideaplan.core.identity import IdentityProvider
from ideaplan.schemas.plans import Plan
from ideaplan.schemas.sharing import Collaborator, Permission
from ideaplan.store import PLAN_COLLABORATORS, PLANS, ChangeEvent, DocumentStore, Unsubscribe, Where

logger = structlog.get_logger(__name__)

PlanUpdateCallback = Callable[[Plan], Union[None, Awaitable[None]]]
CollaboratorChangeCallback = Callable[[], Union[None, Awaitable[None]]]


async def _call(callback: Callable, *args) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def generate_session_id() -> str:
    """Opaque id for one anonymous browsing session."""
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex}"


class PresenceTracker:
    def __init__(
        self,
        store: DocumentStore,
        identity: IdentityProvider,
        clock: Clock = utcnow,
        presence_ttl: int = 300,
    ) -> None:
        self._plans = store.collection(PLANS)
        self._collaborators = store.collection(PLAN_COLLABORATORS)
        self._identity = identity
        self._clock = clock
        self._ttl = timedelta(seconds=presence_ttl)

    async def join_as_collaborator(
        self,
        plan_id: str,
        permission: Union[Permission, str],
        session_id: str,
    ) -> Collaborator:
        """Upsert the presence row for (plan_id, session_id)."""
        key = Where.of(plan_id=plan_id, session_id=session_id)
        now = self._clock()

        existing = await self._collaborators.select(key).maybe_single()
        if existing is not None:
            rows = await self._collaborators.update(
                Where.of(id=existing["id"]), {"last_seen_at": now}
            )
            logger.debug("presence.join.refresh", plan_id=plan_id, session_id=session_id)
            return Collaborator.model_validate(rows[0] if rows else existing)

        try:
            row = await self._collaborators.insert(
                {
                    "plan_id": plan_id,
                    "user_id": self._identity.current_user_id(),
                    "session_id": session_id,
                    "permission": Permission(permission).value,
                    "last_seen_at": now,
                    "created_at": now,
                }
            )
        except ConflictError:
            # Another join for the same session won the insert
            row = await self._collaborators.select(key).single()
        logger.info("presence.join", plan_id=plan_id, session_id=session_id)
        return Collaborator.model_validate(row)

    async def get_active_collaborators(self, plan_id: str) -> List[Collaborator]:
        cutoff = self._clock() - self._ttl
        rows = (
            await self._collaborators.select(
                Where.of(plan_id=plan_id).gte("last_seen_at", cutoff)
            )
            .order("last_seen_at", desc=True)
            .list()
        )
        return [Collaborator.model_validate(r) for r in rows]

    async def get_collaborator(self, collaborator_id: str) -> Optional[Collaborator]:
        row = await self._collaborators.select(Where.of(id=collaborator_id)).maybe_single()
        return Collaborator.model_validate(row) if row is not None else None

    async def update_last_seen(self, collaborator_id: str) -> None:
        """Refresh a presence row. Failures are logged, never raised."""
        try:
            await self._collaborators.update(
                Where.of(id=collaborator_id), {"last_seen_at": self._clock()}
            )
        except Exception as e:
            logger.warning(
                "presence.last_seen.failed", collaborator_id=collaborator_id, error=str(e)
            )

    async def subscribe_to_plan(
        self,
        plan_id: str,
        on_plan_update: PlanUpdateCallback,
        on_collaborator_change: CollaboratorChangeCallback,
    ) -> Unsubscribe:
        """
        Listen for plan content updates and collaborator churn on one plan.

        `on_plan_update` receives the updated plan. `on_collaborator_change`
        is only a trigger to re-poll; it gets no data. The returned teardown
        may be called more than once.
        """

        async def plan_changed(event: ChangeEvent) -> None:
            await _call(on_plan_update, Plan.model_validate(event.new))

        async def collaborators_changed(event: ChangeEvent) -> None:
            await _call(on_collaborator_change)

        stop_plan = await self._plans.subscribe_changes(
            Where.of(id=plan_id), ["UPDATE"], plan_changed
        )
        try:
            stop_collaborators = await self._collaborators.subscribe_changes(
                Where.of(plan_id=plan_id), ["INSERT", "UPDATE", "DELETE"], collaborators_changed
            )
        except BaseException:
            stop_plan()
            raise

        done = False

        def unsubscribe() -> None:
            nonlocal done
            if done:
                return
            done = True
            try:
                stop_plan()
            finally:
                stop_collaborators()

        logger.debug("presence.subscribe", plan_id=plan_id)
        return unsubscribe
