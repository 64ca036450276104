"""
Per-viewer sync session over a shared plan.

A SyncSession resolves a share token, joins the plan as a collaborator,
follows plan and collaborator changes, and keeps its own presence fresh with
a heartbeat task until deactivated.

    Disconnected -> Joining -> Active -> Disconnected
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import structlog

from ideaplan.core.clock import Clock, utcnow
from ideaplan.core.errors import AuthorizationError, NotFoundError
from ideaplan.schemas.plans import CONTENT_FIELDS, PitchSlide, Plan, RoadmapPhase, TechStackItem
from ideaplan.schemas.sharing import Collaborator, Permission, ShareLink
from ideaplan.store import PLANS, DocumentStore, Unsubscribe, Where

from .presence_tracker import PresenceTracker, generate_session_id
from .share_registry import ShareRegistry

logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = frozenset(CONTENT_FIELDS) | {"title"}

PlanListener = Callable[[Plan], Union[None, Awaitable[None]]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    JOINING = "joining"
    ACTIVE = "active"


@dataclass
class PlanView:
    """Display state derived from one plan snapshot."""

    title: str = ""
    description: str = ""
    tech_stack: List[TechStackItem] = field(default_factory=list)
    roadmap: List[RoadmapPhase] = field(default_factory=list)
    structure: List[str] = field(default_factory=list)
    deployment: List[str] = field(default_factory=list)
    pitch_deck: List[PitchSlide] = field(default_factory=list)

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanView":
        return cls(
            title=plan.title,
            description=plan.description,
            tech_stack=list(plan.tech_stack),
            roadmap=list(plan.roadmap),
            structure=list(plan.structure),
            deployment=list(plan.deployment),
            pitch_deck=list(plan.pitch_deck),
        )


class SyncSession:
    def __init__(
        self,
        store: DocumentStore,
        shares: ShareRegistry,
        presence: PresenceTracker,
        clock: Clock = utcnow,
        heartbeat_interval: float = 30,
        session_id: Optional[str] = None,
        on_plan_update: Optional[PlanListener] = None,
    ) -> None:
        self._plans = store.collection(PLANS)
        self._shares = shares
        self._presence = presence
        self._clock = clock
        self._heartbeat_interval = heartbeat_interval
        self._listener = on_plan_update

        self.session_id = session_id or generate_session_id()
        self.state = ConnectionState.DISCONNECTED
        self.share: Optional[ShareLink] = None
        self.plan: Optional[Plan] = None
        self.view = PlanView()
        self.collaborators: List[Collaborator] = []
        self.collaborator_id: Optional[str] = None

        self._unsubscribe: Optional[Unsubscribe] = None
        self._heartbeat: Optional[asyncio.Task] = None
        # bumped by deactivate() so an in-flight activate() can tell it was cancelled
        self._epoch = 0

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.ACTIVE

    @property
    def can_edit(self) -> bool:
        return self.share is not None and self.share.permission == Permission.EDIT

    async def activate(self, token: str) -> Optional[Plan]:
        """
        Join the plan behind `token`.

        Returns the loaded plan, or None when deactivate() ran while joining.
        An unusable token raises NotFoundError without saying why.
        """
        if self.state is not ConnectionState.DISCONNECTED:
            raise RuntimeError(f"Session {self.session_id} is already {self.state.value}")

        self._epoch += 1
        epoch = self._epoch
        self.state = ConnectionState.JOINING
        try:
            share = await self._shares.get_share_by_token(token)
            if self._cancelled(epoch):
                return None
            if share is None:
                raise NotFoundError("Access denied")

            row = await self._plans.select(Where.of(id=share.plan_id)).maybe_single()
            if self._cancelled(epoch):
                return None
            if row is None:
                raise NotFoundError("Access denied")

            collaborator = await self._presence.join_as_collaborator(
                share.plan_id, share.permission, self.session_id
            )
            if self._cancelled(epoch):
                return None

            unsubscribe = await self._presence.subscribe_to_plan(
                share.plan_id, self._handle_plan_update, self._handle_collaborator_change
            )
            if self._cancelled(epoch):
                unsubscribe()
                return None
            self._unsubscribe = unsubscribe

            # reload so an update between the first read and subscribing isn't lost
            row = await self._plans.select(Where.of(id=share.plan_id)).maybe_single() or row
            collaborators = await self._presence.get_active_collaborators(share.plan_id)
            if self._cancelled(epoch):
                return None
        except BaseException:
            if not self._cancelled(epoch):
                self._teardown()
                self.state = ConnectionState.DISCONNECTED
            raise

        self.share = share
        self.collaborator_id = collaborator.id
        self.collaborators = collaborators
        self._apply_plan(Plan.model_validate(row))
        self._heartbeat = asyncio.create_task(
            self._heartbeat_loop(), name=f"heartbeat:{self.session_id}"
        )
        self.state = ConnectionState.ACTIVE
        logger.info(
            "sync.activate",
            plan_id=share.plan_id,
            session_id=self.session_id,
            permission=share.permission.value,
        )
        return self.plan

    def deactivate(self) -> None:
        """Stop the heartbeat and drop subscriptions. Safe to call repeatedly."""
        if self.state is ConnectionState.DISCONNECTED:
            return
        self._epoch += 1
        self.state = ConnectionState.DISCONNECTED
        self._teardown()
        logger.info("sync.deactivate", session_id=self.session_id)

    def _teardown(self) -> None:
        heartbeat, self._heartbeat = self._heartbeat, None
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        try:
            if heartbeat is not None:
                heartbeat.cancel()
        finally:
            if unsubscribe is not None:
                unsubscribe()

    def _cancelled(self, epoch: int) -> bool:
        if epoch == self._epoch:
            return False
        # deactivate() already reset state; release whatever was acquired since
        self._teardown()
        return True

    async def update_idea(self, patch: Dict[str, Any]) -> Plan:
        """
        Write plan fields through to the store.

        The local snapshot is replaced by the stored row on success; on
        failure it stays as it was and the error propagates.
        """
        if not self.is_connected or self.plan is None:
            raise AuthorizationError("Session is not active")
        if not self.can_edit:
            raise AuthorizationError("Share link does not grant edit permission")
        unknown = set(patch) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {sorted(unknown)}")
        if not patch:
            return self.plan

        values = Plan.model_validate({**self.plan.model_dump(), **patch}).model_dump(
            mode="json", include=set(patch)
        )
        values["updated_at"] = self._clock()
        rows = await self._plans.update(Where.of(id=self.plan.id), values)
        if not rows:
            raise NotFoundError(f"Plan {self.plan.id} not found")
        logger.info("sync.update_idea", plan_id=self.plan.id, fields=sorted(patch))
        plan = Plan.model_validate(rows[0])
        self._apply_plan(plan)
        return plan

    async def refresh_collaborators(self) -> None:
        if self.share is None:
            return
        self.collaborators = await self._presence.get_active_collaborators(self.share.plan_id)

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            await self.heartbeat()

    async def heartbeat(self) -> None:
        """Refresh own presence and re-poll collaborators. Errors are absorbed."""
        if self.collaborator_id is not None:
            await self._presence.update_last_seen(self.collaborator_id)
        try:
            await self.refresh_collaborators()
        except Exception as e:
            logger.warning("sync.heartbeat.failed", session_id=self.session_id, error=str(e))

    def _apply_plan(self, plan: Plan) -> None:
        self.plan = plan
        self.view = PlanView.from_plan(plan)

    async def _handle_plan_update(self, plan: Plan) -> None:
        if not self.is_connected:
            return
        if self.collaborator_id is not None:
            await self._presence.update_last_seen(self.collaborator_id)
        self._apply_plan(plan)
        logger.debug("sync.plan_update", plan_id=plan.id, session_id=self.session_id)
        if self._listener is not None:
            result = self._listener(plan)
            if inspect.isawaitable(result):
                await result

    async def _handle_collaborator_change(self) -> None:
        if not self.is_connected:
            return
        try:
            await self.refresh_collaborators()
        except Exception as e:
            logger.warning("sync.collaborators.failed", session_id=self.session_id, error=str(e))
