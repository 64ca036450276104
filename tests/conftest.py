"""Pytest configuration and fixtures

Provides:
- engine: in-memory SQLite engine with all tables created
- broadcaster: in-memory broadcaster shared by the store's change feed
- clock: controllable UTC clock
- store / owner / services wired the way ServiceContainer wires them
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from ideaplan.core.db import create_db_engine, init_schema
from ideaplan.core.identity import ANONYMOUS, StaticIdentity
from ideaplan.infra.broadcast.memory import InMemoryBroadcaster
from ideaplan.schemas.plans import PlanContent
from ideaplan.services.plan_service import PlanService
from ideaplan.services.presence_tracker import PresenceTracker
from ideaplan.services.share_registry import ShareRegistry
from ideaplan.services.version_ledger import VersionLedger
from ideaplan.store import SqlDocumentStore

OWNER_ID = "user-owner"


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Poll `predicate` until it holds; fail the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not met before timeout")
        await asyncio.sleep(0.01)


def sample_content(**overrides) -> PlanContent:
    data = {
        "description": "Book classes at local gyms",
        "tech_stack": [
            {"name": "React", "description": "UI", "category": "frontend"},
            {"name": "Postgres", "description": "Storage", "category": "database"},
        ],
        "roadmap": [
            {"phase": "MVP", "duration": "4 weeks", "tasks": ["auth", "booking"]},
        ],
        "structure": ["src/", "src/app.tsx"],
        "deployment": ["Vercel"],
        "pitch_deck": [{"title": "Problem", "content": ["Booking is painful"]}],
    }
    data.update(overrides)
    return PlanContent.model_validate(data)


@pytest.fixture
def engine():
    eng = create_db_engine("sqlite://")
    init_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def broadcaster():
    return InMemoryBroadcaster()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(engine, broadcaster):
    return SqlDocumentStore(engine, broadcaster, "changes:")


@pytest.fixture
def owner():
    return StaticIdentity(user_id=OWNER_ID, token="owner-token")


@pytest.fixture
def anonymous():
    return ANONYMOUS


@pytest.fixture
def ledger(store, owner, clock):
    return VersionLedger(store, owner, clock)


@pytest.fixture
def plans(store, owner, ledger, clock):
    return PlanService(store, owner, ledger, clock)


@pytest.fixture
def shares(store, owner, clock):
    return ShareRegistry(store, owner, clock, token_length=12, base_url="https://ideas.example")


@pytest.fixture
def presence(store, anonymous, clock):
    return PresenceTracker(store, anonymous, clock, presence_ttl=300)
