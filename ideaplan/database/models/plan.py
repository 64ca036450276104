"""
Plans and their immutable version snapshots
"""
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text

from ideaplan.core.clock import utcnow
from ideaplan.core.db import Base


def _new_id() -> str:
    return str(uuid4())


class Plan(Base):
    """Saved idea with its generated plan and pitch deck"""

    __tablename__ = "plans"

    id = Column(String, primary_key=True, default=_new_id)
    owner_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    tech_stack = Column(JSON, nullable=False, default=list)  # [{"name", "description", "category"}]
    roadmap = Column(JSON, nullable=False, default=list)  # [{"phase", "duration", "tasks", "milestone"}]
    structure = Column(JSON, nullable=False, default=list)  # ["src/", "src/app.tsx", ...]
    deployment = Column(JSON, nullable=False, default=list)
    pitch_deck = Column(JSON, nullable=False, default=list)  # [{"title", "content"}]
    current_version = Column(Integer, nullable=False, default=0)
    total_versions = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (Index("ix_plans_owner_created", "owner_id", "created_at"),)


class PlanVersion(Base):
    """Immutable snapshot of a plan's content fields"""

    __tablename__ = "plan_versions"

    id = Column(String, primary_key=True, default=_new_id)
    plan_id = Column(
        String, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner_id = Column(String, nullable=False)
    version_number = Column(Integer, nullable=False)  # 1-based, contiguous per plan
    description = Column(Text, nullable=False, default="")
    tech_stack = Column(JSON, nullable=False, default=list)
    roadmap = Column(JSON, nullable=False, default=list)
    structure = Column(JSON, nullable=False, default=list)
    deployment = Column(JSON, nullable=False, default=list)
    pitch_deck = Column(JSON, nullable=False, default=list)
    changes_summary = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        # One snapshot per version slot; concurrent writers collide here
        Index("ix_plan_versions_plan_number", "plan_id", "version_number", unique=True),
    )
