"""
Database models package.

Exports all SQLAlchemy models so they register with Base.metadata.
"""

from ideaplan.database.models.chat import ChatConversation
from ideaplan.database.models.plan import Plan, PlanVersion
from ideaplan.database.models.sharing import PlanCollaborator, ShareLink

__all__ = [
    "ChatConversation",
    "Plan",
    "PlanCollaborator",
    "PlanVersion",
    "ShareLink",
]
