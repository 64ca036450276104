"""Pydantic records returned by the services."""

from ideaplan.schemas.chat import ChatMessage, ChatResponse, Conversation, TokenUsage
from ideaplan.schemas.plans import (
    CONTENT_FIELDS,
    DiffType,
    PitchSlide,
    Plan,
    PlanContent,
    PlanVersion,
    RoadmapPhase,
    TechStackItem,
    VersionDiff,
)
from ideaplan.schemas.sharing import Collaborator, Permission, ShareLink

__all__ = [
    "CONTENT_FIELDS",
    "ChatMessage",
    "ChatResponse",
    "Collaborator",
    "Conversation",
    "DiffType",
    "Permission",
    "PitchSlide",
    "Plan",
    "PlanContent",
    "PlanVersion",
    "RoadmapPhase",
    "ShareLink",
    "TechStackItem",
    "TokenUsage",
    "VersionDiff",
]
