"""Pydantic records for plans, version snapshots and version diffs."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Fields copied into every version snapshot
CONTENT_FIELDS = ("description", "tech_stack", "roadmap", "structure", "deployment", "pitch_deck")


class TechStackItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    description: str = ""
    category: str = ""


class RoadmapPhase(BaseModel):
    model_config = ConfigDict(extra="allow")

    phase: str
    duration: str = ""
    tasks: List[str] = Field(default_factory=list)
    milestone: str = ""


class PitchSlide(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str
    content: List[str] = Field(default_factory=list)


class PlanContent(BaseModel):
    """The content fields shared by a plan and each of its snapshots."""

    description: str = ""
    tech_stack: List[TechStackItem] = Field(default_factory=list)
    roadmap: List[RoadmapPhase] = Field(default_factory=list)
    structure: List[str] = Field(default_factory=list)
    deployment: List[str] = Field(default_factory=list)
    pitch_deck: List[PitchSlide] = Field(default_factory=list)

    def content_dict(self) -> Dict[str, Any]:
        """JSON-ready copy of just the content fields."""
        return self.model_dump(mode="json", include=set(CONTENT_FIELDS))


class Plan(PlanContent):
    id: str
    owner_id: str
    title: str
    current_version: int = 0
    total_versions: int = 0
    created_at: datetime
    updated_at: datetime


class PlanVersion(PlanContent):
    id: str
    plan_id: str
    owner_id: str
    version_number: int
    changes_summary: Optional[str] = None
    created_at: datetime


class DiffType(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class VersionDiff(BaseModel):
    field: str
    old_value: str = ""
    new_value: str = ""
    type: DiffType
