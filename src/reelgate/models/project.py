"""Project state model."""

from typing import List
from enum import Enum
from pydantic import BaseModel, Field


class ProjectState(str, Enum):
    """Project state enum."""
    INIT = "init"
    GENERATING = "generating"
    NEEDS_REVIEW = "needs_review"
    READY = "ready"
    COMPOSED = "composed"
    CANCELLED = "cancelled"


class SceneQualityStatus(BaseModel):
    """Per-scene row of the quality report."""

    scene_id: str
    status: str
    score: float | None = None
    attempts: int = 0
    needs_review: bool = False
    overridden: bool = False


class ProjectQualityReport(BaseModel):
    """Summary of all gates, used to decide whether composition may run."""

    project_name: str
    state: ProjectState
    scenes: List[SceneQualityStatus] = Field(default_factory=list)
    approved_count: int = 0
    needs_review_count: int = 0
    escalated_count: int = 0
    cancelled_count: int = 0
    pending_count: int = 0
    average_score: float = 0.0
    can_compose: bool = False
    blocking_reasons: List[str] = Field(default_factory=list)
