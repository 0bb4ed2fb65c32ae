"""Generation attempt and per-scene gate state models."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field, model_validator

from .scene import MediaKind


class DefectTag(str, Enum):
    """Closed vocabulary of defects a content scorer may report."""
    ON_IMAGE_TEXT = "on-image-text"
    BLANK_FRAME = "blank-frame"
    MISMATCHED_CONTENT = "mismatched-content"
    BRAND_NONCOMPLIANT_COLOR = "brand-noncompliant-color"
    AI_ARTIFACTS = "ai-artifacts"
    LOW_RESOLUTION = "low-resolution"
    POOR_COMPOSITION = "poor-composition"
    DISTORTED_ANATOMY = "distorted-anatomy"
    WRONG_LIGHTING = "wrong-lighting"
    ANALYSIS_FAILED = "analysis-failed"


class AttemptOutcome(str, Enum):
    """Outcome of a single generation attempt."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    PROVIDER_FAILED = "providerFailed"
    SCORE_REJECTED = "scoreRejected"


class GateStatus(str, Enum):
    """Lifecycle status of a scene's generation gate."""
    PENDING = "pending"
    GENERATING = "generating"
    SCORING = "scoring"
    REGENERATING = "regenerating"
    APPROVED = "approved"
    ESCALATED = "escalated"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (GateStatus.APPROVED, GateStatus.ESCALATED, GateStatus.CANCELLED)


class ScoreBand(str, Enum):
    """Which policy band a score falls into."""
    APPROVE = "approve"
    APPROVE_WITH_REVIEW = "approve_with_review"
    REGENERATE = "regenerate"
    HARD_FAIL = "hard_fail"


class QualityPolicy(BaseModel):
    """Score thresholds and retry budget for the generation gate."""

    approve_threshold: float = Field(default=85, ge=0, le=100)
    review_threshold: float = Field(default=70, ge=0, le=100)
    regenerate_threshold: float = Field(default=50, ge=0, le=100)
    max_attempts: int = Field(default=3, ge=1)

    @model_validator(mode="after")
    def _check_ordering(self) -> "QualityPolicy":
        if not (self.approve_threshold >= self.review_threshold >= self.regenerate_threshold):
            raise ValueError(
                "thresholds must satisfy approve >= review >= regenerate, got "
                f"{self.approve_threshold}/{self.review_threshold}/{self.regenerate_threshold}"
            )
        return self

    def classify(self, score: float) -> ScoreBand:
        """Map a 0-100 score onto its policy band (lower bounds inclusive)."""
        if score >= self.approve_threshold:
            return ScoreBand.APPROVE
        if score >= self.review_threshold:
            return ScoreBand.APPROVE_WITH_REVIEW
        if score >= self.regenerate_threshold:
            return ScoreBand.REGENERATE
        return ScoreBand.HARD_FAIL


class GenerationRequest(BaseModel):
    """Everything a provider needs for one attempt."""

    provider_id: str
    prompt: str
    negative_prompt: str = ""
    duration_seconds: float = Field(..., gt=0)
    aspect_ratio: str = "16:9"
    media_kind: MediaKind = MediaKind.VIDEO

    class Config:
        """Pydantic config."""
        frozen = True


@dataclass(frozen=True)
class ProviderSuccess:
    """A provider produced an asset."""

    asset_url: str
    preview_url: Optional[str] = None


@dataclass(frozen=True)
class ProviderFailure:
    """A provider call failed; retrying is a brand-new call."""

    reason: str


ProviderResult = Union[ProviderSuccess, ProviderFailure]


class ScoreResult(BaseModel):
    """Content scorer verdict for one asset."""

    score: float = Field(..., ge=0, le=100)
    defects: List[DefectTag] = Field(default_factory=list)

    def summary(self) -> str:
        tags = ", ".join(d.value for d in self.defects) or "no defects reported"
        return f"{self.score:g}: {tags}"


class GenerationAttempt(BaseModel):
    """One try at producing a scene's visual asset."""

    attempt_number: int = Field(..., ge=1)
    provider_id: str
    request_prompt: str
    negative_prompt: str = ""
    asset_url: Optional[str] = None
    score: Optional[float] = None
    defects: List[DefectTag] = Field(default_factory=list)
    outcome: AttemptOutcome = AttemptOutcome.PENDING
    failure_reason: Optional[str] = None


class SceneGenerationState(BaseModel):
    """Mutable state owned by one scene's gate."""

    scene_id: str
    status: GateStatus = GateStatus.PENDING
    attempts: List[GenerationAttempt] = Field(default_factory=list)
    approved_attempt: Optional[int] = Field(
        None, description="attempt_number of the approved attempt"
    )
    needs_review: bool = False
    escalation_reason: Optional[str] = None
    override_asset_url: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "SceneGenerationState":
        numbers = [a.attempt_number for a in self.attempts]
        if numbers != list(range(1, len(numbers) + 1)):
            raise ValueError(f"attempt numbers must be 1..N in order, got {numbers}")
        if (self.approved_attempt is not None) != (self.status == GateStatus.APPROVED):
            raise ValueError("approved_attempt must be set if and only if status is approved")
        pending = sum(1 for a in self.attempts if a.outcome == AttemptOutcome.PENDING)
        if pending > 1:
            raise ValueError("at most one attempt may be pending")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def get_approved_attempt(self) -> Optional[GenerationAttempt]:
        if self.approved_attempt is None:
            return None
        return self.attempts[self.approved_attempt - 1]

    def best_attempt(self) -> Optional[GenerationAttempt]:
        """Return the highest-scoring attempt that produced an asset."""
        scored = [a for a in self.attempts if a.asset_url and a.score is not None]
        if not scored:
            return None
        return max(scored, key=lambda a: a.score)

    def render_asset_url(self) -> Optional[str]:
        """URL the timeline should use for this scene, if any."""
        approved = self.get_approved_attempt()
        if approved is not None:
            return approved.asset_url
        if self.status == GateStatus.ESCALATED:
            return self.override_asset_url
        return None

    def apply_override(self, asset_url: str) -> None:
        """Record a human-chosen asset for an escalated scene."""
        if self.status != GateStatus.ESCALATED:
            raise ValueError(
                f"only escalated scenes accept an override, {self.scene_id} is {self.status.value}"
            )
        self.override_asset_url = asset_url
