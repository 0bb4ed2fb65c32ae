"""Scene data model."""

from enum import Enum
from typing import Optional, Union
from pydantic import BaseModel, Field


class SceneType(str, Enum):
    """Narrative role of a scene."""
    HOOK = "hook"
    PROBLEM = "problem"
    SOLUTION = "solution"
    BENEFIT = "benefit"
    TESTIMONIAL = "testimonial"
    B_ROLL = "b-roll"
    CTA = "cta"
    PRODUCT = "product"
    EXPLANATION = "explanation"
    STORY = "story"


class MediaKind(str, Enum):
    """Kind of media a provider produces."""
    VIDEO = "video"
    IMAGE = "image"
    VOICEOVER = "voiceover"
    MUSIC = "music"
    SFX = "sfx"


class VoiceoverSegment(BaseModel):
    """Where narration plays inside a scene, relative to the scene start."""

    offset_seconds: float = Field(default=0.0, ge=0)
    duration_seconds: Optional[float] = Field(
        None, gt=0, description="None means until the end of the scene"
    )

    class Config:
        """Pydantic config."""
        frozen = True


class Scene(BaseModel):
    """Represents a single narrated scene in the video."""

    id: str = Field(..., description="Unique scene identifier")
    index: int = Field(..., description="0-based position in the script", ge=0)
    type: SceneType = Field(default=SceneType.B_ROLL, description="Narrative role")
    narration_text: str = Field(default="", description="Voiceover text")
    duration_seconds: float = Field(..., description="Scene duration in seconds", gt=0)
    visual_prompt: str = Field(..., description="Base generation prompt")
    media_kind: MediaKind = Field(default=MediaKind.VIDEO, description="video or image")
    voiceover: Optional[Union[bool, VoiceoverSegment]] = Field(
        None, description="Voiceover presence; defaults to having narration text"
    )

    class Config:
        """Pydantic config."""
        frozen = True

    def voiceover_segment(self) -> Optional[VoiceoverSegment]:
        """Return where narration plays in this scene, or None for silence."""
        if isinstance(self.voiceover, VoiceoverSegment):
            return self.voiceover
        present = self.voiceover if self.voiceover is not None else bool(self.narration_text.strip())
        return VoiceoverSegment() if present else None
