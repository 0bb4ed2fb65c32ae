"""Sound cue, voiceover range and ducking envelope models."""

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator


class CueKind(str, Enum):
    """Role of a sound effect cue."""
    TRANSITION = "transition"
    IMPACT = "impact"
    RISE_SWELL = "riseSwell"
    AMBIENT = "ambient"


class SoundCue(BaseModel):
    """A sound effect placed at an absolute timeline position."""

    kind: CueKind
    at_seconds: float = Field(..., ge=0)
    duration_seconds: float = Field(..., gt=0)
    asset_key: str
    volume: float = Field(default=1.0, ge=0.0, le=1.0)

    class Config:
        """Pydantic config."""
        frozen = True


class VoiceoverRange(BaseModel):
    """Half-open frame interval where narration plays."""

    start_frame: int = Field(..., ge=0)
    end_frame: int

    class Config:
        """Pydantic config."""
        frozen = True

    @model_validator(mode="after")
    def _ordered(self) -> "VoiceoverRange":
        if self.end_frame <= self.start_frame:
            raise ValueError(f"empty voiceover range [{self.start_frame}, {self.end_frame})")
        return self


class DuckingSettings(BaseModel):
    """Music levels and fade length for voiceover ducking."""

    base_volume: float = Field(default=0.35, ge=0.0, le=1.0)
    duck_level: float = Field(default=0.1, ge=0.0, le=1.0)
    fade_frames: int = Field(default=15, ge=1)


class DuckingEnvelope(BaseModel):
    """Piecewise-linear music volume over frames.

    Outside the keyframes the nearest keyframe's volume holds.
    """

    keyframes: Tuple[Tuple[int, float], ...] = ()
    base_volume: float = 0.35

    class Config:
        """Pydantic config."""
        frozen = True

    def volume_at(self, frame: float) -> float:
        """Interpolate the music volume at a (possibly fractional) frame."""
        if not self.keyframes:
            return self.base_volume
        first_frame, first_volume = self.keyframes[0]
        if frame <= first_frame:
            return first_volume
        for (f0, v0), (f1, v1) in zip(self.keyframes, self.keyframes[1:]):
            if f0 <= frame <= f1:
                if f1 == f0:
                    return v1
                return v0 + (v1 - v0) * (frame - f0) / (f1 - f0)
        return self.keyframes[-1][1]


class SoundDesignSettings(BaseModel):
    """Project-level sound design switches."""

    transition_sounds: bool = True
    impact_sounds: bool = True
    rise_swell: bool = True
    ambient_layer: bool = False
    rise_lead_seconds: float = Field(default=3.0, gt=0)
    ducking: DuckingSettings = Field(default_factory=DuckingSettings)


class SoundPlan(BaseModel):
    """Output of the sound design planner."""

    fps: int
    total_frames: int
    transition_cues: List[SoundCue] = Field(default_factory=list)
    impact_cues: List[SoundCue] = Field(default_factory=list)
    rise_swell_cue: Optional[SoundCue] = None
    ambient_cues: List[SoundCue] = Field(default_factory=list)
    voiceover_ranges: List[VoiceoverRange] = Field(default_factory=list)
    ducking_envelope: DuckingEnvelope = Field(default_factory=DuckingEnvelope)

    def all_cues(self) -> List[SoundCue]:
        cues = list(self.transition_cues) + list(self.impact_cues)
        if self.rise_swell_cue:
            cues.append(self.rise_swell_cue)
        cues.extend(self.ambient_cues)
        return sorted(cues, key=lambda c: (c.at_seconds, c.kind.value))
