"""Immutable render timeline handed to a render backend."""

from typing import Optional, Tuple

from pydantic import BaseModel, Field

from .brand import AnimationKind, Anchor, OverlayKind
from .scene import MediaKind


class _Frozen(BaseModel):
    class Config:
        """Pydantic config."""
        frozen = True


class SceneTrackEntry(_Frozen):
    """One scene's slot on the video track."""

    scene_id: str
    scene_index: int
    asset_url: str
    media_kind: MediaKind = MediaKind.VIDEO
    start_frame: int = Field(..., ge=0)
    duration_frames: int = Field(..., gt=0)

    @property
    def end_frame(self) -> int:
        return self.start_frame + self.duration_frames


class OverlayTrackEntry(_Frozen):
    """A brand overlay resolved to absolute frames."""

    kind: OverlayKind
    region: str
    asset_url: Optional[str] = None
    text: Optional[str] = None
    anchor: Anchor
    size_percent: float
    opacity: float = Field(..., ge=0.0, le=1.0)
    animation_kind: AnimationKind
    animation_frames: int = Field(..., ge=0)
    start_frame: int = Field(..., ge=0)
    duration_frames: int = Field(..., gt=0)

    @property
    def end_frame(self) -> int:
        return self.start_frame + self.duration_frames


class VoiceoverTrack(_Frozen):
    """Narration audio plus the frame ranges it covers."""

    asset_url: str
    ranges: Tuple[Tuple[int, int], ...] = ()


class MusicTrack(_Frozen):
    """Background music with its ducking envelope as (frame, volume) keyframes."""

    asset_url: str
    base_volume: float
    envelope: Tuple[Tuple[int, float], ...] = ()


class SfxTrackEntry(_Frozen):
    """A sound effect cue resolved to absolute frames."""

    kind: str
    asset_key: str
    asset_url: str
    start_frame: int = Field(..., ge=0)
    duration_frames: int = Field(..., gt=0)
    volume: float = Field(..., ge=0.0, le=1.0)


class RenderSpec(_Frozen):
    """Frame-indexed description of every track.

    Immutable: any change means building a new one.
    """

    project_name: str
    fps: int = Field(..., gt=0)
    total_frames: int = Field(..., gt=0)
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    scene_track: Tuple[SceneTrackEntry, ...]
    overlay_track: Tuple[OverlayTrackEntry, ...] = ()
    voiceover_track: Optional[VoiceoverTrack] = None
    music_track: Optional[MusicTrack] = None
    sfx_track: Tuple[SfxTrackEntry, ...] = ()

    @property
    def duration_seconds(self) -> float:
        return self.total_frames / self.fps

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, data: str) -> "RenderSpec":
        return cls.model_validate_json(data)
