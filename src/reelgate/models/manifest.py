"""Manifest data model."""

from typing import List, Optional
from pathlib import Path
from pydantic import BaseModel, Field, field_validator, model_validator
import yaml

from .brand import BrandConfig
from .generation import QualityPolicy
from .scene import Scene
from .sound import SoundDesignSettings


# Output frame size per aspect ratio
FRAME_SIZES = {
    "16:9": (1920, 1080),
    "9:16": (1080, 1920),
    "1:1": (1080, 1080),
}


class AudioSources(BaseModel):
    """Project-level narration and music assets."""

    voiceover_url: Optional[str] = Field(None, description="Narration track, aligned to frame 0")
    music_url: Optional[str] = Field(None, description="Background music")


class Manifest(BaseModel):
    """Video project manifest."""

    project_name: str = Field(..., description="Project name")
    scenes: List[Scene] = Field(default_factory=list, description="List of scenes")
    aspect_ratio: str = Field(default="16:9", description="Output aspect ratio")
    fps: int = Field(default=30, description="Timeline frame rate", gt=0)
    output_format: str = Field(default="mp4", description="Output video format")
    audio: AudioSources = Field(default_factory=AudioSources)
    brand: Optional[BrandConfig] = Field(None, description="Brand overlays; None disables branding")
    policy: QualityPolicy = Field(default_factory=QualityPolicy)
    sound: SoundDesignSettings = Field(default_factory=SoundDesignSettings)

    class Config:
        """Pydantic config."""
        frozen = False

    @field_validator("aspect_ratio")
    @classmethod
    def _known_aspect_ratio(cls, value: str) -> str:
        if value not in FRAME_SIZES:
            raise ValueError(f"Invalid aspect_ratio: {value}. Must be one of {list(FRAME_SIZES)}")
        return value

    @model_validator(mode="after")
    def _check_scene_order(self) -> "Manifest":
        self.scenes = sorted(self.scenes, key=lambda s: s.index)
        indices = [s.index for s in self.scenes]
        if indices != list(range(len(self.scenes))):
            raise ValueError(f"scene indices must be 0..{len(self.scenes) - 1} without gaps, got {indices}")
        ids = [s.id for s in self.scenes]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate scene ids: {', '.join(duplicates)}")
        return self

    @property
    def frame_size(self) -> tuple[int, int]:
        return FRAME_SIZES[self.aspect_ratio]

    @property
    def total_duration(self) -> float:
        return sum(scene.duration_seconds for scene in self.scenes)

    def get_scene(self, scene_id: str) -> Scene:
        for scene in self.scenes:
            if scene.id == scene_id:
                return scene
        raise KeyError(f"Unknown scene: {scene_id}")

    @classmethod
    def from_yaml(cls, path: Path) -> "Manifest":
        """Load manifest from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls(**data)

    def to_yaml(self, path: Path) -> None:
        """Save manifest to YAML file."""
        with open(path, "w") as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)
