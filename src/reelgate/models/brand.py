"""Brand configuration and overlay placement models."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from .scene import SceneType


class OverlayKind(str, Enum):
    """Kind of brand overlay."""
    INTRO = "intro"
    WATERMARK = "watermark"
    CTA = "cta"
    OUTRO_LOGO = "outro-logo"
    SCENE_LOGO = "scene-logo"


class AnimationKind(str, Enum):
    """Entrance animation of an overlay."""
    FADE = "fade"
    ZOOM = "zoom"
    SLIDE = "slide"
    NONE = "none"


class RegionKind(str, Enum):
    """Timeline region an overlay's timing is relative to."""
    INTRO = "intro"
    BODY = "body"
    OUTRO = "outro"
    SCENE = "scene"


class OverlayRegion(BaseModel):
    """A named region of the timeline."""

    kind: RegionKind
    scene_id: Optional[str] = None

    class Config:
        """Pydantic config."""
        frozen = True

    @model_validator(mode="after")
    def _scene_needs_id(self) -> "OverlayRegion":
        if (self.kind == RegionKind.SCENE) != (self.scene_id is not None):
            raise ValueError("scene_id is required for scene regions and only for them")
        return self

    def label(self) -> str:
        return f"scene:{self.scene_id}" if self.scene_id else self.kind.value


class Anchor(BaseModel):
    """Named position plus offsets, in percent of the frame (overlay center)."""

    name: str = "center"
    x_percent: float = Field(default=50, ge=0, le=100)
    y_percent: float = Field(default=50, ge=0, le=100)

    class Config:
        """Pydantic config."""
        frozen = True


# Preset anchors, margins included
ANCHORS = {
    "center": Anchor(name="center", x_percent=50, y_percent=50),
    "top-left": Anchor(name="top-left", x_percent=8, y_percent=8),
    "top-right": Anchor(name="top-right", x_percent=92, y_percent=8),
    "bottom-left": Anchor(name="bottom-left", x_percent=8, y_percent=92),
    "bottom-right": Anchor(name="bottom-right", x_percent=92, y_percent=92),
    "outro-logo": Anchor(name="center", x_percent=50, y_percent=30),
    "outro-cta": Anchor(name="center", x_percent=50, y_percent=65),
    "scene-logo": Anchor(name="top-right", x_percent=85, y_percent=15),
}


def get_anchor(name: str) -> Anchor:
    """Get a preset anchor by name.

    Raises:
        ValueError: If the anchor is not found.
    """
    if name not in ANCHORS:
        raise ValueError(f"Unknown anchor: {name}. Available: {list(ANCHORS.keys())}")
    return ANCHORS[name]


class BrandOverlaySpec(BaseModel):
    """A placement instruction for one brand overlay."""

    kind: OverlayKind
    region: OverlayRegion
    asset_url: Optional[str] = Field(None, description="None only for text overlays")
    text: Optional[str] = Field(None, description="Text block content (CTA)")
    anchor: Anchor = Field(default_factory=Anchor)
    size_percent: float = Field(default=12, gt=0, le=100)
    opacity: float = Field(default=1.0, ge=0.0, le=1.0)
    animation_kind: AnimationKind = AnimationKind.FADE
    animation_seconds: float = Field(default=0.5, ge=0)
    animation_delay_seconds: float = Field(default=0.0, ge=0)
    start_seconds: float = Field(default=0.0, ge=0)
    duration_seconds: Optional[float] = Field(
        None, gt=0, description="None is the rest-of-region sentinel"
    )

    class Config:
        """Pydantic config."""
        frozen = True

    @model_validator(mode="after")
    def _needs_content(self) -> "BrandOverlaySpec":
        if not self.asset_url and not self.text:
            raise ValueError(f"{self.kind.value} overlay needs an asset_url or text")
        return self

    @property
    def reveal_seconds(self) -> float:
        """Region-relative instant the overlay starts becoming visible."""
        return self.start_seconds + self.animation_delay_seconds


class LogoSet(BaseModel):
    """Brand logo assets; missing variants fall back to ``main``."""

    main: Optional[str] = None
    intro: Optional[str] = None
    watermark: Optional[str] = None
    outro: Optional[str] = None

    def for_role(self, role: str) -> Optional[str]:
        return getattr(self, role) or self.main


class CallToAction(BaseModel):
    """CTA text block shown in the outro."""

    headline: str = ""
    subtext: Optional[str] = None
    url: Optional[str] = None

    def render_text(self) -> str:
        lines = [self.headline, self.subtext or "", self.url or ""]
        return "\n".join(line for line in lines if line)


class BrandConfig(BaseModel):
    """Project-level brand settings."""

    logos: LogoSet = Field(default_factory=LogoSet)
    call_to_action: Optional[CallToAction] = None

    intro_enabled: bool = True
    intro_seconds: float = Field(default=2.5, gt=0)
    intro_min_window_seconds: float = Field(default=1.5, gt=0)
    intro_animation: AnimationKind = AnimationKind.ZOOM

    watermark_enabled: bool = True
    watermark_position: str = "bottom-right"
    watermark_opacity: float = Field(default=0.7, ge=0.0, le=1.0)
    watermark_size_percent: float = Field(default=8, gt=0, le=100)

    outro_enabled: bool = True
    outro_seconds: float = Field(default=4.0, gt=0)

    scene_logo_types: List[SceneType] = Field(default_factory=lambda: [SceneType.PRODUCT])


class BrandPlan(BaseModel):
    """Everything the brand planner decided, with region geometry in seconds."""

    intro: Optional[BrandOverlaySpec] = None
    watermark: Optional[BrandOverlaySpec] = None
    outro: List[BrandOverlaySpec] = Field(default_factory=list)
    per_scene: Dict[str, List[BrandOverlaySpec]] = Field(default_factory=dict)
    intro_seconds: float = Field(default=0.0, ge=0, description="Length of the intro region")
    outro_offset_seconds: Optional[float] = Field(
        None, ge=0, description="Outro start relative to the final scene; None when no outro"
    )
    dropped: List[str] = Field(default_factory=list, description="Reasons overlays were dropped")

    def all_overlays(self) -> List[BrandOverlaySpec]:
        overlays: List[BrandOverlaySpec] = []
        if self.intro:
            overlays.append(self.intro)
        if self.watermark:
            overlays.append(self.watermark)
        overlays.extend(self.outro)
        for scene_overlays in self.per_scene.values():
            overlays.extend(scene_overlays)
        return overlays
