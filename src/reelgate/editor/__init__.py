"""Timeline planning, composition and rendering."""

from .frames import FrameTable, SceneSlot, seconds_to_frames
from .brand import BrandInjectionPlanner
from .sound import (
    SOUND_EFFECTS,
    SoundDesignPlanner,
    build_ducking_envelope,
    get_sound_effect_url,
    merge_voiceover_ranges,
)
from .compositor import TimelineComposer, region_bounds, validate_render_spec

__all__ = [
    # Frames
    "FrameTable",
    "SceneSlot",
    "seconds_to_frames",
    # Planners
    "BrandInjectionPlanner",
    "SOUND_EFFECTS",
    "SoundDesignPlanner",
    "build_ducking_envelope",
    "get_sound_effect_url",
    "merge_voiceover_ranges",
    # Compositor
    "TimelineComposer",
    "region_bounds",
    "validate_render_spec",
]
