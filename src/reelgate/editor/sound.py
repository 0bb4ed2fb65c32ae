"""Sound design planning: SFX cue placement and music ducking."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from ..config import config
from ..models import (
    BrandPlan,
    CueKind,
    DuckingEnvelope,
    DuckingSettings,
    Scene,
    SceneType,
    SoundCue,
    SoundDesignSettings,
    SoundPlan,
    VoiceoverRange,
)
from .frames import FrameTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SoundEffect:
    """Stock sound effect in the shared library."""

    file: str
    volume: float
    category: CueKind
    duration: Optional[float] = None


SOUND_EFFECTS: Dict[str, SoundEffect] = {
    "whoosh-light": SoundEffect("whoosh-light.mp3", 0.3, CueKind.TRANSITION, 0.5),
    "whoosh-heavy": SoundEffect("whoosh-heavy.mp3", 0.35, CueKind.TRANSITION, 0.6),
    "whoosh-soft": SoundEffect("whoosh-soft.mp3", 0.25, CueKind.TRANSITION, 0.4),
    "shimmer": SoundEffect("shimmer.mp3", 0.2, CueKind.TRANSITION, 1.0),
    "impact-deep": SoundEffect("impact-deep.mp3", 0.4, CueKind.IMPACT, 0.3),
    "impact-soft": SoundEffect("impact-soft.mp3", 0.25, CueKind.IMPACT, 0.25),
    "logo-reveal": SoundEffect("logo-reveal.mp3", 0.5, CueKind.IMPACT, 1.5),
    "rise-swell": SoundEffect("rise-swell.mp3", 0.35, CueKind.RISE_SWELL, 3.0),
    "rise-tension": SoundEffect("rise-tension.mp3", 0.3, CueKind.RISE_SWELL, 2.5),
    "room-tone-warm": SoundEffect("room-tone-warm.mp3", 0.08, CueKind.AMBIENT),
    "room-tone-nature": SoundEffect("room-tone-nature.mp3", 0.1, CueKind.AMBIENT),
}

# Transition intensity follows the scene being entered
TRANSITION_FOR_SCENE: Dict[SceneType, str] = {
    SceneType.HOOK: "whoosh-heavy",
    SceneType.CTA: "whoosh-heavy",
    SceneType.B_ROLL: "whoosh-soft",
    SceneType.EXPLANATION: "whoosh-soft",
}
DEFAULT_TRANSITION = "whoosh-light"

AMBIENT_SCENE_TYPES = {
    SceneType.HOOK,
    SceneType.TESTIMONIAL,
    SceneType.STORY,
    SceneType.BENEFIT,
    SceneType.CTA,
}


def get_sound_effect_url(asset_key: str, base_url: Optional[str] = None) -> str:
    """Return the library URL for a sound effect key.

    Raises:
        ValueError: If the key is not in the library.
    """
    if asset_key not in SOUND_EFFECTS:
        raise ValueError(f"Unknown sound effect: {asset_key}. Available: {list(SOUND_EFFECTS.keys())}")
    base = (base_url or config.sound_effects_url).rstrip("/")
    return f"{base}/{SOUND_EFFECTS[asset_key].file}"


def merge_voiceover_ranges(
    ranges: Iterable[VoiceoverRange],
    fade_frames: int,
) -> List[VoiceoverRange]:
    """Merge ranges that overlap or sit closer than two fades apart.

    Two ranges separated by less than ``2 * fade_frames`` would ramp the music
    up and straight back down in the gap, so they are ducked as one region.
    """
    merged: List[VoiceoverRange] = []
    for current in sorted(ranges, key=lambda r: (r.start_frame, r.end_frame)):
        if merged and current.start_frame - merged[-1].end_frame < 2 * fade_frames:
            previous = merged[-1]
            merged[-1] = VoiceoverRange(
                start_frame=previous.start_frame,
                end_frame=max(previous.end_frame, current.end_frame),
            )
        else:
            merged.append(current)
    return merged


def _lerp(frame: float, f0: float, v0: float, f1: float, v1: float) -> float:
    if f1 == f0:
        return v1
    return v0 + (v1 - v0) * (frame - f0) / (f1 - f0)


def build_ducking_envelope(
    ranges: Iterable[VoiceoverRange],
    settings: DuckingSettings,
    total_frames: int,
) -> DuckingEnvelope:
    """Derive the music volume envelope from voiceover ranges alone.

    For each merged range ``[s, e)`` the music ramps from ``base_volume`` at
    ``s - fade`` down to ``duck_level`` at ``s``, holds until ``e`` and ramps
    back to ``base_volume`` at ``e + fade``. Ramps cut by the start or end of
    the timeline keep their slope and are clamped there.
    """
    base, duck, fade = settings.base_volume, settings.duck_level, settings.fade_frames
    merged = merge_voiceover_ranges(ranges, fade)

    points: List[tuple[int, float]] = []
    for voice in merged:
        start = min(voice.start_frame, total_frames)
        end = min(voice.end_frame, total_frames)

        ramp_down = start - fade
        if ramp_down < 0:
            points.append((0, _lerp(0, ramp_down, base, start, duck)))
        else:
            points.append((ramp_down, base))
        points.append((start, duck))
        points.append((end, duck))

        ramp_up = end + fade
        if ramp_up > total_frames:
            points.append((total_frames, _lerp(total_frames, end, duck, ramp_up, base)))
        else:
            points.append((ramp_up, base))

    if not points or points[0][0] > 0:
        points.insert(0, (0, base))
    if points[-1][0] < total_frames:
        points.append((total_frames, points[-1][1]))

    # Ramps clamped at the timeline edges or touching neighbours repeat a point
    keyframes: List[tuple[int, float]] = []
    for point in points:
        if not keyframes or keyframes[-1] != point:
            keyframes.append(point)

    return DuckingEnvelope(keyframes=tuple(keyframes), base_volume=base)


class SoundDesignPlanner:
    """Places transition, impact, rise and ambient cues and computes ducking.

    Cue times are derived from the shared FrameTable so that SFX, voiceover
    and video all sit on the same frame grid.
    """

    def __init__(self, settings: Optional[SoundDesignSettings] = None) -> None:
        self._settings = settings or SoundDesignSettings()

    def plan(
        self,
        frames: FrameTable,
        scenes: Sequence[Scene],
        brand_plan: Optional[BrandPlan] = None,
    ) -> SoundPlan:
        """Build the sound plan.

        Args:
            frames: Frame table built from the same scenes.
            scenes: The script's scenes, carrying voiceover presence.
            brand_plan: Brand plan, used to align the logo impact and the
                rise into the outro.

        Returns:
            SoundPlan on the table's fps and total frame count.
        """
        ordered = sorted(scenes, key=lambda s: s.index)
        settings = self._settings

        voiceover_ranges = self.voiceover_ranges(frames, ordered)
        plan = SoundPlan(
            fps=frames.fps,
            total_frames=frames.total_frames,
            voiceover_ranges=voiceover_ranges,
            ducking_envelope=build_ducking_envelope(
                voiceover_ranges, settings.ducking, frames.total_frames
            ),
        )

        if settings.transition_sounds:
            plan.transition_cues = self._transition_cues(frames, ordered)
        if settings.impact_sounds and brand_plan is not None and brand_plan.intro is not None:
            plan.impact_cues = [
                self._cue(frames, CueKind.IMPACT, "logo-reveal", brand_plan.intro.reveal_seconds)
            ]
        if settings.rise_swell:
            plan.rise_swell_cue = self._rise_swell_cue(frames, ordered, brand_plan)
        if settings.ambient_layer:
            plan.ambient_cues = self._ambient_cues(frames, ordered)

        logger.info(
            f"Sound plan: {len(plan.transition_cues)} transitions, "
            f"{len(plan.impact_cues)} impacts, rise={'yes' if plan.rise_swell_cue else 'no'}, "
            f"{len(plan.ambient_cues)} ambient, {len(voiceover_ranges)} voiceover ranges"
        )
        return plan

    @staticmethod
    def voiceover_ranges(frames: FrameTable, scenes: Sequence[Scene]) -> List[VoiceoverRange]:
        """Frame ranges where narration plays, one per voiced scene."""
        ranges: List[VoiceoverRange] = []
        for scene in scenes:
            segment = scene.voiceover_segment()
            if segment is None:
                continue
            slot = frames.slot(scene.id)
            start = slot.start_frame + frames.to_frames(segment.offset_seconds)
            end = slot.end_frame
            if segment.duration_seconds is not None:
                end = min(end, start + frames.to_frames(segment.duration_seconds))
            if end > start:
                ranges.append(VoiceoverRange(start_frame=start, end_frame=end))
        return ranges

    @staticmethod
    def _cue(
        frames: FrameTable,
        kind: CueKind,
        asset_key: str,
        at_seconds: float,
        duration_seconds: Optional[float] = None,
    ) -> SoundCue:
        effect = SOUND_EFFECTS[asset_key]
        duration = duration_seconds or effect.duration or 1.0
        at_seconds = max(0.0, at_seconds)
        remaining = frames.to_seconds(frames.total_frames) - at_seconds
        return SoundCue(
            kind=kind,
            at_seconds=at_seconds,
            duration_seconds=min(duration, remaining),
            asset_key=asset_key,
            volume=effect.volume,
        )

    def _transition_cues(self, frames: FrameTable, scenes: Sequence[Scene]) -> List[SoundCue]:
        cues = []
        for scene in scenes[1:]:
            asset_key = TRANSITION_FOR_SCENE.get(scene.type, DEFAULT_TRANSITION)
            duration = SOUND_EFFECTS[asset_key].duration or 0.5
            boundary = frames.start_seconds(scene.id)
            cues.append(self._cue(frames, CueKind.TRANSITION, asset_key, boundary - duration / 2))
        return cues

    def _rise_swell_cue(
        self,
        frames: FrameTable,
        scenes: Sequence[Scene],
        brand_plan: Optional[BrandPlan],
    ) -> Optional[SoundCue]:
        region_start = None
        if brand_plan is not None and brand_plan.outro_offset_seconds is not None:
            region_start = frames.last.start_frame + frames.to_frames(brand_plan.outro_offset_seconds)
        else:
            cta = next((s for s in scenes if s.type == SceneType.CTA), None)
            if cta is not None:
                region_start = frames.slot(cta.id).start_frame

        if region_start is None or region_start <= 0:
            return None

        start = max(0, region_start - frames.to_frames(self._settings.rise_lead_seconds))
        return self._cue(
            frames,
            CueKind.RISE_SWELL,
            "rise-swell",
            frames.to_seconds(start),
            frames.to_seconds(region_start - start),
        )

    def _ambient_cues(self, frames: FrameTable, scenes: Sequence[Scene]) -> List[SoundCue]:
        cues = []
        for scene in scenes:
            if scene.type not in AMBIENT_SCENE_TYPES:
                continue
            slot = frames.slot(scene.id)
            asset_key = "room-tone-nature" if scene.type == SceneType.BENEFIT else "room-tone-warm"
            cues.append(self._cue(
                frames,
                CueKind.AMBIENT,
                asset_key,
                frames.to_seconds(slot.start_frame),
                frames.to_seconds(slot.duration_frames),
            ))
        return cues
