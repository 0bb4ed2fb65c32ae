"""Timeline composer: joins approved scenes, brand and sound plans into a RenderSpec."""

import logging
from collections import defaultdict
from typing import Dict, List, Mapping, Optional, Tuple

from ..errors import CompositionInvariantViolation, SceneNotReadyError
from ..models import (
    BrandOverlaySpec,
    BrandPlan,
    GateStatus,
    Manifest,
    MusicTrack,
    OverlayKind,
    OverlayTrackEntry,
    RegionKind,
    RenderSpec,
    SceneGenerationState,
    SceneTrackEntry,
    SfxTrackEntry,
    SoundPlan,
    VoiceoverTrack,
)
from ..services.base import AssetUrlResolver
from .frames import FrameTable
from .sound import get_sound_effect_url

logger = logging.getLogger(__name__)

Regions = Dict[str, Tuple[int, int]]


def region_bounds(frames: FrameTable, brand_plan: Optional[BrandPlan]) -> Regions:
    """Frame bounds ``[start, end)`` of every named region.

    The body region spans from the end of the intro to the start of the outro.
    Without an intro or outro it extends to the timeline edge.
    """
    total = frames.total_frames
    intro_end = 0
    outro_start = total
    if brand_plan is not None:
        if brand_plan.intro is not None:
            intro_end = frames.to_frames(brand_plan.intro_seconds)
        if brand_plan.outro_offset_seconds is not None:
            outro_start = frames.last.start_frame + frames.to_frames(brand_plan.outro_offset_seconds)

    regions: Regions = {
        RegionKind.INTRO.value: (0, intro_end),
        RegionKind.BODY.value: (intro_end, outro_start),
        RegionKind.OUTRO.value: (outro_start, total),
    }
    for slot in frames.slots:
        regions[f"scene:{slot.scene_id}"] = (slot.start_frame, slot.end_frame)
    return regions


def validate_render_spec(
    spec: RenderSpec,
    regions: Optional[Regions] = None,
    resolver: Optional[AssetUrlResolver] = None,
) -> None:
    """Check the structural invariants of a finished timeline.

    Args:
        spec: Timeline to check.
        regions: Region bounds the overlays were placed against. Without them
            overlays are only checked against the whole timeline.
        resolver: When given, every URL must already be public.

    Raises:
        CompositionInvariantViolation: On the first broken invariant.
    """
    total = spec.total_frames

    cursor = 0
    for entry in spec.scene_track:
        if entry.start_frame != cursor:
            raise CompositionInvariantViolation(
                f"scene {entry.scene_id} starts at frame {entry.start_frame}, expected {cursor}"
            )
        cursor = entry.end_frame
    if cursor != total:
        raise CompositionInvariantViolation(
            f"scene track covers {cursor} frames but the timeline has {total}"
        )

    by_region_kind: Dict[Tuple[str, OverlayKind], List[OverlayTrackEntry]] = defaultdict(list)
    watermarks = 0
    for overlay in spec.overlay_track:
        low, high = (regions or {}).get(overlay.region, (0, total))
        if overlay.start_frame < low or overlay.end_frame > high:
            raise CompositionInvariantViolation(
                f"{overlay.kind.value} overlay [{overlay.start_frame}, {overlay.end_frame}) "
                f"leaves region {overlay.region} [{low}, {high})"
            )
        if overlay.kind == OverlayKind.WATERMARK:
            watermarks += 1
        by_region_kind[(overlay.region, overlay.kind)].append(overlay)
    if watermarks > 1:
        raise CompositionInvariantViolation(f"{watermarks} watermarks on the timeline, at most one allowed")

    for (region, kind), overlays in by_region_kind.items():
        overlays = sorted(overlays, key=lambda o: o.start_frame)
        for previous, current in zip(overlays, overlays[1:]):
            if current.start_frame < previous.end_frame:
                raise CompositionInvariantViolation(
                    f"overlapping {kind.value} overlays in region {region} "
                    f"at frames {current.start_frame}-{previous.end_frame}"
                )

    for sfx in spec.sfx_track:
        if sfx.start_frame + sfx.duration_frames > total:
            raise CompositionInvariantViolation(
                f"{sfx.asset_key} cue ends at frame {sfx.start_frame + sfx.duration_frames}, "
                f"past the timeline end {total}"
            )

    if spec.voiceover_track is not None:
        for start, end in spec.voiceover_track.ranges:
            if not 0 <= start < end <= total:
                raise CompositionInvariantViolation(f"voiceover range [{start}, {end}) outside [0, {total})")

    if spec.music_track is not None:
        frames = [frame for frame, _ in spec.music_track.envelope]
        if any(b <= a for a, b in zip(frames, frames[1:])):
            raise CompositionInvariantViolation(f"envelope keyframes are not strictly increasing: {frames}")
        if frames and (frames[0] < 0 or frames[-1] > total):
            raise CompositionInvariantViolation(f"envelope keyframes outside [0, {total}]")

    if resolver is not None:
        urls = [e.asset_url for e in spec.scene_track]
        urls += [o.asset_url for o in spec.overlay_track if o.asset_url]
        urls += [s.asset_url for s in spec.sfx_track]
        if spec.voiceover_track is not None:
            urls.append(spec.voiceover_track.asset_url)
        if spec.music_track is not None:
            urls.append(spec.music_track.asset_url)
        for url in urls:
            if not resolver.is_public(url):
                raise CompositionInvariantViolation(f"asset URL is not public: {url}")


class TimelineComposer:
    """Builds the single frame-accurate RenderSpec for a project.

    Scene assets are essential: one that cannot be resolved aborts the
    composition. Overlays, SFX, music and voiceover that cannot be resolved
    are dropped and logged.
    """

    def __init__(self, resolver: AssetUrlResolver, sound_effects_url: Optional[str] = None) -> None:
        self._resolver = resolver
        self._sound_effects_url = sound_effects_url

    def compose(
        self,
        manifest: Manifest,
        states: Mapping[str, SceneGenerationState],
        brand_plan: Optional[BrandPlan] = None,
        sound_plan: Optional[SoundPlan] = None,
        frames: Optional[FrameTable] = None,
    ) -> RenderSpec:
        """Compose the render timeline.

        Args:
            manifest: Project manifest with scenes, fps and audio sources.
            states: Gate state per scene id.
            brand_plan: Output of the brand planner, if branding is enabled.
            sound_plan: Output of the sound planner, built on ``frames``.
            frames: The frame table the sound plan was built from. Built
                from the manifest when omitted.

        Returns:
            Validated, immutable RenderSpec.

        Raises:
            SceneNotReadyError: If any scene lacks an approved or overridden asset.
            CompositionInvariantViolation: If the timeline breaks an invariant.
        """
        scene_urls = self._check_readiness(manifest, states)

        if frames is None:
            frames = FrameTable.build(manifest.scenes, manifest.fps)
        if frames.fps != manifest.fps:
            raise CompositionInvariantViolation(
                f"frame table is at {frames.fps}fps but the manifest is at {manifest.fps}fps"
            )
        if sound_plan is not None and (
            sound_plan.fps != frames.fps or sound_plan.total_frames != frames.total_frames
        ):
            raise CompositionInvariantViolation(
                f"sound plan ({sound_plan.total_frames} frames at {sound_plan.fps}fps) was built on a "
                f"different frame table ({frames.total_frames} frames at {frames.fps}fps)"
            )

        scene_track = []
        for scene in manifest.scenes:
            url = self._resolver.resolve(scene_urls[scene.id])
            if url is None:
                raise CompositionInvariantViolation(
                    f"scene {scene.index} ({scene.id}) asset is not publicly resolvable: {scene_urls[scene.id]}"
                )
            slot = frames.slot(scene.id)
            scene_track.append(SceneTrackEntry(
                scene_id=scene.id,
                scene_index=scene.index,
                asset_url=url,
                media_kind=scene.media_kind,
                start_frame=slot.start_frame,
                duration_frames=slot.duration_frames,
            ))

        regions = region_bounds(frames, brand_plan)
        overlay_track = []
        if brand_plan is not None:
            for overlay in brand_plan.all_overlays():
                entry = self._place_overlay(overlay, regions, frames)
                if entry is not None:
                    overlay_track.append(entry)

        width, height = manifest.frame_size
        spec = RenderSpec(
            project_name=manifest.project_name,
            fps=frames.fps,
            total_frames=frames.total_frames,
            width=width,
            height=height,
            scene_track=tuple(scene_track),
            overlay_track=tuple(sorted(overlay_track, key=lambda o: (o.start_frame, o.kind.value))),
            voiceover_track=self._voiceover_track(manifest, sound_plan),
            music_track=self._music_track(manifest, sound_plan),
            sfx_track=tuple(self._sfx_track(sound_plan, frames)) if sound_plan else (),
        )
        validate_render_spec(spec, regions, self._resolver)

        logger.info(
            f"Composed {spec.project_name}: {spec.total_frames} frames at {spec.fps}fps, "
            f"{len(spec.scene_track)} scenes, {len(spec.overlay_track)} overlays, "
            f"{len(spec.sfx_track)} sfx"
        )
        return spec

    @staticmethod
    def _check_readiness(
        manifest: Manifest, states: Mapping[str, SceneGenerationState]
    ) -> Dict[str, str]:
        urls = {}
        for scene in manifest.scenes:
            state = states.get(scene.id)
            if state is None:
                raise SceneNotReadyError(scene.index, scene.id, "no generation state")
            url = state.render_asset_url()
            if url is None:
                status = state.status.value
                if state.status == GateStatus.ESCALATED:
                    status += ", no override asset"
                raise SceneNotReadyError(scene.index, scene.id, status)
            urls[scene.id] = url
        return urls

    def _place_overlay(
        self,
        overlay: BrandOverlaySpec,
        regions: Regions,
        frames: FrameTable,
    ) -> Optional[OverlayTrackEntry]:
        label = overlay.region.label()
        if label not in regions:
            raise CompositionInvariantViolation(f"{overlay.kind.value} overlay targets unknown region {label}")
        region_start, region_end = regions[label]

        start = region_start + frames.to_frames(overlay.reveal_seconds)
        if overlay.duration_seconds is None:
            end = region_end
        else:
            end = region_start + frames.to_frames(overlay.start_seconds + overlay.duration_seconds)
        if end <= start:
            raise CompositionInvariantViolation(
                f"{overlay.kind.value} overlay has no frames in region {label} "
                f"[{region_start}, {region_end}): starts at {start}, ends at {end}"
            )

        asset_url = None
        if overlay.asset_url:
            asset_url = self._resolver.resolve(overlay.asset_url)
            if asset_url is None:
                logger.warning(f"Dropping {overlay.kind.value} overlay: {overlay.asset_url!r} is not public")
                return None

        return OverlayTrackEntry(
            kind=overlay.kind,
            region=label,
            asset_url=asset_url,
            text=overlay.text,
            anchor=overlay.anchor,
            size_percent=overlay.size_percent,
            opacity=overlay.opacity,
            animation_kind=overlay.animation_kind,
            animation_frames=frames.to_frames(overlay.animation_seconds),
            start_frame=start,
            duration_frames=end - start,
        )

    def _voiceover_track(
        self, manifest: Manifest, sound_plan: Optional[SoundPlan]
    ) -> Optional[VoiceoverTrack]:
        raw = manifest.audio.voiceover_url
        if not raw:
            return None
        url = self._resolver.resolve(raw)
        if url is None:
            logger.warning(f"Dropping voiceover track: {raw!r} is not public")
            return None
        ranges = ()
        if sound_plan is not None:
            ranges = tuple((r.start_frame, r.end_frame) for r in sound_plan.voiceover_ranges)
        return VoiceoverTrack(asset_url=url, ranges=ranges)

    def _music_track(self, manifest: Manifest, sound_plan: Optional[SoundPlan]) -> Optional[MusicTrack]:
        raw = manifest.audio.music_url
        if not raw:
            return None
        url = self._resolver.resolve(raw)
        if url is None:
            logger.warning(f"Dropping music track: {raw!r} is not public")
            return None
        if sound_plan is None:
            return MusicTrack(asset_url=url, base_volume=manifest.sound.ducking.base_volume)
        envelope = sound_plan.ducking_envelope
        return MusicTrack(asset_url=url, base_volume=envelope.base_volume, envelope=envelope.keyframes)

    def _sfx_track(self, sound_plan: SoundPlan, frames: FrameTable) -> List[SfxTrackEntry]:
        entries = []
        for cue in sound_plan.all_cues():
            start = frames.to_frames(cue.at_seconds)
            end = frames.to_frames(cue.at_seconds + cue.duration_seconds)
            if end <= start:
                logger.info(f"Skipping {cue.asset_key} cue at {cue.at_seconds:.2f}s: shorter than a frame")
                continue

            raw = get_sound_effect_url(cue.asset_key, self._sound_effects_url)
            url = self._resolver.resolve(raw)
            if url is None:
                logger.warning(f"Dropping {cue.kind.value} cue {cue.asset_key}: {raw!r} is not public")
                continue

            entries.append(SfxTrackEntry(
                kind=cue.kind.value,
                asset_key=cue.asset_key,
                asset_url=url,
                start_frame=start,
                duration_frames=end - start,
                volume=cue.volume,
            ))
        return entries
