"""Brand overlay planning: intro logo, watermark, outro CTA and scene logos."""

import logging
from typing import List, Optional, Sequence

from ..models import (
    AnimationKind,
    BrandConfig,
    BrandOverlaySpec,
    BrandPlan,
    OverlayKind,
    OverlayRegion,
    RegionKind,
    Scene,
)
from ..models.brand import get_anchor
from ..services.base import AssetUrlResolver
from .compositor import region_bounds
from .frames import FrameTable

logger = logging.getLogger(__name__)

INTRO_REVEAL_DELAY = 0.3
CTA_DELAY = 0.8
SCENE_LOGO_DELAY = 0.5

# Frame rate assumed when no frame table is supplied
DEFAULT_FPS = 30



class BrandInjectionPlanner:
    """Decides which brand overlays apply and how they are timed.

    Planning is deterministic for a given config, scene list and resolver.
    Every asset passes through the resolver; an overlay whose asset cannot be
    made public is dropped (never replaced by a placeholder) and the reason is
    logged and kept on the plan.

    Room checks are made in frames on the same frame table the composer uses,
    so an overlay that is emitted always has at least one frame in its region.
    """

    def __init__(self, resolver: AssetUrlResolver) -> None:
        self._resolver = resolver

    def plan(
        self,
        brand: Optional[BrandConfig],
        scenes: Sequence[Scene],
        frames: Optional[FrameTable] = None,
    ) -> BrandPlan:
        """Build the brand plan for a script.

        Args:
            brand: Project brand settings. None disables branding.
            scenes: The script's scenes.
            frames: The timeline's frame table. Built at ``DEFAULT_FPS`` when
                omitted.

        Returns:
            BrandPlan with overlays and the intro/outro region geometry.
        """
        if brand is None or not scenes:
            return BrandPlan()

        ordered = sorted(scenes, key=lambda s: s.index)
        if frames is None:
            frames = FrameTable.build(ordered, DEFAULT_FPS)
        plan = BrandPlan()

        self._plan_intro(brand, ordered, frames, plan)
        self._plan_outro(brand, ordered, frames, plan)
        self._plan_watermark(brand, frames, plan)
        self._plan_scene_logos(brand, ordered, frames, plan)

        logger.info(
            f"Brand plan: intro={'yes' if plan.intro else 'no'}, "
            f"watermark={'yes' if plan.watermark else 'no'}, "
            f"outro={len(plan.outro)} overlays, "
            f"scene logos={sum(len(v) for v in plan.per_scene.values())}, "
            f"dropped={len(plan.dropped)}"
        )
        return plan

    def _resolve(self, raw_url: Optional[str], what: str, plan: BrandPlan) -> Optional[str]:
        if not raw_url:
            logger.debug(f"No {what} asset configured")
            return None
        url = self._resolver.resolve(raw_url)
        if url is None:
            reason = f"{what} dropped: asset {raw_url!r} is not publicly resolvable"
            logger.warning(reason)
            plan.dropped.append(reason)
        return url

    def _plan_intro(self, brand: BrandConfig, scenes: List[Scene], frames: FrameTable, plan: BrandPlan) -> None:
        if not brand.intro_enabled:
            return

        first = scenes[0]
        window = min(brand.intro_seconds, first.duration_seconds)
        window_frames = frames.to_frames(window)
        if window < brand.intro_min_window_seconds or window_frames == 0:
            logger.info(
                f"Intro skipped: {window:.2f}s available in scene {first.id}, "
                f"needs {brand.intro_min_window_seconds:.2f}s"
            )
            return

        url = self._resolve(brand.logos.for_role("intro"), "intro logo", plan)
        if url is None:
            return

        animation = brand.intro_min_window_seconds
        delay = 0.0
        if INTRO_REVEAL_DELAY + animation <= window and frames.to_frames(INTRO_REVEAL_DELAY) < window_frames:
            delay = INTRO_REVEAL_DELAY
        plan.intro = BrandOverlaySpec(
            kind=OverlayKind.INTRO,
            region=OverlayRegion(kind=RegionKind.INTRO),
            asset_url=url,
            anchor=get_anchor("center"),
            size_percent=30,
            opacity=1.0,
            animation_kind=brand.intro_animation,
            animation_seconds=animation,
            animation_delay_seconds=delay,
            start_seconds=0.0,
            duration_seconds=None,
        )
        plan.intro_seconds = window

    def _plan_outro(self, brand: BrandConfig, scenes: List[Scene], frames: FrameTable, plan: BrandPlan) -> None:
        if not brand.outro_enabled:
            return
        cta = brand.call_to_action
        if cta is None or not cta.headline.strip():
            logger.debug("Outro skipped: no call to action configured")
            return

        last = scenes[-1]
        offset = max(0.0, last.duration_seconds - brand.outro_seconds)
        if len(scenes) == 1:
            # The intro region owns the start of a single-scene video
            offset = max(offset, plan.intro_seconds)
        outro_frames = frames.last.duration_frames - frames.to_frames(offset)
        if outro_frames <= 0:
            reason = f"outro dropped: no room left in final scene {last.id}"
            logger.warning(reason)
            plan.dropped.append(reason)
            return

        url = self._resolve(brand.logos.for_role("outro"), "outro logo", plan)
        if url is None:
            return

        cta_delay = CTA_DELAY if frames.to_frames(CTA_DELAY) < outro_frames else 0.0
        if not cta_delay:
            logger.debug(f"Outro of {outro_frames} frames is too short for the CTA delay")

        region = OverlayRegion(kind=RegionKind.OUTRO)
        plan.outro = [
            BrandOverlaySpec(
                kind=OverlayKind.OUTRO_LOGO,
                region=region,
                asset_url=url,
                anchor=get_anchor("outro-logo"),
                size_percent=25,
                opacity=1.0,
                animation_kind=AnimationKind.FADE,
                animation_seconds=0.8,
                start_seconds=0.0,
                duration_seconds=None,
            ),
            BrandOverlaySpec(
                kind=OverlayKind.CTA,
                region=region,
                text=cta.render_text(),
                anchor=get_anchor("outro-cta"),
                size_percent=60,
                opacity=1.0,
                animation_kind=AnimationKind.FADE,
                animation_seconds=0.6,
                start_seconds=cta_delay,
                duration_seconds=None,
            ),
        ]
        plan.outro_offset_seconds = offset

    def _plan_watermark(self, brand: BrandConfig, frames: FrameTable, plan: BrandPlan) -> None:
        if not brand.watermark_enabled:
            return

        # Intro and outro are already placed, so this is the body the composer will see
        body_start, body_end = region_bounds(frames, plan)[RegionKind.BODY.value]
        if body_end <= body_start:
            logger.info(f"Watermark skipped: intro and outro cover the whole video (body [{body_start}, {body_end}))")
            return

        url = self._resolve(brand.logos.for_role("watermark"), "watermark", plan)
        if url is None:
            return

        plan.watermark = BrandOverlaySpec(
            kind=OverlayKind.WATERMARK,
            region=OverlayRegion(kind=RegionKind.BODY),
            asset_url=url,
            anchor=get_anchor(brand.watermark_position),
            size_percent=brand.watermark_size_percent,
            opacity=brand.watermark_opacity,
            animation_kind=AnimationKind.FADE,
            animation_seconds=0.5,
            start_seconds=0.0,
            duration_seconds=None,
        )

    def _plan_scene_logos(self, brand: BrandConfig, scenes: List[Scene], frames: FrameTable, plan: BrandPlan) -> None:
        wanted = [s for s in scenes if s.type in brand.scene_logo_types]
        if not wanted:
            return

        url = self._resolve(brand.logos.main, "scene logo", plan)
        if url is None:
            return

        delay_frames = frames.to_frames(SCENE_LOGO_DELAY)
        for scene in wanted:
            room = frames.slot(scene.id).duration_frames
            plan.per_scene[scene.id] = [
                BrandOverlaySpec(
                    kind=OverlayKind.SCENE_LOGO,
                    region=OverlayRegion(kind=RegionKind.SCENE, scene_id=scene.id),
                    asset_url=url,
                    anchor=get_anchor("scene-logo"),
                    size_percent=10,
                    opacity=0.9,
                    animation_kind=AnimationKind.FADE,
                    animation_seconds=0.5,
                    start_seconds=SCENE_LOGO_DELAY if scene.duration_seconds > 1.0 and delay_frames < room else 0.0,
                    duration_seconds=None,
                )
            ]
