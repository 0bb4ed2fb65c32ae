"""Unit tests for BrandInjectionPlanner."""

import pytest

from conftest import RejectingResolver, make_scene
from reelgate.editor import BrandInjectionPlanner, FrameTable
from reelgate.models import (
    BrandConfig,
    CallToAction,
    LogoSet,
    OverlayKind,
    RegionKind,
    SceneType,
)

LOGO = "https://cdn.example.com/brand/logo.png"


def brand(**kwargs) -> BrandConfig:
    kwargs.setdefault("logos", LogoSet(main=LOGO))
    kwargs.setdefault("call_to_action", CallToAction(headline="Try it today", url="example.com"))
    return BrandConfig(**kwargs)


def scenes(*durations, types=None):
    types = types or {}
    return [make_scene(i, d, types.get(i, SceneType.B_ROLL)) for i, d in enumerate(durations)]


class TestBrandInjectionPlanner:
    """Test overlay selection and timing."""

    def test_full_plan(self, resolver):
        """Test intro, watermark and outro on a regular script."""
        plan = BrandInjectionPlanner(resolver).plan(brand(), scenes(5, 6, 5, 5))

        assert plan.intro.asset_url == LOGO
        assert plan.intro.region.kind == RegionKind.INTRO
        assert plan.intro_seconds == pytest.approx(2.5)
        assert plan.intro.reveal_seconds == pytest.approx(0.3)
        assert plan.watermark.region.kind == RegionKind.BODY
        assert plan.watermark.anchor.name == "bottom-right"
        assert [o.kind for o in plan.outro] == [OverlayKind.OUTRO_LOGO, OverlayKind.CTA]
        assert plan.outro[1].text == "Try it today\nexample.com"
        assert plan.outro_offset_seconds == pytest.approx(1.0)
        assert plan.per_scene == {}
        assert plan.dropped == []

    def test_no_brand(self, resolver):
        """Test that no brand config means no overlays."""
        plan = BrandInjectionPlanner(resolver).plan(None, scenes(5, 5))

        assert plan.all_overlays() == []
        assert plan.outro_offset_seconds is None

    def test_unresolvable_watermark_dropped(self, resolver):
        """Test that an unresolvable watermark is dropped, never substituted."""
        config = brand(logos=LogoSet(main=LOGO, watermark="http://localhost:8080/wm.png"))

        plan = BrandInjectionPlanner(resolver).plan(config, scenes(5, 6, 5, 5))

        assert plan.watermark is None
        assert plan.intro is not None
        assert len(plan.dropped) == 1
        assert plan.dropped[0].startswith("watermark dropped")

    def test_relative_logo_resolved(self, resolver):
        """Test that a root-relative logo path is made public."""
        plan = BrandInjectionPlanner(resolver).plan(brand(logos=LogoSet(main="/objects/logo.png")), scenes(5, 5))

        assert plan.intro.asset_url == "https://assets.example.com/objects/logo.png"

    def test_intro_window_limited_by_first_scene(self, resolver):
        """Test that the intro fits inside a short first scene."""
        plan = BrandInjectionPlanner(resolver).plan(brand(), scenes(2.0, 5))

        assert plan.intro_seconds == pytest.approx(2.0)
        assert plan.intro.reveal_seconds == pytest.approx(0.3)

    def test_intro_skipped_below_minimum_window(self, resolver):
        """Test that a first scene shorter than the minimum window gets no intro."""
        plan = BrandInjectionPlanner(resolver).plan(brand(), scenes(1.0, 5))

        assert plan.intro is None
        assert plan.intro_seconds == 0
        assert plan.watermark is not None

    def test_outro_needs_call_to_action(self, resolver):
        """Test that the outro is skipped without a CTA headline."""
        plan = BrandInjectionPlanner(resolver).plan(brand(call_to_action=None), scenes(5, 5))

        assert plan.outro == []
        assert plan.outro_offset_seconds is None

    def test_outro_takes_whole_short_final_scene(self, resolver):
        """Test that a final scene shorter than the outro is used entirely."""
        plan = BrandInjectionPlanner(resolver).plan(brand(), scenes(5, 3))

        assert plan.outro_offset_seconds == 0

    def test_single_scene_outro_after_intro(self, resolver):
        """Test that intro and outro do not overlap in a single-scene video."""
        plan = BrandInjectionPlanner(resolver).plan(brand(outro_seconds=4.0), scenes(5))

        assert plan.outro_offset_seconds == pytest.approx(2.5)

    def test_single_scene_without_room_drops_outro(self, resolver):
        """Test that the outro is dropped when the intro covers the only scene."""
        plan = BrandInjectionPlanner(resolver).plan(brand(intro_seconds=3.0), scenes(2.0))

        assert plan.outro == []
        assert any(reason.startswith("outro dropped") for reason in plan.dropped)

    def test_watermark_skipped_when_body_rounds_away(self, resolver):
        """Test that a body region of zero frames gets no watermark."""
        script = scenes(2.51, 4.0)

        plan = BrandInjectionPlanner(resolver).plan(brand(), script, FrameTable.build(script, 30))

        assert plan.intro is not None
        assert plan.outro_offset_seconds == 0
        assert plan.watermark is None

    def test_cta_delay_needs_a_frame_of_room(self, resolver):
        """Test that the CTA starts with the outro when the delay would reach its end."""
        script = scenes(5, 0.81)

        plan = BrandInjectionPlanner(resolver).plan(brand(), script, FrameTable.build(script, 30))

        assert plan.outro[1].kind == OverlayKind.CTA
        assert plan.outro[1].start_seconds == 0

    def test_single_scene_outro_room_counted_in_frames(self, resolver):
        """Test that an outro left with a fraction of a frame is dropped."""
        plan = BrandInjectionPlanner(resolver).plan(brand(), scenes(2.51))

        assert plan.intro_seconds == pytest.approx(2.5)
        assert plan.outro == []
        assert any(reason.startswith("outro dropped") for reason in plan.dropped)

    def test_low_frame_rate(self, resolver):
        """Test that delays shorter than a frame's worth of room fall back to zero."""
        script = scenes(5, 1.4, types={1: SceneType.PRODUCT})

        plan = BrandInjectionPlanner(resolver).plan(brand(), script, FrameTable.build(script, 1))

        assert plan.outro[1].start_seconds == 0
        assert plan.per_scene["scene-1"][0].start_seconds == 0

    def test_scene_logo_on_product_scenes(self, resolver):
        """Test the per-scene logo on product scenes."""
        plan = BrandInjectionPlanner(resolver).plan(
            brand(), scenes(5, 6, 5, types={1: SceneType.PRODUCT})
        )

        assert list(plan.per_scene) == ["scene-1"]
        logo = plan.per_scene["scene-1"][0]
        assert logo.kind == OverlayKind.SCENE_LOGO
        assert logo.region.label() == "scene:scene-1"

    def test_deterministic(self):
        """Test that the same inputs give the same plan."""
        planner = BrandInjectionPlanner(RejectingResolver())
        first = planner.plan(brand(), scenes(5, 6, 5, 5))
        second = planner.plan(brand(), scenes(5, 6, 5, 5))

        assert first == second
