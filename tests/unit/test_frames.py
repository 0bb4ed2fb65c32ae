"""Unit tests for the shared frame table."""

import pytest

from conftest import make_scene
from reelgate.editor import FrameTable, SoundDesignPlanner, seconds_to_frames
from reelgate.errors import CompositionInvariantViolation


class TestSecondsToFrames:
    """Test the single rounding rule."""

    @pytest.mark.parametrize(
        "seconds, fps, frames",
        [
            (5, 30, 150),
            (2.5, 1, 3),
            (0.5, 1, 1),
            (0.05, 30, 2),
            (0.01, 30, 0),
            (4.983, 30, 149),
        ],
    )
    def test_round_half_up(self, seconds, fps, frames):
        """Test rounding halves up, using decimal arithmetic."""
        assert seconds_to_frames(seconds, fps) == frames


class TestFrameTable:
    """Test scene layout on the frame clock."""

    def test_four_scene_layout(self):
        """Test [5,6,5,5]s at 30fps."""
        scenes = [make_scene(i, d) for i, d in enumerate([5, 6, 5, 5])]

        table = FrameTable.build(scenes, 30)

        assert [slot.start_frame for slot in table.slots] == [0, 150, 330, 480]
        assert table.total_frames == 630

    def test_five_scene_layout(self):
        """Test [5,6,5,5,5]s at 30fps reaches 780 frames."""
        scenes = [make_scene(i, d) for i, d in enumerate([5, 6, 5, 5, 5])]

        table = FrameTable.build(scenes, 30)

        assert [slot.start_frame for slot in table.slots] == [0, 150, 330, 480, 630]
        assert table.total_frames == 780

    def test_rounding_applied_once_per_scene(self):
        """Test that start frames are the running sum of rounded durations."""
        scenes = [make_scene(i, 1.0167) for i in range(3)]

        table = FrameTable.build(scenes, 30)

        assert [slot.duration_frames for slot in table.slots] == [31, 31, 31]
        assert [slot.start_frame for slot in table.slots] == [0, 31, 62]
        assert table.total_frames == 93

    def test_orders_by_index(self):
        """Test that scenes are laid out by index, not input order."""
        scenes = [make_scene(1, 2), make_scene(0, 3)]

        table = FrameTable.build(scenes, 10)

        assert table.first.scene_id == "scene-0"
        assert table.slot("scene-1").start_frame == 30

    def test_sound_plan_shares_table(self):
        """Test that the sound plan is built on the same frame grid."""
        scenes = [make_scene(i, d) for i, d in enumerate([5, 6, 5, 5])]
        table = FrameTable.build(scenes, 30)

        plan = SoundDesignPlanner().plan(table, scenes)

        assert plan.fps == table.fps
        assert plan.total_frames == table.total_frames
        assert [r.start_frame for r in plan.voiceover_ranges] == [s.start_frame for s in table.slots]

    def test_sub_frame_scene_rejected(self):
        """Test that a scene rounding to zero frames is an invariant violation."""
        with pytest.raises(CompositionInvariantViolation):
            FrameTable.build([make_scene(0, 0.01)], 30)

    def test_empty_rejected(self):
        """Test that a timeline needs scenes."""
        with pytest.raises(CompositionInvariantViolation):
            FrameTable.build([], 30)

    def test_unknown_scene(self):
        """Test lookup of an unknown scene id."""
        table = FrameTable.build([make_scene(0)], 30)
        with pytest.raises(KeyError):
            table.slot("missing")
