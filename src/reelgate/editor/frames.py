"""Frame clock shared by every track of a timeline."""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Tuple

from ..errors import CompositionInvariantViolation
from ..models import Scene


def seconds_to_frames(seconds: float, fps: int) -> int:
    """Convert seconds to frames, rounding half up.

    ``Decimal(str(...))`` keeps values such as 2.5 exact, so 2.5s at 1fps is
    3 frames rather than whatever binary floating point would give.
    """
    frames = (Decimal(str(seconds)) * fps).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(frames)


@dataclass(frozen=True)
class SceneSlot:
    """A scene's position on the frame clock."""

    scene_id: str
    index: int
    start_frame: int
    duration_frames: int

    @property
    def end_frame(self) -> int:
        return self.start_frame + self.duration_frames


class FrameTable:
    """Scene frame positions, computed once and shared by video and audio.

    Every scene's duration is rounded exactly once and start frames are the
    running sum of those rounded durations, so per-scene rounding never
    accumulates into drift between tracks.
    """

    def __init__(self, fps: int, slots: Tuple[SceneSlot, ...]) -> None:
        self._fps = fps
        self._slots = slots
        self._by_id: Dict[str, SceneSlot] = {slot.scene_id: slot for slot in slots}

    @classmethod
    def build(cls, scenes: Iterable[Scene], fps: int) -> "FrameTable":
        """Lay scenes end to end in index order.

        Raises:
            CompositionInvariantViolation: If a scene rounds to zero frames or
                there are no scenes.
        """
        if fps <= 0:
            raise CompositionInvariantViolation(f"fps must be positive, got {fps}")

        slots = []
        cursor = 0
        for scene in sorted(scenes, key=lambda s: s.index):
            duration_frames = seconds_to_frames(scene.duration_seconds, fps)
            if duration_frames <= 0:
                raise CompositionInvariantViolation(
                    f"scene {scene.index} ({scene.id}) is shorter than one frame at {fps}fps"
                )
            slots.append(SceneSlot(scene.id, scene.index, cursor, duration_frames))
            cursor += duration_frames

        if not slots:
            raise CompositionInvariantViolation("a timeline needs at least one scene")
        return cls(fps, tuple(slots))

    @property
    def fps(self) -> int:
        return self._fps

    @property
    def slots(self) -> Tuple[SceneSlot, ...]:
        return self._slots

    @property
    def total_frames(self) -> int:
        return self._slots[-1].end_frame

    @property
    def first(self) -> SceneSlot:
        return self._slots[0]

    @property
    def last(self) -> SceneSlot:
        return self._slots[-1]

    def slot(self, scene_id: str) -> SceneSlot:
        if scene_id not in self._by_id:
            raise KeyError(f"Unknown scene: {scene_id}")
        return self._by_id[scene_id]

    def to_frames(self, seconds: float) -> int:
        """Convert a duration or offset with the table's rounding rule."""
        return seconds_to_frames(seconds, self._fps)

    def to_seconds(self, frame: int) -> float:
        return frame / self._fps

    def start_seconds(self, scene_id: str) -> float:
        """Scene start as seconds, derived from its frame position."""
        return self.to_seconds(self.slot(scene_id).start_frame)
