"""Exception types for generation and composition."""

from typing import Optional


class ReelgateError(Exception):
    """Base class for all reelgate errors."""


class ProviderError(ReelgateError):
    """A provider call failed (timeout, HTTP error, empty result).

    Transient: the gate records it as a failed attempt and retries.
    """


class EscalationRequired(ReelgateError):
    """A scene exhausted its attempts and needs a human decision."""

    def __init__(self, scene_id: str, reason: str) -> None:
        super().__init__(f"scene {scene_id} escalated: {reason}")
        self.scene_id = scene_id
        self.reason = reason


class AssetResolutionFailure(ReelgateError):
    """An asset URL could not be resolved to a publicly fetchable address."""

    def __init__(self, raw_url: Optional[str], purpose: str) -> None:
        super().__init__(f"{purpose} asset not publicly resolvable: {raw_url!r}")
        self.raw_url = raw_url
        self.purpose = purpose


class CompositionInvariantViolation(ReelgateError):
    """The timeline being built breaks a structural invariant.

    Always fatal. The composer never corrects its input.
    """


class SceneNotReadyError(ReelgateError):
    """Composition was requested before a scene had a usable asset."""

    def __init__(self, scene_index: int, scene_id: str, status: str) -> None:
        super().__init__(f"scene {scene_index} not ready ({scene_id}): {status}")
        self.scene_index = scene_index
        self.scene_id = scene_id
        self.status = status


class ProjectCancelled(ReelgateError):
    """The project was cancelled while scenes were still generating."""
