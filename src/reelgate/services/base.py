"""Capability interfaces for external collaborators."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..models import (
    GenerationRequest,
    MediaKind,
    ProviderResult,
    RenderSpec,
    ScoreResult,
)


class ProviderAdapter(ABC):
    """Uniform async ``generate`` capability for one generative backend.

    Adapters report API errors as ``ProviderFailure`` results. Calls must be
    safe to retry: a retry is a brand-new call, never a resume.
    """

    #: Per-call timeout applied by the gate, in seconds.
    timeout_seconds: float = 300.0

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Return the provider's stable identifier."""
        ...

    @property
    @abstractmethod
    def media_kinds(self) -> frozenset[MediaKind]:
        """Return the media kinds this provider can produce."""
        ...

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> ProviderResult:
        """Generate one asset for the request."""
        ...


@dataclass(frozen=True)
class SceneContext:
    """What a content scorer knows about the scene an asset was made for."""

    scene_id: str
    scene_index: int
    scene_type: str
    narration: str
    visual_prompt: str
    total_scenes: int
    preview_url: Optional[str] = None


class ContentScorer(ABC):
    """Scores a generated visual asset against its scene."""

    @abstractmethod
    async def score(self, asset_url: str, context: SceneContext) -> ScoreResult:
        """Return a 0-100 score and defect tags from the shared vocabulary."""
        ...


class AssetUrlResolver(ABC):
    """Maps raw asset references to publicly fetchable URLs."""

    @abstractmethod
    def resolve(self, raw_url: Optional[str]) -> Optional[str]:
        """Return a public URL, or None when the asset cannot be exposed."""
        ...

    def is_public(self, url: Optional[str]) -> bool:
        """Return True if ``url`` already is a public URL."""
        return url is not None and self.resolve(url) == url


class RenderBackend(ABC):
    """Turns a RenderSpec into an encoded video."""

    @abstractmethod
    def render(self, spec: RenderSpec, output_path: Path) -> Path:
        """Render the timeline to ``output_path`` and return it."""
        ...
