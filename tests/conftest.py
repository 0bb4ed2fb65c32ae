"""Shared pytest fixtures for reelgate tests."""

import asyncio
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Optional, Sequence, Union

import pytest

from reelgate.models import (
    AttemptOutcome,
    DefectTag,
    GateStatus,
    GenerationAttempt,
    GenerationRequest,
    Manifest,
    MediaKind,
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
    QualityPolicy,
    Scene,
    SceneGenerationState,
    SceneType,
    ScoreResult,
)
from reelgate.services.base import AssetUrlResolver, ContentScorer, ProviderAdapter, SceneContext
from reelgate.services.registry import ProviderRegistry
from reelgate.services.resolver import PublicUrlResolver

ProviderOutcome = Union[ProviderResult, Exception, None]


class FakeProvider(ProviderAdapter):
    """Provider returning scripted results, one per call.

    ``None`` in the script means "hang until released" so tests can hold a
    call in flight. The last scripted result repeats once the script runs out.
    """

    def __init__(
        self,
        provider_id: str,
        results: Sequence[ProviderOutcome] = (),
        media_kinds: frozenset = frozenset({MediaKind.VIDEO}),
        timeout_seconds: float = 5.0,
    ) -> None:
        self._id = provider_id
        self._results = list(results) or [ProviderSuccess(asset_url=f"https://cdn.example.com/{provider_id}.mp4")]
        self._media_kinds = media_kinds
        self.timeout_seconds = timeout_seconds
        self.requests: List[GenerationRequest] = []
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.finished = 0
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def provider_id(self) -> str:
        return self._id

    @property
    def media_kinds(self) -> frozenset:
        return self._media_kinds

    async def generate(self, request: GenerationRequest) -> ProviderResult:
        self.requests.append(request)
        index = min(len(self.requests) - 1, len(self._results) - 1)
        outcome = self._results[index]

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.started.set()
        try:
            if outcome is None:
                await self.release.wait()
                outcome = ProviderSuccess(asset_url=f"https://cdn.example.com/{self._id}-late.mp4")
            else:
                await asyncio.sleep(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1
            self.finished += 1


class FakeScorer(ContentScorer):
    """Scorer returning scripted verdicts in call order (last one repeats)."""

    def __init__(self, results: Sequence[Union[ScoreResult, Exception]] = ()) -> None:
        self._results = list(results) or [ScoreResult(score=90)]
        self.calls: List[str] = []

    async def score(self, asset_url: str, context: SceneContext) -> ScoreResult:
        self.calls.append(asset_url)
        outcome = self._results[min(len(self.calls) - 1, len(self._results) - 1)]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RejectingResolver(AssetUrlResolver):
    """Public resolver that additionally rejects a fixed set of URLs."""

    def __init__(self, rejected: Sequence[str] = ()) -> None:
        self._inner = PublicUrlResolver(public_base_url="https://assets.example.com")
        self._rejected = set(rejected)

    def resolve(self, raw_url: Optional[str]) -> Optional[str]:
        if raw_url in self._rejected:
            return None
        return self._inner.resolve(raw_url)


def score(value: float, *defects: DefectTag) -> ScoreResult:
    return ScoreResult(score=value, defects=list(defects))


def make_scene(index: int, duration: float = 5.0, scene_type: SceneType = SceneType.B_ROLL, **kwargs) -> Scene:
    return Scene(
        id=kwargs.pop("id", f"scene-{index}"),
        index=index,
        type=scene_type,
        narration_text=kwargs.pop("narration_text", f"Narration for scene {index}."),
        duration_seconds=duration,
        visual_prompt=kwargs.pop("visual_prompt", f"A calm shot for scene {index}"),
        **kwargs,
    )


def make_manifest(durations: Sequence[float] = (5, 6, 5, 5), **kwargs) -> Manifest:
    scenes = kwargs.pop("scenes", None) or [make_scene(i, d) for i, d in enumerate(durations)]
    return Manifest(project_name=kwargs.pop("project_name", "Demo"), scenes=scenes, **kwargs)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def resolver() -> RejectingResolver:
    """Resolver accepting public URLs and /relative paths on assets.example.com."""
    return RejectingResolver()


@pytest.fixture
def scene() -> Scene:
    return make_scene(0, 5.0, SceneType.HOOK)


@pytest.fixture
def registry_ab():
    """Registry with two video providers, 'alpha' first on the route."""
    def build(alpha: Sequence[ProviderOutcome] = (), beta: Sequence[ProviderOutcome] = ()):
        providers = (FakeProvider("alpha", alpha), FakeProvider("beta", beta))
        registry = ProviderRegistry(
            providers,
            routes={MediaKind.VIDEO: ["alpha", "beta"]},
            scene_routes={},
        )
        return registry, providers
    return build


def approved_state(scene_id: str, asset_url: Optional[str] = None, value: float = 90) -> SceneGenerationState:
    return SceneGenerationState(
        scene_id=scene_id,
        status=GateStatus.APPROVED,
        approved_attempt=1,
        needs_review=value < QualityPolicy().approve_threshold,
        attempts=[
            GenerationAttempt(
                attempt_number=1,
                provider_id="alpha",
                request_prompt=f"prompt for {scene_id}",
                asset_url=asset_url or f"https://cdn.example.com/{scene_id}.mp4",
                score=value,
                outcome=AttemptOutcome.SUCCEEDED,
            )
        ],
    )


def escalated_state(scene_id: str, scores: Sequence[float] = (60, 55, 40)) -> SceneGenerationState:
    attempts = [
        GenerationAttempt(
            attempt_number=n,
            provider_id="alpha",
            request_prompt=f"prompt for {scene_id}",
            asset_url=f"https://cdn.example.com/{scene_id}-{n}.mp4",
            score=value,
            defects=[DefectTag.ON_IMAGE_TEXT],
            outcome=AttemptOutcome.SCORE_REJECTED,
        )
        for n, value in enumerate(scores, start=1)
    ]
    return SceneGenerationState(
        scene_id=scene_id,
        status=GateStatus.ESCALATED,
        attempts=attempts,
        escalation_reason=f"low score ({scores[-1]:g}): on-image-text",
    )


def approved_states(manifest: Manifest) -> Dict[str, SceneGenerationState]:
    return {scene.id: approved_state(scene.id) for scene in manifest.scenes}
