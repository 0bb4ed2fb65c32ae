"""Per-scene generation quality gate."""

import asyncio
import logging
from typing import Optional, Tuple

from ..config import config
from ..models import (
    AttemptOutcome,
    DefectTag,
    GateStatus,
    GenerationAttempt,
    GenerationRequest,
    ProviderFailure,
    ProviderResult,
    QualityPolicy,
    Scene,
    SceneGenerationState,
    ScoreBand,
    ScoreResult,
)
from ..services.base import AssetUrlResolver, ContentScorer, SceneContext
from ..services.registry import ProviderRegistry
from .planner import RegenerationPlanner

logger = logging.getLogger(__name__)


class SceneGenerationGate:
    """Drives one scene from "no asset" to Approved, Escalated or Cancelled.

    The gate exclusively owns its SceneGenerationState. Provider failures and
    rejected scores are recovered here by regenerating, up to the policy's
    ``max_attempts``; after that the scene is escalated for a human decision.
    The gate never substitutes a placeholder asset.

    Provider calls hold the shared ``limiter`` for the duration of the call
    only. Scoring and planning run outside it.
    """

    def __init__(
        self,
        scene: Scene,
        registry: ProviderRegistry,
        scorer: ContentScorer,
        resolver: AssetUrlResolver,
        planner: Optional[RegenerationPlanner] = None,
        policy: Optional[QualityPolicy] = None,
        aspect_ratio: str = "16:9",
        total_scenes: int = 1,
        limiter: Optional[asyncio.Semaphore] = None,
        state: Optional[SceneGenerationState] = None,
    ) -> None:
        self._scene = scene
        self._registry = registry
        self._scorer = scorer
        self._resolver = resolver
        self._policy = policy or QualityPolicy()
        self._planner = planner or RegenerationPlanner(registry, self._policy)
        self._aspect_ratio = aspect_ratio
        self._total_scenes = total_scenes
        self._limiter = limiter or asyncio.Semaphore(config.max_concurrent)
        self._state = state or SceneGenerationState(scene_id=scene.id)
        self._cancel_reason: Optional[str] = None

    @property
    def scene(self) -> Scene:
        return self._scene

    @property
    def state(self) -> SceneGenerationState:
        return self._state

    def cancel(self, reason: str = "cancelled") -> bool:
        """Request cancellation.

        An in-flight provider call is allowed to finish; its result is
        discarded and never scored.

        Returns:
            False if the gate had already reached a terminal status.
        """
        if self._state.is_terminal:
            return False
        self._cancel_reason = reason
        logger.info(f"Scene {self._scene.id}: cancellation requested ({reason})")
        if self._state.status == GateStatus.PENDING:
            self._mark_cancelled()
        return True

    async def run(self) -> SceneGenerationState:
        """Run attempts until the scene reaches a terminal status.

        Raises:
            asyncio.CancelledError: If the surrounding task is cancelled. The
                state is Cancelled by then.
        """
        if self._state.is_terminal:
            return self._state

        try:
            request = self._planner.initial_request(self._scene, self._aspect_ratio)
            while not self._state.is_terminal:
                await self._run_attempt(request)
                if self._state.status == GateStatus.REGENERATING:
                    request = self._planner.next_request(self._scene, self._state, self._aspect_ratio)
        except asyncio.CancelledError:
            self._mark_cancelled("task cancelled")
            raise
        return self._state

    async def _run_attempt(self, request: GenerationRequest) -> None:
        dispatched = await self._dispatch(request)
        if dispatched is None:
            self._mark_cancelled()
            return
        attempt, result = dispatched

        if self._cancel_reason is not None:
            logger.info(f"Scene {self._scene.id}: discarding attempt {attempt.attempt_number} result after cancellation")
            attempt.failure_reason = f"discarded: {self._cancel_reason}"
            self._mark_cancelled()
            return

        if isinstance(result, ProviderFailure):
            self._provider_failed(attempt, result.reason)
            return

        if not result.asset_url:
            self._provider_failed(attempt, f"{attempt.provider_id} returned an empty result")
            return
        asset_url = self._resolver.resolve(result.asset_url)
        if asset_url is None:
            self._provider_failed(attempt, f"asset URL not publicly resolvable: {result.asset_url!r}")
            return
        attempt.asset_url = asset_url

        self._set_status(GateStatus.SCORING)
        score = await self._score(asset_url, self._resolver.resolve(result.preview_url))
        if self._cancel_reason is not None:
            attempt.failure_reason = f"discarded: {self._cancel_reason}"
            self._mark_cancelled()
            return

        attempt.score = score.score
        attempt.defects = list(score.defects)
        band = self._policy.classify(score.score)

        if band in (ScoreBand.APPROVE, ScoreBand.APPROVE_WITH_REVIEW):
            attempt.outcome = AttemptOutcome.SUCCEEDED
            self._state.approved_attempt = attempt.attempt_number
            self._state.needs_review = band == ScoreBand.APPROVE_WITH_REVIEW
            self._set_status(GateStatus.APPROVED)
            logger.info(
                f"Scene {self._scene.id}: approved attempt {attempt.attempt_number} "
                f"({score.summary()}){' - needs review' if self._state.needs_review else ''}"
            )
            return

        attempt.outcome = AttemptOutcome.SCORE_REJECTED
        tags = ", ".join(d.value for d in score.defects) or "no defects reported"
        reason = f"low score ({score.score:g}): {tags}"
        attempt.failure_reason = reason
        if self._can_retry(attempt):
            logger.info(f"Scene {self._scene.id}: attempt {attempt.attempt_number} rejected, {reason}")
            self._set_status(GateStatus.REGENERATING)
        else:
            self._escalate(reason)

    async def _dispatch(
        self, request: GenerationRequest
    ) -> Optional[Tuple[GenerationAttempt, ProviderResult]]:
        """Acquire the limiter, record a pending attempt and call the provider."""
        async with self._limiter:
            if self._cancel_reason is not None:
                return None

            attempt = GenerationAttempt(
                attempt_number=len(self._state.attempts) + 1,
                provider_id=request.provider_id,
                request_prompt=request.prompt,
                negative_prompt=request.negative_prompt,
            )
            self._state.attempts.append(attempt)
            self._set_status(GateStatus.GENERATING)
            logger.debug(f"Scene {self._scene.id}: attempt {attempt.attempt_number} on {request.provider_id}")

            return attempt, await self._call_provider(request)

    async def _call_provider(self, request: GenerationRequest) -> ProviderResult:
        try:
            adapter = self._registry.get(request.provider_id)
        except KeyError as e:
            return ProviderFailure(reason=str(e))

        timeout = adapter.timeout_seconds
        call = asyncio.ensure_future(adapter.generate(request))
        try:
            return await asyncio.wait_for(asyncio.shield(call), timeout)
        except asyncio.TimeoutError:
            call.cancel()
            return ProviderFailure(reason=f"{request.provider_id} timed out after {timeout:g}s")
        except asyncio.CancelledError:
            # The provider call still runs to completion; only its result is dropped
            await asyncio.wait([call])
            if not call.cancelled() and call.exception() is not None:
                logger.debug(f"Scene {self._scene.id}: discarded provider error {call.exception()!r}")
            raise
        except Exception as e:
            logger.warning(f"Scene {self._scene.id}: provider {request.provider_id} raised {e!r}")
            return ProviderFailure(reason=f"{type(e).__name__}: {e}")

    async def _score(self, asset_url: str, preview_url: Optional[str]) -> ScoreResult:
        context = SceneContext(
            scene_id=self._scene.id,
            scene_index=self._scene.index,
            scene_type=self._scene.type.value,
            narration=self._scene.narration_text,
            visual_prompt=self._scene.visual_prompt,
            total_scenes=self._total_scenes,
            preview_url=preview_url,
        )
        try:
            return await self._scorer.score(asset_url, context)
        except Exception as e:
            logger.warning(f"Scene {self._scene.id}: scoring failed, treating as hard fail: {e}")
            return ScoreResult(score=0, defects=[DefectTag.ANALYSIS_FAILED])

    def _can_retry(self, attempt: GenerationAttempt) -> bool:
        return attempt.attempt_number < self._policy.max_attempts

    def _provider_failed(self, attempt: GenerationAttempt, reason: str) -> None:
        attempt.outcome = AttemptOutcome.PROVIDER_FAILED
        attempt.failure_reason = reason
        if self._can_retry(attempt):
            logger.info(f"Scene {self._scene.id}: attempt {attempt.attempt_number} failed: {reason}")
            self._set_status(GateStatus.REGENERATING)
        else:
            self._escalate(f"provider exhausted: {reason}")

    def _escalate(self, reason: str) -> None:
        self._state.escalation_reason = reason
        self._set_status(GateStatus.ESCALATED)
        logger.warning(
            f"Scene {self._scene.index} ({self._scene.id}) escalated after "
            f"{len(self._state.attempts)} attempts: {reason}"
        )

    def _mark_cancelled(self, reason: Optional[str] = None) -> None:
        if self._state.is_terminal:
            return
        self._cancel_reason = self._cancel_reason or reason or "cancelled"
        self._set_status(GateStatus.CANCELLED)

    def _set_status(self, status: GateStatus) -> None:
        logger.debug(f"Scene {self._scene.id}: {self._state.status.value} -> {status.value}")
        self._state.status = status
