"""Regeneration planning: how the next attempt's request differs from the last."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..models import (
    AttemptOutcome,
    DefectTag,
    GenerationAttempt,
    GenerationRequest,
    QualityPolicy,
    Scene,
    SceneGenerationState,
    ScoreBand,
)
from ..services.registry import ProviderRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromptEdit:
    """Corrective clauses appended to the prompt and/or negative prompt."""

    prompt_clause: Optional[str] = None
    negative_clause: Optional[str] = None


# Defect-driven edits; adding a defect means adding a row
DEFECT_RULES: Dict[DefectTag, PromptEdit] = {
    DefectTag.ON_IMAGE_TEXT: PromptEdit(
        prompt_clause="purely visual content",
        negative_clause="no text, no captions, no logos",
    ),
    DefectTag.BLANK_FRAME: PromptEdit(
        prompt_clause="clearly visible main subject, fully lit scene",
        negative_clause="no blank frames, no black screen",
    ),
    DefectTag.MISMATCHED_CONTENT: PromptEdit(
        prompt_clause="focus on the main subject clearly visible",
    ),
    DefectTag.BRAND_NONCOMPLIANT_COLOR: PromptEdit(
        prompt_clause="earth tones, warm natural palette",
        negative_clause="no cold blue or gray tones",
    ),
    DefectTag.AI_ARTIFACTS: PromptEdit(
        prompt_clause="photorealistic, clean image",
        negative_clause="no UI elements, no garbled details",
    ),
    DefectTag.LOW_RESOLUTION: PromptEdit(
        prompt_clause="high resolution, sharp focus, professional quality",
        negative_clause="no blur",
    ),
    DefectTag.POOR_COMPOSITION: PromptEdit(
        prompt_clause="balanced composition, clear subject, uncluttered background",
    ),
    DefectTag.DISTORTED_ANATOMY: PromptEdit(
        prompt_clause="natural proportions",
        negative_clause="no distorted hands, no extra limbs, no warped faces",
    ),
    DefectTag.WRONG_LIGHTING: PromptEdit(
        prompt_clause="warm golden natural lighting, soft shadows",
        negative_clause="no cold clinical lighting",
    ),
}

# Clauses added as attempts accumulate, keyed by the first attempt they apply to
ATTEMPT_CLAUSES: Dict[int, str] = {
    2: "simple composition, single clear subject",
    3: "minimalist, clean, professional photography style",
}


def _join(base: str, clauses: List[str]) -> str:
    parts = [base.strip()] if base.strip() else []
    parts.extend(clauses)
    return ", ".join(parts)


def _add(clauses: List[str], clause: Optional[str]) -> None:
    if clause and clause not in clauses:
        clauses.append(clause)


class RegenerationPlanner:
    """Builds generation requests for a scene's attempts.

    The planner only edits requests. It never contacts a provider and never
    mutates the gate's state.
    """

    def __init__(self, registry: ProviderRegistry, policy: Optional[QualityPolicy] = None) -> None:
        self._registry = registry
        self._policy = policy or QualityPolicy()

    def initial_request(self, scene: Scene, aspect_ratio: str = "16:9") -> GenerationRequest:
        """Request for attempt 1: the scene's own prompt on its first routed provider.

        Raises:
            LookupError: If no provider can produce the scene's media kind.
        """
        return GenerationRequest(
            provider_id=self._registry.initial_provider(scene.media_kind, scene.type),
            prompt=scene.visual_prompt,
            duration_seconds=scene.duration_seconds,
            aspect_ratio=aspect_ratio,
            media_kind=scene.media_kind,
        )

    def next_request(
        self,
        scene: Scene,
        state: SceneGenerationState,
        aspect_ratio: str = "16:9",
    ) -> GenerationRequest:
        """Request for the attempt after the last one in ``state``.

        Corrective clauses come from every defect seen so far, so a fix is
        kept even when a later attempt reports different defects.
        """
        if not state.attempts:
            return self.initial_request(scene, aspect_ratio)

        previous = state.attempts[-1]
        attempt_number = previous.attempt_number + 1

        prompt_clauses: List[str] = []
        negative_clauses: List[str] = []
        for attempt in state.attempts:
            for defect in attempt.defects:
                edit = DEFECT_RULES.get(defect)
                if edit is not None:
                    _add(prompt_clauses, edit.prompt_clause)
                    _add(negative_clauses, edit.negative_clause)
        for first_attempt, clause in sorted(ATTEMPT_CLAUSES.items()):
            if attempt_number >= first_attempt:
                _add(prompt_clauses, clause)

        provider_id = previous.provider_id
        reason = self._switch_reason(previous, state.attempts)
        if reason:
            provider_id = self._next_provider(scene, previous.provider_id, state.attempts)
            if provider_id != previous.provider_id:
                logger.info(
                    f"Scene {scene.id}: switching {previous.provider_id} -> {provider_id} "
                    f"for attempt {attempt_number} ({reason})"
                )

        return GenerationRequest(
            provider_id=provider_id,
            prompt=_join(scene.visual_prompt, prompt_clauses),
            negative_prompt=_join("", negative_clauses),
            duration_seconds=scene.duration_seconds,
            aspect_ratio=aspect_ratio,
            media_kind=scene.media_kind,
        )

    def _switch_reason(self, previous: GenerationAttempt, attempts: List[GenerationAttempt]) -> Optional[str]:
        if previous.outcome == AttemptOutcome.PROVIDER_FAILED:
            return "provider failure"
        if previous.score is not None and self._policy.classify(previous.score) == ScoreBand.HARD_FAIL:
            return "hard fail"
        for earlier in attempts[:-1]:
            if earlier.provider_id != previous.provider_id:
                continue
            repeated = set(earlier.defects) & set(previous.defects)
            if repeated:
                return f"repeated {', '.join(sorted(d.value for d in repeated))}"
        return None

    def _next_provider(self, scene: Scene, current: str, attempts: List[GenerationAttempt]) -> str:
        route = self._registry.route(scene.media_kind, scene.type)
        if current in route:
            start = route.index(current) + 1
            rotation = route[start:] + route[:start]
        else:
            rotation = list(route)
        alternates = [pid for pid in rotation if pid != current]
        if not alternates:
            logger.debug(f"Scene {scene.id}: no alternate provider for {scene.media_kind.value}")
            return current

        tried = {a.provider_id for a in attempts}
        untried = [pid for pid in alternates if pid not in tried]
        return (untried or alternates)[0]
