"""Human review queue for escalated scenes and the project quality report."""

import logging
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel

from ..errors import AssetResolutionFailure, EscalationRequired
from ..models import (
    GateStatus,
    Manifest,
    ProjectQualityReport,
    ProjectState,
    SceneGenerationState,
    SceneQualityStatus,
)
from ..services.base import AssetUrlResolver

logger = logging.getLogger(__name__)


class ReviewQueueEntry(BaseModel):
    """An escalated scene waiting for a human decision."""

    scene_id: str
    scene_index: int
    reason: str
    attempts: int
    best_score: Optional[float] = None
    best_asset_url: Optional[str] = None
    override_asset_url: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.override_asset_url is not None


class ReviewQueue:
    """Escalated scenes in script order.

    The queue reads gate states and only writes the human override field of
    escalated ones.
    """

    def __init__(self, manifest: Manifest, states: Mapping[str, SceneGenerationState]) -> None:
        self._manifest = manifest
        self._states = states

    @property
    def entries(self) -> List[ReviewQueueEntry]:
        entries = []
        for scene in self._manifest.scenes:
            state = self._states.get(scene.id)
            if state is None or state.status != GateStatus.ESCALATED:
                continue
            best = state.best_attempt()
            entries.append(ReviewQueueEntry(
                scene_id=scene.id,
                scene_index=scene.index,
                reason=state.escalation_reason or "escalated",
                attempts=len(state.attempts),
                best_score=best.score if best else None,
                best_asset_url=best.asset_url if best else None,
                override_asset_url=state.override_asset_url,
            ))
        return entries

    def pending(self) -> List[ReviewQueueEntry]:
        """Entries without a human override yet."""
        return [entry for entry in self.entries if not entry.resolved]

    def __len__(self) -> int:
        return len(self.pending())

    def approve(
        self,
        scene_id: str,
        resolver: AssetUrlResolver,
        asset_url: Optional[str] = None,
    ) -> str:
        """Record a human override for an escalated scene.

        Args:
            scene_id: Escalated scene to unblock.
            resolver: Resolver the override must pass.
            asset_url: Asset to use. Defaults to the scene's best-scoring attempt.

        Returns:
            The public URL that was recorded.

        Raises:
            KeyError: If the scene is unknown.
            ValueError: If the scene is not escalated or has no asset to use.
            AssetResolutionFailure: If the asset is not publicly resolvable.
        """
        if scene_id not in self._states:
            raise KeyError(f"Unknown scene: {scene_id}")
        state = self._states[scene_id]

        if asset_url is None:
            best = state.best_attempt()
            if best is None:
                raise ValueError(f"scene {scene_id} has no generated asset; pass an asset URL")
            asset_url = best.asset_url

        url = resolver.resolve(asset_url)
        if url is None:
            raise AssetResolutionFailure(asset_url, f"override for scene {scene_id}")

        state.apply_override(url)
        logger.info(f"Scene {scene_id}: human override recorded ({url})")
        return url

    def require_empty(self) -> None:
        """Raise for the first escalated scene still awaiting a decision.

        Raises:
            EscalationRequired: If any escalated scene has no override.
        """
        pending = self.pending()
        if pending:
            first = pending[0]
            raise EscalationRequired(first.scene_id, first.reason)


def _project_state(states: List[Optional[SceneGenerationState]]) -> ProjectState:
    if any(s is not None and s.status == GateStatus.CANCELLED for s in states):
        return ProjectState.CANCELLED
    if all(s is None or (s.status == GateStatus.PENDING and not s.attempts) for s in states):
        return ProjectState.INIT
    if any(s is None or not s.is_terminal for s in states):
        return ProjectState.GENERATING
    if any(s.status == GateStatus.ESCALATED and s.override_asset_url is None for s in states):
        return ProjectState.NEEDS_REVIEW
    return ProjectState.READY


def build_quality_report(
    manifest: Manifest,
    states: Mapping[str, SceneGenerationState],
) -> ProjectQualityReport:
    """Summarize every gate and decide whether composition may run."""
    ordered = [states.get(scene.id) for scene in manifest.scenes]
    rows: List[SceneQualityStatus] = []
    counts: Dict[str, int] = {"approved": 0, "review": 0, "escalated": 0, "cancelled": 0, "pending": 0}
    scores: List[float] = []

    for scene, state in zip(manifest.scenes, ordered):
        if state is None:
            rows.append(SceneQualityStatus(scene_id=scene.id, status=GateStatus.PENDING.value))
            counts["pending"] += 1
            continue

        approved = state.get_approved_attempt()
        best = approved or state.best_attempt()
        if best is not None and best.score is not None:
            scores.append(best.score)

        if state.status == GateStatus.APPROVED:
            counts["approved"] += 1
            counts["review"] += int(state.needs_review)
        elif state.status == GateStatus.ESCALATED:
            counts["escalated"] += 1
        elif state.status == GateStatus.CANCELLED:
            counts["cancelled"] += 1
        else:
            counts["pending"] += 1

        rows.append(SceneQualityStatus(
            scene_id=scene.id,
            status=state.status.value,
            score=best.score if best else None,
            attempts=len(state.attempts),
            needs_review=state.needs_review,
            overridden=state.override_asset_url is not None,
        ))

    blocking: List[str] = []
    unresolved = sum(
        1 for s in ordered
        if s is not None and s.status == GateStatus.ESCALATED and s.override_asset_url is None
    )
    if unresolved:
        blocking.append(f"{unresolved} scene{'s need' if unresolved != 1 else ' needs'} review")
    if counts["pending"]:
        blocking.append(f"{counts['pending']} scene{'s' if counts['pending'] != 1 else ''} still generating")
    if counts["cancelled"]:
        blocking.append(f"{counts['cancelled']} scene{'s' if counts['cancelled'] != 1 else ''} cancelled")

    return ProjectQualityReport(
        project_name=manifest.project_name,
        state=_project_state(ordered),
        scenes=rows,
        approved_count=counts["approved"],
        needs_review_count=counts["review"],
        escalated_count=counts["escalated"],
        cancelled_count=counts["cancelled"],
        pending_count=counts["pending"],
        average_score=round(sum(scores) / len(scores), 1) if scores else 0.0,
        can_compose=not blocking,
        blocking_reasons=blocking,
    )
