"""Project-level fan-out of scene gates and their join point."""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ..config import config
from ..errors import ProjectCancelled
from ..models import GateStatus, Manifest, SceneGenerationState
from ..services.base import AssetUrlResolver, ContentScorer
from ..services.registry import ProviderRegistry
from .gate import SceneGenerationGate
from .planner import RegenerationPlanner

logger = logging.getLogger(__name__)


class ProjectGenerator:
    """Runs one gate per scene concurrently and joins on all of them.

    All gates share a single admission semaphore bounding concurrent provider
    calls across the project. Scenes never wait on each other otherwise.
    """

    def __init__(
        self,
        manifest: Manifest,
        registry: ProviderRegistry,
        scorer: ContentScorer,
        resolver: AssetUrlResolver,
        max_concurrent: Optional[int] = None,
        previous: Optional[Mapping[str, SceneGenerationState]] = None,
    ) -> None:
        """Initialize the generator.

        Args:
            manifest: Project manifest; its policy applies to every gate.
            registry: Provider adapters and routes.
            scorer: Content scorer shared by all gates.
            resolver: Asset URL resolver shared by all gates.
            max_concurrent: Provider call limit. Defaults to config.max_concurrent.
            previous: Earlier gate results. Approved and escalated scenes are
                kept as they are; all others start over.
        """
        self._manifest = manifest
        self._limiter = asyncio.Semaphore(max_concurrent or config.max_concurrent)
        self._cancelled = False
        planner = RegenerationPlanner(registry, manifest.policy)
        previous = previous or {}

        self._gates: Dict[str, SceneGenerationGate] = {}
        for scene in manifest.scenes:
            state = previous.get(scene.id)
            if state is not None and state.status not in (GateStatus.APPROVED, GateStatus.ESCALATED):
                state = None
            self._gates[scene.id] = SceneGenerationGate(
                scene,
                registry,
                scorer,
                resolver,
                planner=planner,
                policy=manifest.policy,
                aspect_ratio=manifest.aspect_ratio,
                total_scenes=len(manifest.scenes),
                limiter=self._limiter,
                state=state,
            )

    @property
    def gates(self) -> List[SceneGenerationGate]:
        return list(self._gates.values())

    @property
    def states(self) -> Dict[str, SceneGenerationState]:
        return {scene_id: gate.state for scene_id, gate in self._gates.items()}

    async def run(self) -> Dict[str, SceneGenerationState]:
        """Generate every scene and wait until all gates are terminal.

        Returns:
            Gate state per scene id.

        Raises:
            ProjectCancelled: If the project was cancelled while running.
        """
        pending = [gate for gate in self._gates.values() if not gate.state.is_terminal]
        logger.info(
            f"Generating {len(pending)} of {len(self._gates)} scenes for {self._manifest.project_name}"
        )

        results = await asyncio.gather(*(gate.run() for gate in pending), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, asyncio.CancelledError):
                raise result

        states = self.states
        cancelled = [sid for sid, state in states.items() if state.status == GateStatus.CANCELLED]
        if self._cancelled or cancelled:
            raise ProjectCancelled(
                f"{self._manifest.project_name} cancelled with {len(cancelled)} scenes unfinished"
            )

        approved = sum(1 for s in states.values() if s.status == GateStatus.APPROVED)
        logger.info(f"Generation finished: {approved}/{len(states)} scenes approved")
        return states

    def cancel(self, reason: str = "project cancelled") -> None:
        """Propagate cancellation to every gate that is still running."""
        self._cancelled = True
        cancelled = sum(1 for gate in self._gates.values() if gate.cancel(reason))
        logger.info(f"Cancelling {self._manifest.project_name}: {cancelled} gates notified")


def save_generation_state(
    states: Mapping[str, SceneGenerationState],
    output_path: Path,
    project_name: str = "",
) -> None:
    """Save gate results to a JSON file.

    Args:
        states: Gate state per scene id.
        output_path: Path to save the JSON to.
        project_name: Project the states belong to.
    """
    data = {
        "project_name": project_name,
        "generated_at": datetime.now().isoformat(),
        "total_scenes": len(states),
        "approved": sum(1 for s in states.values() if s.status == GateStatus.APPROVED),
        "escalated": sum(1 for s in states.values() if s.status == GateStatus.ESCALATED),
        "scenes": [state.model_dump(mode="json") for state in states.values()],
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2)

    logger.info(f"Saved generation state to {output_path}")


def load_generation_state(path: Path) -> Dict[str, SceneGenerationState]:
    """Load gate results written by ``save_generation_state``.

    Raises:
        FileNotFoundError: If the file doesn't exist.
    """
    if not path.exists():
        raise FileNotFoundError(f"Generation state not found: {path}")

    with open(path, "r") as f:
        data = json.load(f)

    states = [SceneGenerationState(**scene) for scene in data.get("scenes", [])]
    return {state.scene_id: state for state in states}
