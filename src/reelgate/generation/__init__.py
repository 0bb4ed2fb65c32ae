"""Scene generation: quality gates, regeneration planning and review."""

from .planner import ATTEMPT_CLAUSES, DEFECT_RULES, PromptEdit, RegenerationPlanner
from .gate import SceneGenerationGate
from .orchestrator import ProjectGenerator, load_generation_state, save_generation_state
from .review import ReviewQueue, ReviewQueueEntry, build_quality_report

__all__ = [
    "ATTEMPT_CLAUSES",
    "DEFECT_RULES",
    "PromptEdit",
    "RegenerationPlanner",
    "SceneGenerationGate",
    "ProjectGenerator",
    "load_generation_state",
    "save_generation_state",
    "ReviewQueue",
    "ReviewQueueEntry",
    "build_quality_report",
]
