"""External service integrations."""

from .base import AssetUrlResolver, ContentScorer, ProviderAdapter, RenderBackend, SceneContext
from .anthropic import AnthropicClient
from .polling import PollSettings, TaskResult, TaskStatus, poll_task
from .providers import PROVIDERS, HttpTaskProvider, ProviderProfile, parse_task_payload
from .registry import DEFAULT_ROUTES, DEFAULT_SCENE_ROUTES, ProviderRegistry
from .resolver import PublicUrlResolver
from .scorer import ClaudeContentScorer, parse_score_response

__all__ = [
    "AssetUrlResolver",
    "ContentScorer",
    "ProviderAdapter",
    "RenderBackend",
    "SceneContext",
    "AnthropicClient",
    "PollSettings",
    "TaskResult",
    "TaskStatus",
    "poll_task",
    "PROVIDERS",
    "HttpTaskProvider",
    "ProviderProfile",
    "parse_task_payload",
    "DEFAULT_ROUTES",
    "DEFAULT_SCENE_ROUTES",
    "ProviderRegistry",
    "PublicUrlResolver",
    "ClaudeContentScorer",
    "parse_score_response",
]
