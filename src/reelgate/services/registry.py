"""Provider routing table keyed on media kind and scene type."""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from ..models import MediaKind, SceneType
from .base import ProviderAdapter

logger = logging.getLogger(__name__)


# Fallback order per media kind
DEFAULT_ROUTES: Dict[MediaKind, List[str]] = {
    MediaKind.VIDEO: ["kling", "luma", "hailuo", "runway"],
    MediaKind.IMAGE: ["flux"],
    MediaKind.SFX: ["kling-sound"],
    MediaKind.MUSIC: ["kling-sound"],
}

# Scene types whose content suits a particular provider first
DEFAULT_SCENE_ROUTES: Dict[Tuple[MediaKind, SceneType], List[str]] = {
    (MediaKind.VIDEO, SceneType.PRODUCT): ["luma", "kling", "hailuo", "runway"],
    (MediaKind.VIDEO, SceneType.B_ROLL): ["hailuo", "kling", "luma", "runway"],
    (MediaKind.VIDEO, SceneType.TESTIMONIAL): ["kling", "runway", "luma", "hailuo"],
}


class ProviderRegistry:
    """Holds adapters and picks them by media kind and scene type.

    Routes only list provider ids; an id without a registered adapter is
    skipped, so one routing table can serve deployments that configure a
    subset of providers.
    """

    def __init__(
        self,
        adapters: Iterable[ProviderAdapter] = (),
        routes: Optional[Dict[MediaKind, List[str]]] = None,
        scene_routes: Optional[Dict[Tuple[MediaKind, SceneType], List[str]]] = None,
    ) -> None:
        self._adapters: Dict[str, ProviderAdapter] = {}
        self._routes = dict(DEFAULT_ROUTES if routes is None else routes)
        self._scene_routes = dict(DEFAULT_SCENE_ROUTES if scene_routes is None else scene_routes)
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: ProviderAdapter) -> None:
        """Add an adapter, replacing any with the same id."""
        self._adapters[adapter.provider_id] = adapter
        logger.debug(f"Registered provider {adapter.provider_id}")

    def get(self, provider_id: str) -> ProviderAdapter:
        """Return the adapter for ``provider_id``.

        Raises:
            KeyError: If no adapter is registered under that id.
        """
        if provider_id not in self._adapters:
            raise KeyError(f"No adapter registered for provider {provider_id!r}")
        return self._adapters[provider_id]

    def route(self, media_kind: MediaKind, scene_type: Optional[SceneType] = None) -> List[str]:
        """Ordered provider ids able to serve this media kind and scene type."""
        order = None
        if scene_type is not None:
            order = self._scene_routes.get((media_kind, scene_type))
        if order is None:
            order = self._routes.get(media_kind, [])
        return [
            pid for pid in order
            if pid in self._adapters and media_kind in self._adapters[pid].media_kinds
        ]

    def initial_provider(self, media_kind: MediaKind, scene_type: Optional[SceneType] = None) -> str:
        """First provider on the route.

        Raises:
            LookupError: If no registered adapter can serve the media kind.
        """
        candidates = self.route(media_kind, scene_type)
        if not candidates:
            raise LookupError(f"No provider configured for {media_kind.value}")
        return candidates[0]
