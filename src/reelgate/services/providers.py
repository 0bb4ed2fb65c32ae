"""Generative providers reached through an async HTTP task API."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..config import config
from ..models import (
    GenerationRequest,
    MediaKind,
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
)
from .base import ProviderAdapter
from .polling import PollSettings, TaskResult, TaskStatus, poll_task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderProfile:
    """Configuration row describing one concrete provider."""

    provider_id: str
    model: str
    task_type: str
    media_kinds: frozenset
    max_duration_seconds: Optional[float] = None
    timeout_seconds: float = 300.0
    poll: PollSettings = PollSettings()


# Concrete providers are configuration, not subclasses
PROVIDERS: dict[str, ProviderProfile] = {
    "kling": ProviderProfile(
        provider_id="kling",
        model="kling",
        task_type="video_generation",
        media_kinds=frozenset({MediaKind.VIDEO}),
        max_duration_seconds=10.0,
    ),
    "runway": ProviderProfile(
        provider_id="runway",
        model="runway-gen3",
        task_type="video_generation",
        media_kinds=frozenset({MediaKind.VIDEO}),
        max_duration_seconds=10.0,
    ),
    "luma": ProviderProfile(
        provider_id="luma",
        model="luma",
        task_type="video_generation",
        media_kinds=frozenset({MediaKind.VIDEO}),
        max_duration_seconds=9.0,
    ),
    "hailuo": ProviderProfile(
        provider_id="hailuo",
        model="hailuo",
        task_type="video_generation",
        media_kinds=frozenset({MediaKind.VIDEO}),
        max_duration_seconds=6.0,
    ),
    "flux": ProviderProfile(
        provider_id="flux",
        model="Qubico/flux1-dev",
        task_type="txt2img",
        media_kinds=frozenset({MediaKind.IMAGE}),
        timeout_seconds=120.0,
        poll=PollSettings(interval_seconds=2.0, max_polls=60),
    ),
    "kling-sound": ProviderProfile(
        provider_id="kling-sound",
        model="kling-sound",
        task_type="text_to_audio",
        media_kinds=frozenset({MediaKind.SFX, MediaKind.MUSIC}),
        timeout_seconds=120.0,
        poll=PollSettings(interval_seconds=2.0, max_polls=60),
    ),
}

_SUCCESS_STATUSES = {"completed", "success", "succeeded"}
_FAILED_STATUSES = {"failed", "error"}
_CANCELLED_STATUSES = {"cancelled", "canceled"}
_OUTPUT_KEYS = ("video_url", "image_url", "audio_url", "url")


def _extract_output(payload: dict) -> tuple[Optional[str], Optional[str]]:
    """Pull the asset URL and an optional preview image out of a task payload."""
    output = payload.get("output") or {}
    if isinstance(output, list):
        output = output[0] if output else {}
    if isinstance(output, str):
        return output, None

    asset_url = next((output[k] for k in _OUTPUT_KEYS if output.get(k)), None)
    if asset_url is None:
        images = output.get("image_urls") or []
        asset_url = images[0] if images else None
    preview_url = output.get("thumbnail_url") or output.get("cover_url")
    return asset_url, preview_url


def parse_task_payload(task_id: str, body: dict[str, Any]) -> TaskResult:
    """Translate a task API response body into a TaskResult."""
    data = body.get("data") or body
    raw_status = str(data.get("status", "")).lower()

    if raw_status in _SUCCESS_STATUSES:
        asset_url, preview_url = _extract_output(data)
        if not asset_url:
            return TaskResult(
                task_id=task_id,
                status=TaskStatus.FAILED,
                error_message="task completed without an output URL",
            )
        return TaskResult(
            task_id=task_id,
            status=TaskStatus.COMPLETED,
            output_url=asset_url,
            preview_url=preview_url,
        )

    if raw_status in _FAILED_STATUSES or raw_status in _CANCELLED_STATUSES:
        error = data.get("error") or {}
        message = error.get("message") if isinstance(error, dict) else str(error)
        return TaskResult(
            task_id=task_id,
            status=TaskStatus.CANCELLED if raw_status in _CANCELLED_STATUSES else TaskStatus.FAILED,
            error_message=message or raw_status,
        )

    return TaskResult(task_id=task_id, status=TaskStatus.PROCESSING)


class HttpTaskProvider(ProviderAdapter):
    """Provider adapter for a submit-then-poll HTTP task API.

    This client handles:
    - Submitting generation tasks for one configured provider profile
    - Polling for task completion through the shared polling routine
    - Converting HTTP and transport errors into ProviderFailure results
    """

    def __init__(
        self,
        profile: ProviderProfile,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the provider.

        Args:
            profile: Provider configuration row from ``PROVIDERS``.
            api_key: Task API key. Defaults to PROVIDER_API_KEY env var.
            base_url: Task API base URL. Defaults to PROVIDER_BASE_URL env var.
            client: Shared httpx client. A short-lived one is created per call
                when omitted.
        """
        self._profile = profile
        self._api_key = api_key or config.provider_api_key
        self._base_url = (base_url or config.provider_base_url).rstrip("/")
        self._client = client
        self.timeout_seconds = profile.timeout_seconds

        if not self._api_key:
            raise ValueError("PROVIDER_API_KEY not set")

    @classmethod
    def from_table(cls, provider_id: str, **kwargs) -> "HttpTaskProvider":
        """Create an adapter for a provider listed in ``PROVIDERS``."""
        if provider_id not in PROVIDERS:
            raise ValueError(f"Unknown provider: {provider_id}. Available: {list(PROVIDERS.keys())}")
        return cls(PROVIDERS[provider_id], **kwargs)

    @property
    def provider_id(self) -> str:
        return self._profile.provider_id

    @property
    def media_kinds(self) -> frozenset[MediaKind]:
        return self._profile.media_kinds

    def _headers(self) -> dict[str, str]:
        return {"X-API-Key": self._api_key, "Content-Type": "application/json"}

    def _build_body(self, request: GenerationRequest) -> dict[str, Any]:
        duration = request.duration_seconds
        if self._profile.max_duration_seconds:
            duration = min(duration, self._profile.max_duration_seconds)

        task_input: dict[str, Any] = {
            "prompt": request.prompt,
            "aspect_ratio": request.aspect_ratio,
        }
        if request.negative_prompt:
            task_input["negative_prompt"] = request.negative_prompt
        if request.media_kind != MediaKind.IMAGE:
            task_input["duration"] = int(round(duration))

        return {
            "model": self._profile.model,
            "task_type": self._profile.task_type,
            "input": task_input,
        }

    async def generate(self, request: GenerationRequest) -> ProviderResult:
        """Submit a generation task and wait for it to finish."""
        if not request.prompt.strip():
            return ProviderFailure(reason="empty prompt")
        if request.media_kind not in self.media_kinds:
            return ProviderFailure(
                reason=f"{self.provider_id} cannot produce {request.media_kind.value}"
            )

        if self._client is not None:
            return await self._generate_with(self._client, request)
        async with httpx.AsyncClient(timeout=30) as client:
            return await self._generate_with(client, request)

    async def _generate_with(
        self, client: httpx.AsyncClient, request: GenerationRequest
    ) -> ProviderResult:
        async def submit() -> str:
            response = await client.post(
                f"{self._base_url}/task",
                headers=self._headers(),
                json=self._build_body(request),
            )
            response.raise_for_status()
            body = response.json()
            task_id = (body.get("data") or {}).get("task_id") or body.get("task_id")
            if not task_id:
                raise ValueError("no task id in response")
            return task_id

        async def check(task_id: str) -> TaskResult:
            response = await client.get(
                f"{self._base_url}/task/{task_id}",
                headers=self._headers(),
            )
            response.raise_for_status()
            return parse_task_payload(task_id, response.json())

        try:
            result = await poll_task(submit, check, self._profile.poll, label=self.provider_id)
        except httpx.HTTPStatusError as e:
            logger.error(f"{self.provider_id}: API error {e.response.status_code}: {e.response.text[:200]}")
            return ProviderFailure(reason=f"HTTP {e.response.status_code}")
        except httpx.TransportError as e:
            logger.error(f"{self.provider_id}: transport error: {e}")
            return ProviderFailure(reason=f"transport error: {e}")
        except ValueError as e:
            logger.error(f"{self.provider_id}: bad response: {e}")
            return ProviderFailure(reason=str(e))

        if result.status != TaskStatus.COMPLETED or not result.output_url:
            return ProviderFailure(reason=result.error_message or result.status.value)
        return ProviderSuccess(asset_url=result.output_url, preview_url=result.preview_url)
