"""Unit tests for provider, polling, registry, resolver and scorer services."""

import json

import httpx
import pytest

from conftest import FakeProvider, make_scene
from reelgate.models import (
    DefectTag,
    GenerationRequest,
    MediaKind,
    ProviderFailure,
    ProviderSuccess,
    SceneType,
)
from reelgate.services import (
    PollSettings,
    ProviderRegistry,
    PublicUrlResolver,
    TaskResult,
    TaskStatus,
    parse_score_response,
    poll_task,
)
from reelgate.services.base import SceneContext
from reelgate.services.providers import HttpTaskProvider, ProviderProfile, parse_task_payload
from reelgate.services.scorer import ClaudeContentScorer, extract_json

FAST_POLL = PollSettings(interval_seconds=0, max_polls=3)
PROFILE = ProviderProfile(
    provider_id="kling",
    model="kling",
    task_type="video_generation",
    media_kinds=frozenset({MediaKind.VIDEO}),
    max_duration_seconds=10.0,
    poll=FAST_POLL,
)


def request(**kwargs):
    kwargs.setdefault("provider_id", "kling")
    kwargs.setdefault("prompt", "A sunrise over a harbor")
    kwargs.setdefault("duration_seconds", 12.0)
    return GenerationRequest(**kwargs)


class TestPublicUrlResolver:
    """Test public URL resolution."""

    @pytest.mark.parametrize(
        "raw_url, expected",
        [
            ("https://cdn.example.com/a.mp4", "https://cdn.example.com/a.mp4"),
            ("  https://cdn.example.com/a.mp4 ", "https://cdn.example.com/a.mp4"),
            ("/objects/logo.png", "https://assets.example.com/objects/logo.png"),
            ("http://localhost:5000/a.mp4", None),
            ("http://127.0.0.1/a.mp4", None),
            ("http://10.1.2.3/a.mp4", None),
            ("http://minio:9000/bucket/a.mp4", None),
            ("http://storage.internal/a.mp4", None),
            ("file:///tmp/a.mp4", None),
            ("//cdn.example.com/a.mp4", None),
            ("", None),
            (None, None),
        ],
    )
    def test_resolve(self, raw_url, expected):
        """Test which references resolve to public URLs."""
        resolver = PublicUrlResolver(public_base_url="https://assets.example.com")
        assert resolver.resolve(raw_url) == expected

    def test_relative_without_base(self):
        """Test that relative paths need a public base URL."""
        assert PublicUrlResolver(public_base_url="").resolve("/objects/logo.png") is None

    def test_private_base_rejected(self):
        """Test that a private base URL is a configuration error."""
        with pytest.raises(ValueError):
            PublicUrlResolver(public_base_url="http://localhost:8080")

    def test_is_public(self):
        """Test the already-public check used by render spec validation."""
        resolver = PublicUrlResolver(public_base_url="https://assets.example.com")
        assert resolver.is_public("https://cdn.example.com/a.mp4")
        assert not resolver.is_public("/objects/logo.png")
        assert not resolver.is_public(None)


class TestProviderRegistry:
    """Test provider routing."""

    def test_scene_route_first(self):
        """Test that scene-type routes take precedence over media-kind routes."""
        registry = ProviderRegistry([FakeProvider(pid) for pid in ("kling", "luma", "hailuo", "runway")])

        assert registry.route(MediaKind.VIDEO, SceneType.PRODUCT)[0] == "luma"
        assert registry.route(MediaKind.VIDEO, SceneType.HOOK)[0] == "kling"

    def test_unregistered_ids_skipped(self):
        """Test that routes only list registered adapters."""
        registry = ProviderRegistry([FakeProvider("runway")])

        assert registry.route(MediaKind.VIDEO) == ["runway"]
        assert registry.initial_provider(MediaKind.VIDEO) == "runway"

    def test_no_provider(self):
        """Test the error when nothing serves a media kind."""
        registry = ProviderRegistry([FakeProvider("kling")])

        with pytest.raises(LookupError):
            registry.initial_provider(MediaKind.IMAGE)
        with pytest.raises(KeyError):
            registry.get("flux")


class TestParseTaskPayload:
    """Test task API response parsing."""

    def test_completed(self):
        """Test a completed video task with a thumbnail."""
        body = {"data": {"status": "completed", "output": {
            "video_url": "https://cdn.example.com/v.mp4",
            "thumbnail_url": "https://cdn.example.com/v.jpg",
        }}}

        result = parse_task_payload("t1", body)

        assert result.status == TaskStatus.COMPLETED
        assert result.output_url == "https://cdn.example.com/v.mp4"
        assert result.preview_url == "https://cdn.example.com/v.jpg"

    def test_image_list_output(self):
        """Test an image task returning a list of URLs."""
        body = {"data": {"status": "success", "output": {"image_urls": ["https://cdn.example.com/i.png"]}}}

        assert parse_task_payload("t1", body).output_url == "https://cdn.example.com/i.png"

    def test_completed_without_output(self):
        """Test that a completed task with no output is a failure."""
        result = parse_task_payload("t1", {"data": {"status": "completed", "output": {}}})

        assert result.status == TaskStatus.FAILED
        assert "without an output" in result.error_message

    def test_failed(self):
        """Test that the provider's error message is kept."""
        body = {"data": {"status": "failed", "error": {"message": "content policy"}}}

        result = parse_task_payload("t1", body)

        assert result.status == TaskStatus.FAILED
        assert result.error_message == "content policy"

    def test_still_running(self):
        """Test that unknown statuses keep polling."""
        assert parse_task_payload("t1", {"data": {"status": "queued"}}).status == TaskStatus.PROCESSING


class TestPollTask:
    """Test the shared submit-then-poll routine."""

    @pytest.mark.asyncio
    async def test_polls_until_terminal(self):
        """Test that polling stops at the first terminal status."""
        statuses = [TaskStatus.PROCESSING, TaskStatus.COMPLETED]
        checks = []

        async def submit():
            return "task-1"

        async def check(task_id):
            checks.append(task_id)
            return TaskResult(task_id=task_id, status=statuses[len(checks) - 1], output_url="https://x.example.com/v")

        result = await poll_task(submit, check, FAST_POLL)

        assert result.status == TaskStatus.COMPLETED
        assert checks == ["task-1", "task-1"]
        assert result.completed_at is not None

    @pytest.mark.asyncio
    async def test_check_errors_tolerated(self):
        """Test that a failing status check is retried within the poll budget."""
        calls = []

        async def submit():
            return "task-1"

        async def check(task_id):
            calls.append(task_id)
            if len(calls) == 1:
                raise httpx.ConnectError("reset")
            return TaskResult(task_id=task_id, status=TaskStatus.FAILED, error_message="nsfw")

        result = await poll_task(submit, check, FAST_POLL)

        assert result.status == TaskStatus.FAILED
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_budget_exhausted(self):
        """Test that a task that never finishes is reported as failed."""
        async def submit():
            return "task-1"

        async def check(task_id):
            return TaskResult(task_id=task_id, status=TaskStatus.PROCESSING)

        result = await poll_task(submit, check, FAST_POLL)

        assert result.status == TaskStatus.FAILED
        assert "3 polls" in result.error_message


class TestHttpTaskProvider:
    """Test the HTTP task provider against a mocked transport."""

    def provider(self, handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HttpTaskProvider(PROFILE, api_key="test-key", base_url="https://api.example.com/v1", client=client)

    @pytest.mark.asyncio
    async def test_submit_and_poll(self):
        """Test a successful submit followed by a completed poll."""
        submitted = []

        def handler(http_request: httpx.Request) -> httpx.Response:
            if http_request.method == "POST":
                submitted.append(json.loads(http_request.content))
                assert http_request.headers["X-API-Key"] == "test-key"
                return httpx.Response(200, json={"data": {"task_id": "abc"}})
            assert http_request.url.path == "/v1/task/abc"
            return httpx.Response(200, json={"data": {
                "status": "completed", "output": {"video_url": "https://cdn.example.com/abc.mp4"},
            }})

        result = await self.provider(handler).generate(request(negative_prompt="no text"))

        assert result == ProviderSuccess(asset_url="https://cdn.example.com/abc.mp4")
        body = submitted[0]
        assert body["model"] == "kling"
        assert body["input"]["duration"] == 10
        assert body["input"]["negative_prompt"] == "no text"

    @pytest.mark.asyncio
    async def test_http_error_is_failure(self):
        """Test that an HTTP error becomes a ProviderFailure."""
        def handler(http_request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="overloaded")

        result = await self.provider(handler).generate(request())

        assert result == ProviderFailure(reason="HTTP 503")

    @pytest.mark.asyncio
    async def test_task_failure_is_failure(self):
        """Test that a failed remote task becomes a ProviderFailure."""
        def handler(http_request: httpx.Request) -> httpx.Response:
            if http_request.method == "POST":
                return httpx.Response(200, json={"task_id": "abc"})
            return httpx.Response(200, json={"data": {"status": "failed", "error": {"message": "blocked"}}})

        result = await self.provider(handler).generate(request())

        assert result == ProviderFailure(reason="blocked")

    @pytest.mark.asyncio
    async def test_wrong_media_kind(self):
        """Test that a video provider refuses image requests without calling out."""
        def handler(http_request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        result = await self.provider(handler).generate(request(media_kind=MediaKind.IMAGE))

        assert isinstance(result, ProviderFailure)

    def test_requires_api_key(self, monkeypatch):
        """Test that a missing API key is rejected up front."""
        from reelgate.config import config
        monkeypatch.setattr(config, "provider_api_key", "")
        with pytest.raises(ValueError):
            HttpTaskProvider(PROFILE)

    def test_unknown_profile(self):
        """Test lookup of an unknown provider id."""
        with pytest.raises(ValueError):
            HttpTaskProvider.from_table("sora", api_key="k")


class FakeAnthropic:
    """Stands in for AnthropicClient, returning a fixed response."""

    def __init__(self, response: str) -> None:
        self.response = response
        self.prompts = []

    def create_message(self, prompt, max_tokens=4096, system=None, **kwargs):
        self.prompts.append(prompt)
        return self.response


class TestScorer:
    """Test content scorer response handling."""

    def test_extract_json_from_markdown(self):
        """Test extraction from a fenced code block."""
        response = 'Here you go:\n```json\n{"score": 80}\n```'
        assert extract_json(response) == '{"score": 80}'

    def test_parse_drops_unknown_tags(self):
        """Test that tags outside the vocabulary are ignored and duplicates collapsed."""
        result = parse_score_response(
            '{"score": 64, "defects": ["on-image-text", "too-blue", "ON-IMAGE-TEXT", "blank-frame"]}'
        )

        assert result.score == 64
        assert result.defects == [DefectTag.ON_IMAGE_TEXT, DefectTag.BLANK_FRAME]

    def test_parse_clamps_score(self):
        """Test that out-of-range scores are clamped."""
        assert parse_score_response('{"score": 140}').score == 100

    @pytest.mark.parametrize("response", ["not json", '{"defects": []}', "[1, 2]"])
    def test_parse_rejects_malformed(self, response):
        """Test that a response without a score is an error."""
        with pytest.raises(ValueError):
            parse_score_response(response)

    @pytest.mark.parametrize(
        "response",
        [
            '{"score": NaN, "defects": ["blank-frame"]}',
            '{"score": Infinity}',
            '{"score": -Infinity}',
            '{"score": "high"}',
            '{"score": null}',
        ],
    )
    def test_parse_rejects_non_finite_score(self, response):
        """Test that a score that is not a finite number is an error, never a clamp."""
        with pytest.raises(ValueError):
            parse_score_response(response)

    @pytest.mark.asyncio
    async def test_nan_verdict_is_not_approved(self):
        """Test that the scorer raises on a NaN verdict, so the gate records a hard fail."""
        client = FakeAnthropic('{"score": NaN, "defects": ["blank-frame"]}')
        scene = make_scene(0)
        context = SceneContext(
            scene_id=scene.id,
            scene_index=scene.index,
            scene_type=scene.type.value,
            narration=scene.narration_text,
            visual_prompt=scene.visual_prompt,
            total_scenes=1,
        )

        with pytest.raises(ValueError, match="not finite"):
            await ClaudeContentScorer(client).score("https://cdn.example.com/v.mp4", context)

    @pytest.mark.asyncio
    async def test_scores_preview_image(self):
        """Test that the preview image is sent when the provider returned one."""
        client = FakeAnthropic('{"score": 91, "defects": []}')
        scene = make_scene(2)
        context = SceneContext(
            scene_id=scene.id,
            scene_index=scene.index,
            scene_type=scene.type.value,
            narration=scene.narration_text,
            visual_prompt=scene.visual_prompt,
            total_scenes=4,
            preview_url="https://cdn.example.com/thumb.jpg",
        )

        result = await ClaudeContentScorer(client).score("https://cdn.example.com/v.mp4", context)

        assert result.score == 91
        image_block = client.prompts[0][0]
        assert image_block["source"]["url"] == "https://cdn.example.com/thumb.jpg"
        assert "SCENE 3 of 4" in client.prompts[0][1]["text"]
