"""Vision-based content scorer backed by Claude."""

import asyncio
import json
import logging
import math
from typing import Optional

from ..models import DefectTag, ScoreResult
from .anthropic import AnthropicClient, image_block, text_block
from .base import ContentScorer, SceneContext

logger = logging.getLogger(__name__)

SCORER_SYSTEM_PROMPT = """You are a strict quality reviewer for AI-generated video frames.
Judge the frame against the scene it was generated for.

Return ONLY a JSON object: {"score": <0-100>, "defects": [<tag>, ...]}
Allowed defect tags: """ + ", ".join(tag.value for tag in DefectTag if tag != DefectTag.ANALYSIS_FAILED)


def extract_json(response: str) -> str:
    """Extract a JSON object from a response that may contain markdown or other text."""
    if "```" in response:
        start = response.find("```")
        start = response.find("\n", start) + 1
        end = response.find("```", start)
        if end > start:
            return response[start:end].strip()

    start = response.find("{")
    end = response.rfind("}")
    if start != -1 and end > start:
        return response[start:end + 1]
    return response.strip()


def parse_score_response(response: str) -> ScoreResult:
    """Parse Claude's verdict, dropping tags outside the shared vocabulary.

    Raises:
        ValueError: If the response is not a JSON object with a finite numeric
            score.
    """
    try:
        data = json.loads(extract_json(response))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in scorer response: {e}")

    if not isinstance(data, dict) or "score" not in data:
        raise ValueError("Scorer response has no score")

    try:
        score = float(data["score"])
    except (TypeError, ValueError):
        raise ValueError(f"Scorer score is not a number: {data['score']!r}")
    if not math.isfinite(score):
        raise ValueError(f"Scorer score is not finite: {score}")
    score = max(0.0, min(100.0, score))
    defects: list[DefectTag] = []
    for raw in data.get("defects") or []:
        try:
            tag = DefectTag(str(raw).strip().lower())
        except ValueError:
            logger.info(f"Ignoring unknown defect tag from scorer: {raw!r}")
            continue
        if tag not in defects:
            defects.append(tag)
    return ScoreResult(score=score, defects=defects)


class ClaudeContentScorer(ContentScorer):
    """Scores a frame (the asset itself or its preview image) with Claude vision."""

    def __init__(self, client: Optional[AnthropicClient] = None) -> None:
        self._client = client or AnthropicClient()

    def _build_prompt(self, image_url: str, context: SceneContext) -> list[dict]:
        text = "\n".join([
            f"SCENE {context.scene_index + 1} of {context.total_scenes} ({context.scene_type})",
            f"NARRATION: {context.narration or '(none)'}",
            f"VISUAL DIRECTION: {context.visual_prompt}",
            "",
            "Score how well this frame serves the scene and list any defects.",
        ])
        return [image_block(image_url), text_block(text)]

    async def score(self, asset_url: str, context: SceneContext) -> ScoreResult:
        image_url = context.preview_url or asset_url
        prompt = self._build_prompt(image_url, context)
        logger.debug(f"Scoring scene {context.scene_id} from {image_url}")

        response = await asyncio.to_thread(
            self._client.create_message,
            prompt=prompt,
            max_tokens=512,
            system=SCORER_SYSTEM_PROMPT,
        )
        result = parse_score_response(response)
        logger.info(f"Scene {context.scene_id} scored {result.summary()}")
        return result
