"""Claude vision client used by the content scorer."""

import logging
import time
from typing import Any, Dict, List, Optional, Union

from anthropic import Anthropic, APIConnectionError, APIError, InternalServerError, RateLimitError

from ..config import config

logger = logging.getLogger(__name__)

ContentBlock = Dict[str, Any]
MessageContent = Union[str, List[ContentBlock]]

# Transient failures worth another try; anything else from the API is final
RETRYABLE_ERRORS = (RateLimitError, APIConnectionError, InternalServerError)


def image_block(url: str) -> ContentBlock:
    """Content block referencing a publicly fetchable image."""
    return {"type": "image", "source": {"type": "url", "url": url}}


def text_block(text: str) -> ContentBlock:
    return {"type": "text", "text": text}


class AnthropicClient:
    """Blocking Claude client with exponential backoff on transient errors.

    Callers on the event loop run ``create_message`` in a worker thread.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Anthropic API key. Defaults to ANTHROPIC_API_KEY env var.
            model: Model to use. Defaults to config.default_model.
            max_retries: Total tries per message, including the first.
            retry_delay: Base delay in seconds, doubled after each failure.
        """
        self._api_key = api_key or config.anthropic_api_key
        if not self._api_key:
            raise ValueError("Anthropic API key not provided. Set ANTHROPIC_API_KEY env var.")

        self._client = Anthropic(api_key=self._api_key)
        self._model = model or config.default_model
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay

    @property
    def model(self) -> str:
        return self._model

    def create_message(
        self,
        prompt: MessageContent,
        max_tokens: int = 1024,
        system: Optional[str] = None,
        temperature: float = 0.0,
    ) -> str:
        """Send one user turn and return the text of the reply.

        Args:
            prompt: Plain text, or content blocks built with ``image_block``
                and ``text_block``.
            max_tokens: Maximum tokens in the response.
            system: Optional system prompt.
            temperature: Sampling temperature. Scoring wants 0.0.

        Returns:
            All text blocks of the reply joined together.

        Raises:
            APIError: If the request is rejected, or still failing after
                the last retry.
        """
        kwargs: Dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if system:
            kwargs["system"] = system

        attempt = 0
        while True:
            attempt += 1
            try:
                logger.debug(f"Claude request {attempt}/{self._max_retries} ({self._model})")
                response = self._client.messages.create(**kwargs)
                break
            except RETRYABLE_ERRORS as e:
                if attempt >= self._max_retries:
                    logger.error(f"Claude request failed after {attempt} tries: {e}")
                    raise
                delay = self._retry_delay * (2 ** (attempt - 1))
                logger.warning(f"{type(e).__name__} from Claude, retrying in {delay:.1f}s")
                time.sleep(delay)
            except APIError as e:
                logger.error(f"API error: {e}")
                raise

        return "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
