"""
Anthropic Claude adapter for growth insight narratives.
"""

import asyncio
import logging
import random
from typing import Optional

import anthropic

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)


async def _retry_with_backoff(coro_factory, max_retries=3, base_delay=1.0):
    """Retry an async operation with exponential backoff + jitter."""
    for attempt in range(max_retries + 1):
        try:
            return await coro_factory()
        except Exception as e:
            error_str = str(e).lower()
            is_transient = any(
                k in error_str
                for k in ["rate_limit", "429", "500", "502", "503", "504", "overloaded", "connection", "timeout"]
            )
            if not is_transient or attempt == max_retries:
                raise
            delay = base_delay * (2 ** attempt) + random.uniform(0, 1)
            logger.warning(
                "Transient API error (attempt %d/%d), retrying in %.1fs: %s",
                attempt + 1,
                max_retries,
                delay,
                str(e),
            )
            await asyncio.sleep(delay)


class AnthropicInsightsService:
    """Text generation against Claude, used for the growth narrative."""

    MOCK_RESPONSE = (
        "This is a mock response for development. "
        "Configure ANTHROPIC_API_KEY to use real AI."
    )

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        api_key = api_key if api_key is not None else settings.anthropic_api_key
        if api_key:
            self._client = anthropic.AsyncAnthropic(
                api_key=api_key,
                timeout=float(settings.anthropic_timeout),
            )
        else:
            self._client = None
        self._model = model or settings.anthropic_model
        self._max_tokens = settings.anthropic_max_tokens
        self._max_retries = settings.anthropic_max_retries

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    @staticmethod
    def _sanitize_prompt_input(text: Optional[str], max_length: int) -> str:
        """Strip control characters and limit length to prevent prompt injection."""
        if not text:
            return ""
        import re as _re
        text = _re.sub(r'[\r\n\t\x00-\x1f\x7f]', ' ', text)
        text = _re.sub(r' +', ' ', text).strip()
        return text[:max_length]

    async def generate_text(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.4,
    ) -> str:
        """
        Generate a text response from a prompt.

        Args:
            prompt: User prompt
            system: Optional system prompt
            max_tokens: Maximum tokens to generate (defaults to settings)
            temperature: Temperature for generation (0.0-1.0)

        Returns:
            Generated text response. Without an API key a fixed mock string
            is returned instead.
        """
        if not self._client:
            # Return mock response for development
            return self.MOCK_RESPONSE

        request = {
            "model": self._model,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            request["system"] = system

        try:
            message = await _retry_with_backoff(
                lambda: self._client.messages.create(**request),
                max_retries=self._max_retries,
            )
            response_text = message.content[0].text
            logger.debug(f"Generated text response ({len(response_text)} chars)")
            return response_text

        except Exception as e:
            logger.error(f"Failed to generate text: {e}")
            raise


# Singleton instance
insights_ai_service = AnthropicInsightsService()
