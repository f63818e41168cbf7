"""
Chat completion client for Optical-Assist

Async HTTP client for an OpenAI-compatible ``/chat/completions`` endpoint with:
- Configurable model, temperature and token limit
- Configurable timeout
- Pluggable retry policy
- Health check
"""

import logging

from optiassist.errors import CompletionError
from optiassist.llm.api_base import NO_RETRY, ModelAPIClient, RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT = 30.0

# LLM generation parameters
DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_TOKENS = 512


class CompletionClient(ModelAPIClient):
    """Async client for a hosted chat completion model."""

    error_class = CompletionError
    service_name = "Completion API"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        retry_policy: RetryPolicy = NO_RETRY,
    ) -> None:
        super().__init__(api_key, base_url, timeout, retry_policy)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def complete(self, messages: list[dict[str, str]]) -> str:
        """
        Send chat messages and return the generated text verbatim.

        Raises:
            CompletionError: On upstream failure or when no text comes back.
        """
        data = await self._post(
            "/chat/completions",
            {
                "model": self.model,
                "messages": messages,
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
            },
        )

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise CompletionError(f"Malformed completion response: {e}") from e

        if not content or not content.strip():
            raise CompletionError("Completion model returned an empty answer")
        return content
