"""Language-model and embedding clients.

The pipeline talks to three narrow protocols. Production implementations use
the ``openai`` SDK; Perplexity is reached through its OpenAI-compatible API.
"""

import json
import logging
import re
import time
from typing import Any, Protocol

from openai import AsyncOpenAI, OpenAIError

from reelsynth.config import Settings
from reelsynth.exceptions import LLMServiceError, ParseFailure

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class SearchCompletionClient(Protocol):
    """Search-augmented model returning free text."""

    async def complete(self, system_prompt: str, user_prompt: str) -> str: ...


class StructuredCompletionClient(Protocol):
    """Model constrained to return a JSON object."""

    async def complete_json(
        self, system_prompt: str, user_prompt: str, max_tokens: int
    ) -> dict[str, Any]: ...


class EmbeddingClient(Protocol):
    async def embed(self, text: str) -> list[float]: ...


def extract_json_object(raw: str) -> dict[str, Any]:
    """Parse a JSON object out of an LLM reply.

    Accepts a bare object, an object inside a ```json fence, or an object
    surrounded by prose. Anything else raises ParseFailure.
    """
    if raw is None or not raw.strip():
        raise ParseFailure("Empty response from model", raw=raw)

    text = raw.strip()
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()
    elif not text.startswith("{"):
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ParseFailure("No JSON object found in model response", raw=raw)
        text = text[start : end + 1]

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseFailure(f"Model returned invalid JSON: {e}", raw=raw) from e

    if not isinstance(data, dict):
        raise ParseFailure("Model response is not a JSON object", raw=raw)
    return data


class PerplexitySearchClient:
    """Perplexity Sonar chat completions (live web search)."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout: float,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self._client = client or AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "PerplexitySearchClient":
        return cls(
            api_key=settings.perplexity_api_key,
            base_url=settings.perplexity_base_url,
            model=settings.perplexity_model,
            timeout=settings.llm_timeout_seconds,
        )

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        started = time.monotonic()
        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except OpenAIError as e:
            raise LLMServiceError(f"Search completion failed: {e}") from e

        content = completion.choices[0].message.content or ""
        logger.info(
            f"Search completion ({self.model}) returned {len(content)} chars "
            f"in {time.monotonic() - started:.1f}s"
        )
        return content


class OpenAIStructuredClient:
    """OpenAI chat completions in JSON mode."""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIStructuredClient":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout=settings.llm_timeout_seconds,
        )

    async def complete_json(
        self, system_prompt: str, user_prompt: str, max_tokens: int
    ) -> dict[str, Any]:
        started = time.monotonic()
        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                max_completion_tokens=max_tokens,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except OpenAIError as e:
            raise LLMServiceError(f"Structured completion failed: {e}") from e

        raw = completion.choices[0].message.content or ""
        logger.info(
            f"Structured completion ({self.model}) returned {len(raw)} chars "
            f"in {time.monotonic() - started:.1f}s"
        )
        logger.debug(f"Structured completion raw output: {raw[:2000]}")
        return extract_json_object(raw)


class OpenAIEmbeddingClient:
    """OpenAI embeddings endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIEmbeddingClient":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_embedding_model,
            timeout=settings.llm_timeout_seconds,
        )

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self._client.embeddings.create(model=self.model, input=text)
        except OpenAIError as e:
            raise LLMServiceError(f"Embedding request failed: {e}") from e
        return list(response.data[0].embedding)
