"""LLM and embedding provider clients."""

from reelsynth.services.llm.clients import (
    EmbeddingClient,
    OpenAIEmbeddingClient,
    OpenAIStructuredClient,
    PerplexitySearchClient,
    SearchCompletionClient,
    StructuredCompletionClient,
    extract_json_object,
)

__all__ = [
    "EmbeddingClient",
    "OpenAIEmbeddingClient",
    "OpenAIStructuredClient",
    "PerplexitySearchClient",
    "SearchCompletionClient",
    "StructuredCompletionClient",
    "extract_json_object",
]
