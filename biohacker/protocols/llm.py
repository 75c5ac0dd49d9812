"""
LLM client protocol for OpenAI-compatible chat completions.

Covers the non-streaming call used for lab extraction and insights.
"""

from typing import Protocol, Any, runtime_checkable


@runtime_checkable
class IChatCompletions(Protocol):
    """Protocol for chat completions API."""

    async def create(
        self,
        model: str,
        messages: list[dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 2000,
        **kwargs: Any,
    ) -> Any:
        """Returns an object with choices[0].message.content."""
        ...


@runtime_checkable
class IChatNamespace(Protocol):
    """Protocol for the chat namespace (client.chat)."""

    @property
    def completions(self) -> IChatCompletions:
        ...


@runtime_checkable
class ILLMClient(Protocol):
    """
    Protocol for LLM client operations.

    Matches openai.AsyncOpenAI, which also fronts Ollama's /v1 endpoint.
    """

    @property
    def chat(self) -> IChatNamespace:
        ...
