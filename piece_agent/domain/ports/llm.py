"""LLM Port - interface for language model providers."""

from typing import Any, Protocol

from pydantic import BaseModel


class StructuredOutput(BaseModel):
    """Object produced by a structured-output call."""

    output: dict[str, Any]
    text: str = ""  # Raw generated text, kept for diagnostics


class LLMPort(Protocol):
    """Interface for LLM providers (Ollama, LM Studio, etc.)."""

    async def generate_object(
        self,
        prompt: str,
        schema: type[BaseModel],
        model: str | None = None,
        temperature: float = 0.0,
    ) -> StructuredOutput:
        """Generate one JSON object conforming to *schema*.

        Raises:
            ModelGenerationError: Output is not JSON or does not match the schema.

        """
        ...

    async def chat_with_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict],
        model: str | None = None,
        temperature: float = 0.3,
    ) -> tuple[str, list[dict]]:
        """Chat with native tool calling. Returns (content, [{id, name, arguments}])."""
        ...
