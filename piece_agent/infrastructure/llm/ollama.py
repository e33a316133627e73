"""Ollama adapter - implements LLMPort with native structured output and tool calling."""

import json
import logging
from typing import Any

import httpx
from ollama import AsyncClient
from pydantic import BaseModel

from piece_agent.domain.ports.config import OllamaConfig
from piece_agent.domain.ports.llm import StructuredOutput
from piece_agent.infrastructure.llm.structured_output import parse_structured_output

logger = logging.getLogger(__name__)

# Connect timeout: fail fast when the host is down
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_MODEL = "qwen2.5:7b"


class OllamaAdapter:
    """Ollama implementation of LLMPort."""

    def __init__(self, config: OllamaConfig) -> None:
        self._config = config
        read_timeout = float(config.timeout) if config.timeout else 120.0
        timeout = httpx.Timeout(
            connect=DEFAULT_CONNECT_TIMEOUT,
            read=read_timeout,
            write=read_timeout,
            pool=30.0,
        )
        self._client = AsyncClient(host=config.host, timeout=timeout)

    def _ollama_options(self, temperature: float) -> dict:
        """Build options dict: temperature + optional num_ctx, num_predict from config."""
        opts: dict = {"temperature": temperature}
        if self._config.num_ctx is not None:
            opts["num_ctx"] = self._config.num_ctx
        if self._config.num_predict is not None:
            opts["num_predict"] = self._config.num_predict
        return opts

    async def generate_object(
        self,
        prompt: str,
        schema: type[BaseModel],
        model: str | None = None,
        temperature: float = 0.0,
    ) -> StructuredOutput:
        """Constrain generation with the schema's JSON Schema (``format``)."""
        response = await self._client.chat(
            model=model or DEFAULT_MODEL,
            messages=[{"role": "user", "content": prompt}],
            format=schema.model_json_schema(by_alias=True),
            options=self._ollama_options(temperature),
        )
        text = response.message.content if response.message else ""
        text = text or ""
        return StructuredOutput(output=parse_structured_output(text, schema), text=text)

    async def chat_with_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict],
        model: str | None = None,
        temperature: float = 0.3,
    ) -> tuple[str, list[dict]]:
        """Chat with native tool calling. Returns (content, tool_calls); calls carry no id."""
        response = await self._client.chat(
            model=model or DEFAULT_MODEL,
            messages=messages,
            tools=tools,
            options=self._ollama_options(temperature),
        )
        content = (response.message.content if response.message else "") or ""
        tool_calls = (response.message.tool_calls if response.message else None) or []
        calls = []
        for tc in tool_calls:
            args = tc.function.arguments
            if isinstance(args, str):
                try:
                    args = json.loads(args) if args else {}
                except json.JSONDecodeError:
                    logger.warning("Ollama returned unparseable tool arguments for %s", tc.function.name)
                    args = {}
            calls.append({"name": tc.function.name, "arguments": dict(args or {})})
        return (content, calls)
