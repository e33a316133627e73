"""OpenAI-compatible adapter - LM Studio, vLLM, LocalAI."""

import json
import logging
from typing import Any

import httpx
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from piece_agent.domain.errors import ModelGenerationError
from piece_agent.domain.ports.config import OpenAICompatibleConfig
from piece_agent.domain.ports.llm import StructuredOutput
from piece_agent.infrastructure.llm.structured_output import parse_structured_output

logger = logging.getLogger(__name__)

_transport_retry = retry(
    retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)


class OpenAICompatibleAdapter:
    """LM Studio, vLLM, LocalAI - implements LLMPort via /v1/chat/completions."""

    def __init__(self, config: OpenAICompatibleConfig) -> None:
        self._config = config
        self._base_url = config.base_url.rstrip("/")
        self._headers = {"Content-Type": "application/json"}
        if config.api_key:
            self._headers["Authorization"] = f"Bearer {config.api_key}"
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create persistent async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout,
                headers=self._headers,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client (call during app shutdown)."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _chat_body(
        self,
        model: str,
        messages: list,
        temperature: float,
        tools: list | None = None,
        response_format: dict | None = None,
    ) -> dict:
        """Build request body; optional max_tokens from config."""
        body: dict = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "stream": False,
        }
        if self._config.max_tokens is not None:
            body["max_tokens"] = self._config.max_tokens
        if tools is not None:
            body["tools"] = tools
        if response_format is not None:
            body["response_format"] = response_format
        return body

    @_transport_retry
    async def _complete(self, body: dict) -> dict:
        resp = await self._get_client().post(f"{self._base_url}/chat/completions", json=body)
        if resp.status_code >= 400:
            logger.error("LLM API error %s: %s", resp.status_code, resp.text[:500])
        resp.raise_for_status()
        return resp.json()

    @staticmethod
    def _first_message(data: dict) -> dict:
        choices = data.get("choices") or []
        if not choices:
            raise ModelGenerationError("No choices returned", text="")
        return choices[0].get("message") or {}

    async def generate_object(
        self,
        prompt: str,
        schema: type[BaseModel],
        model: str | None = None,
        temperature: float = 0.0,
    ) -> StructuredOutput:
        """Request a ``json_schema`` response and validate it against *schema*."""
        body = self._chat_body(
            model or "default",
            [{"role": "user", "content": prompt}],
            temperature,
            response_format={
                "type": "json_schema",
                "json_schema": {
                    "name": schema.__name__,
                    "schema": schema.model_json_schema(by_alias=True),
                },
            },
        )
        data = await self._complete(body)
        text = self._first_message(data).get("content") or ""
        return StructuredOutput(output=parse_structured_output(text, schema), text=text)

    def _messages_to_openai(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Convert internal messages (tool_calls with dict arguments) to OpenAI API format."""
        out: list[dict[str, Any]] = []
        for m in messages:
            role = m.get("role", "")
            if role == "tool":
                out.append({"role": "tool", "content": m.get("content", ""), "tool_call_id": m.get("tool_call_id", "")})
            elif role == "assistant" and m.get("tool_calls"):
                openai_tcs = []
                for tc in m["tool_calls"]:
                    fn = tc.get("function", {})
                    args = fn.get("arguments", {})
                    if not isinstance(args, str):
                        args = json.dumps(args or {})
                    openai_tcs.append(
                        {
                            "id": tc.get("id", ""),
                            "type": "function",
                            "function": {"name": fn.get("name", ""), "arguments": args},
                        }
                    )
                out.append({"role": "assistant", "content": m.get("content") or "", "tool_calls": openai_tcs})
            else:
                out.append({"role": role, "content": m.get("content", "")})
        return out

    async def chat_with_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict],
        model: str | None = None,
        temperature: float = 0.3,
    ) -> tuple[str, list[dict]]:
        """Chat with tools. Returns (content, tool_calls with id)."""
        body = self._chat_body(
            model or "default",
            self._messages_to_openai(messages),
            temperature,
            tools=tools,
        )
        data = await self._complete(body)
        msg = self._first_message(data)
        content = msg.get("content") or ""
        calls = []
        for tc in msg.get("tool_calls") or []:
            fn = tc.get("function", {})
            args = fn.get("arguments", "{}")
            if isinstance(args, str):
                try:
                    args = json.loads(args) if args.strip() else {}
                except json.JSONDecodeError:
                    logger.warning("Unparseable tool arguments for %s", fn.get("name", ""))
                    args = {}
            calls.append({"name": fn.get("name", ""), "arguments": args or {}, "id": tc.get("id", "")})
        return (content, calls)
