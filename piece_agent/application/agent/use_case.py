"""Agent Use Case - native tool-calling loop narrated by AgentOutputBuilder."""

import json
import logging
import uuid
from typing import Any

from piece_agent.application.agent.output_builder import AgentOutputBuilder
from piece_agent.application.agent_tools.tool_factory import AgentToolDefinition
from piece_agent.domain.entities.agent_result import AgentResult, AgentTaskStatus, AgentTool
from piece_agent.domain.ports.llm import LLMPort

logger = logging.getLogger(__name__)

AGENT_SYSTEM_PROMPT = """You are an automation agent. You complete the user's task by calling the available tools.

Each tool runs one action. Pass a precise natural-language instruction with every value the action needs.
After each tool result, decide whether another tool call is needed. When done, answer in plain text without calling a tool."""


class AgentUseCase:
    """Orchestrates agent loop: LLM -> tool call -> execute -> tool result -> LLM."""

    def __init__(self, llm: LLMPort, max_iterations: int = 15) -> None:
        self._llm = llm
        self._max_iterations = max_iterations

    def _build_messages(self, prompt: str) -> list[dict[str, Any]]:
        return [
            {"role": "system", "content": AGENT_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

    async def run(
        self,
        prompt: str,
        agent_tools: list[AgentTool],
        definitions: dict[str, AgentToolDefinition],
        model: str | None = None,
    ) -> AgentResult:
        """Run until the model stops calling tools or max iterations is hit."""
        builder = AgentOutputBuilder(prompt)
        messages = self._build_messages(prompt)
        llm_tools = [d.to_llm_tool() for d in definitions.values()]

        try:
            for _ in range(self._max_iterations):
                content, tool_calls = await self._llm.chat_with_tools(
                    messages=messages,
                    tools=llm_tools,
                    model=model,
                    temperature=0.3,
                )
                if content:
                    builder.add_markdown(content)
                if not tool_calls:
                    builder.set_status(AgentTaskStatus.COMPLETED)
                    return builder.build()

                # Ollama returns calls without ids; the transcript needs one per call
                for tc in tool_calls:
                    if not tc.get("id"):
                        tc["id"] = f"call_{uuid.uuid4().hex[:12]}"
                messages.append(
                    {
                        "role": "assistant",
                        "content": content,
                        "tool_calls": [
                            {
                                "id": tc["id"],
                                "type": "function",
                                "function": {"name": tc["name"], "arguments": tc.get("arguments") or {}},
                            }
                            for tc in tool_calls
                        ],
                    }
                )
                for tc in tool_calls:
                    observation = await self._call_tool(builder, tc, agent_tools, definitions)
                    messages.append({"role": "tool", "content": observation, "tool_call_id": tc["id"]})

            builder.fail(f"Agent stopped after {self._max_iterations} iterations without a final answer.")
        except Exception as e:
            logger.warning("Agent run failed: %s", e, exc_info=True)
            builder.fail(str(e))
        return builder.build()

    async def _call_tool(
        self,
        builder: AgentOutputBuilder,
        tool_call: dict[str, Any],
        agent_tools: list[AgentTool],
        definitions: dict[str, AgentToolDefinition],
    ) -> str:
        """Execute one tool call and record it. Returns the observation for the model."""
        name = tool_call.get("name", "")
        args = tool_call.get("arguments") or {}
        call_id = tool_call["id"]
        builder.start_tool_call(tool_name=name, tool_call_id=call_id, input=args, agent_tools=agent_tools)

        definition = definitions.get(name)
        if definition is None:
            builder.fail_tool_call(call_id)
            return f"Error: tool {name} cannot be executed here"
        try:
            response = await definition.execute(args)
        except Exception as e:
            logger.warning("Tool %s failed: %s", name, e)
            builder.fail_tool_call(call_id)
            return f"Error: {e}"

        output = response.model_dump(mode="json")
        builder.finish_tool_call(call_id, output)
        return json.dumps(output, ensure_ascii=False, default=str)
