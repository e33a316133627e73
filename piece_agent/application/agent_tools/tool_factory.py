"""Agent tool definitions for piece actions."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from piece_agent.application.agent_tools.executor import AgentToolExecutor
from piece_agent.domain.entities.agent_result import AgentTool, AgentToolType
from piece_agent.domain.entities.tool_execution import ExecuteToolOperation, ExecuteToolResponse
from piece_agent.domain.ports.pieces import PieceLoaderPort

ToolRun = Callable[[dict[str, Any]], Awaitable[ExecuteToolResponse]]


class ToolInstruction(BaseModel):
    """Arguments the agent passes to every piece tool."""

    instruction: str = Field(..., description="The instruction to the tool")


@dataclass
class AgentToolDefinition:
    """Callable tool exposed to the agent loop."""

    name: str
    description: str
    input_schema: type[BaseModel]
    execute: ToolRun

    def to_llm_tool(self) -> dict[str, Any]:
        """Function-tool format accepted by chat_with_tools."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema.model_json_schema(),
            },
        }


async def build_piece_tools(
    tools: list[AgentTool],
    piece_loader: PieceLoaderPort,
    executor: AgentToolExecutor,
    model: str | None = None,
    project_id: str = "",
) -> dict[str, AgentToolDefinition]:
    """One definition per PIECE tool, keyed by tool name. Actions are loaded concurrently.

    Raises:
        ActionNotFoundError: A tool references an unknown action.

    """
    piece_tools = [t for t in tools if t.type == AgentToolType.PIECE and t.piece_metadata is not None]

    async def build(tool: AgentTool) -> AgentToolDefinition:
        metadata = tool.piece_metadata
        action = await piece_loader.get_action_or_throw(
            piece_name=metadata.piece_name,
            piece_version=metadata.piece_version,
            action_name=metadata.action_name,
        )

        async def run(arguments: dict[str, Any]) -> ExecuteToolResponse:
            args = ToolInstruction.model_validate(arguments)
            operation = ExecuteToolOperation(
                piece_name=metadata.piece_name,
                piece_version=metadata.piece_version,
                action_name=metadata.action_name,
                instruction=args.instruction,
                predefined_input=metadata.predefined_input,
                project_id=project_id,
            )
            return await executor.execute(operation, model=model)

        return AgentToolDefinition(
            name=tool.tool_name,
            description=action.description,
            input_schema=ToolInstruction,
            execute=run,
        )

    definitions = await asyncio.gather(*(build(tool) for tool in piece_tools))
    return {definition.name: definition for definition in definitions}
