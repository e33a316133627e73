"""Agent Output Builder - ordered transcript of an agent run.

Purely reactive: the agent loop calls it as text streams in and tools are
invoked. Markdown chunks coalesce into the trailing markdown block; every
tool call opens its own block.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Protocol

from piece_agent.domain.entities.agent_result import (
    AgentResult,
    AgentStepBlock,
    AgentTaskStatus,
    AgentTool,
    AgentToolType,
    MarkdownContentBlock,
    ToolCallContentBlock,
    ToolCallStatus,
    ToolCallType,
)
from piece_agent.domain.entities.tool_execution import ExecutionToolStatus
from piece_agent.domain.errors import ToolCallNotFoundError, ToolNotFoundError


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ToolMatcher(Protocol):
    """Decides whether an invoked tool name belongs to a registered tool."""

    def matches(self, tool_name: str, tool: AgentTool) -> bool:
        ...


class ExactNameMatcher:
    """Invoked name equals the registered name (PIECE and FLOW tools)."""

    def matches(self, tool_name: str, tool: AgentTool) -> bool:
        return tool.tool_name == tool_name


class SuffixNameMatcher:
    """Invoked name is ``<called>_<registered>`` for tools of one type (MCP)."""

    def __init__(self, tool_type: AgentToolType) -> None:
        self._tool_type = tool_type

    def matches(self, tool_name: str, tool: AgentTool) -> bool:
        return tool.type == self._tool_type and tool_name.endswith(f"_{tool.tool_name}")


DEFAULT_MATCHERS: tuple[ToolMatcher, ...] = (
    ExactNameMatcher(),
    SuffixNameMatcher(AgentToolType.MCP),
)


def find_matching_tool(
    tool_name: str,
    tools: list[AgentTool],
    matchers: tuple[ToolMatcher, ...] = DEFAULT_MATCHERS,
) -> AgentTool | None:
    """First tool accepted by the first matcher that accepts any. Matchers run in order."""
    for matcher in matchers:
        for tool in tools:
            if matcher.matches(tool_name, tool):
                return tool
    return None


def _piece_fields(tool_name: str, tool: AgentTool) -> dict[str, Any]:
    if tool.piece_metadata is None:
        raise ValueError("Piece metadata is required")
    return {
        "tool_call_type": ToolCallType.PIECE,
        "piece_name": tool.piece_metadata.piece_name,
        "piece_version": tool.piece_metadata.piece_version,
        "action_name": tool.piece_metadata.action_name,
    }


def _flow_fields(tool_name: str, tool: AgentTool) -> dict[str, Any]:
    if tool.external_flow_id is None:
        raise ValueError("Flow ID is required")
    return {
        "tool_call_type": ToolCallType.FLOW,
        "display_name": tool.tool_name,
        "external_flow_id": tool.external_flow_id,
    }


def _mcp_fields(tool_name: str, tool: AgentTool) -> dict[str, Any]:
    if tool.server_url is None:
        raise ValueError("Mcp server URL is required")
    suffix = f"_{tool.tool_name}"
    # "list_tickets_zendesk" -> "list_tickets"
    display_name = tool_name[: -len(suffix)] if tool_name.endswith(suffix) else tool_name
    return {
        "tool_call_type": ToolCallType.MCP,
        "display_name": display_name,
        "server_url": tool.server_url,
    }


_TOOL_CALL_FIELDS: dict[AgentToolType, Callable[[str, AgentTool], dict[str, Any]]] = {
    AgentToolType.PIECE: _piece_fields,
    AgentToolType.FLOW: _flow_fields,
    AgentToolType.MCP: _mcp_fields,
}


class AgentOutputBuilder:
    """Accumulates status, content blocks and structured output for one run.

    Not safe for concurrent callers; one agent loop drives one builder.
    """

    def __init__(self, prompt: str, matchers: tuple[ToolMatcher, ...] = DEFAULT_MATCHERS) -> None:
        self._prompt = prompt
        self._matchers = matchers
        self._status = AgentTaskStatus.IN_PROGRESS
        self._steps: list[AgentStepBlock] = []
        self._structured_output: dict[str, Any] | None = None

    def set_status(self, status: AgentTaskStatus) -> None:
        self._status = status

    def set_structured_output(self, output: dict[str, Any]) -> None:
        self._structured_output = output

    def append_error_to_structured_output(self, error_details: Any) -> None:
        """Append to ``structured_output["errors"]``. No-op until structured output is set."""
        if self._structured_output is not None:
            self._structured_output["errors"] = [*(self._structured_output.get("errors") or []), error_details]

    def fail(self, message: str | None = None) -> None:
        self._status = AgentTaskStatus.FAILED
        if message is not None:
            self.add_markdown(message)
            self.append_error_to_structured_output({"message": message})

    def add_markdown(self, markdown: str) -> None:
        if not self._steps or not isinstance(self._steps[-1], MarkdownContentBlock):
            self._steps.append(MarkdownContentBlock())
        last = self._steps[-1]
        self._steps[-1] = last.model_copy(update={"markdown": last.markdown + markdown})

    def start_tool_call(
        self,
        tool_name: str,
        tool_call_id: str,
        input: dict[str, Any],
        agent_tools: list[AgentTool],
    ) -> None:
        """Open an in-progress tool-call block.

        Raises:
            ToolNotFoundError: No registered tool matches ``tool_name``.

        """
        tool = find_matching_tool(tool_name, agent_tools, self._matchers)
        if tool is None:
            raise ToolNotFoundError(tool_name, [t.tool_name for t in agent_tools])
        self._steps.append(
            ToolCallContentBlock(
                tool_name=tool_name,
                tool_call_id=tool_call_id,
                status=ToolCallStatus.IN_PROGRESS,
                input=input,
                output=None,
                start_time=_now(),
                **_TOOL_CALL_FIELDS[tool.type](tool_name, tool),
            )
        )

    def _find_tool_call(self, tool_call_id: str) -> int:
        for index, block in enumerate(self._steps):
            if isinstance(block, ToolCallContentBlock) and block.tool_call_id == tool_call_id:
                return index
        raise ToolCallNotFoundError(tool_call_id)

    def _complete_tool_call(self, tool_call_id: str, output: dict[str, Any]) -> None:
        index = self._find_tool_call(tool_call_id)
        self._steps[index] = self._steps[index].model_copy(
            update={
                "status": ToolCallStatus.COMPLETED,
                "end_time": _now(),
                "output": output,
            }
        )

    def finish_tool_call(self, tool_call_id: str, output: dict[str, Any]) -> None:
        self._complete_tool_call(tool_call_id, output)

    def fail_tool_call(self, tool_call_id: str) -> None:
        self._complete_tool_call(tool_call_id, {"status": ExecutionToolStatus.FAILED.value})

    def build(self) -> AgentResult:
        return AgentResult(
            status=self._status,
            steps=list(self._steps),
            structured_output=self._structured_output,
            prompt=self._prompt,
        )
