"""Agent run transcript: content blocks, tool-call records, final result."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from piece_agent.domain.entities.tool_execution import AgentPieceToolMetadata


class AgentTaskStatus(str, Enum):
    """Running status of an agent task."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ContentBlockType(str, Enum):
    MARKDOWN = "MARKDOWN"
    TOOL_CALL = "TOOL_CALL"


class ToolCallStatus(str, Enum):
    """Tool-call lifecycle. Failure is a COMPLETED call whose output says so."""

    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class ToolCallType(str, Enum):
    PIECE = "PIECE"
    FLOW = "FLOW"
    MCP = "MCP"


class AgentToolType(str, Enum):
    PIECE = "PIECE"
    FLOW = "FLOW"
    MCP = "MCP"


class AgentTool(BaseModel):
    """Tool registered on an agent.

    MCP tools are invoked under a composite name ``<called>_<tool_name>``.
    """

    type: AgentToolType
    tool_name: str
    piece_metadata: AgentPieceToolMetadata | None = None
    external_flow_id: str | None = None
    server_url: str | None = None


class MarkdownContentBlock(BaseModel):
    type: Literal[ContentBlockType.MARKDOWN] = ContentBlockType.MARKDOWN
    markdown: str = ""


class ToolCallContentBlock(BaseModel):
    """Tool-call record. Kind-specific fields are set per tool_call_type."""

    type: Literal[ContentBlockType.TOOL_CALL] = ContentBlockType.TOOL_CALL
    tool_name: str
    tool_call_id: str
    tool_call_type: ToolCallType
    status: ToolCallStatus = ToolCallStatus.IN_PROGRESS
    input: dict[str, Any] = Field(default_factory=dict)
    output: dict[str, Any] | None = None
    start_time: str
    end_time: str | None = None
    # PIECE
    piece_name: str | None = None
    piece_version: str | None = None
    action_name: str | None = None
    # FLOW / MCP
    display_name: str | None = None
    external_flow_id: str | None = None
    server_url: str | None = None


AgentStepBlock = MarkdownContentBlock | ToolCallContentBlock


class AgentResult(BaseModel):
    """Finalized transcript, read-only for the caller."""

    status: AgentTaskStatus
    steps: list[AgentStepBlock] = Field(default_factory=list)
    structured_output: dict[str, Any] | None = None
    prompt: str

    model_config = ConfigDict(frozen=True)
