"""Tool execution contracts: operation in, response out, executable step."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

REDACTED = "Redacted"


class FieldControlMode(str, Enum):
    """How a predefined field is treated during resolution."""

    AGENT_DECIDE = "AGENT_DECIDE"
    CHOOSE_YOURSELF = "CHOOSE_YOURSELF"
    LEAVE_EMPTY = "LEAVE_EMPTY"


class PredefinedField(BaseModel):
    """Value fixed by the agent author for one property."""

    mode: FieldControlMode = FieldControlMode.AGENT_DECIDE
    value: Any = None


class PredefinedInput(BaseModel):
    """Auth and per-property values that bypass extraction."""

    auth: Any = None
    fields: dict[str, PredefinedField] = Field(default_factory=dict)


class AgentPieceToolMetadata(BaseModel):
    """Which piece action a PIECE agent tool invokes."""

    piece_name: str
    piece_version: str
    action_name: str
    predefined_input: PredefinedInput | None = None


class ExecuteToolOperation(BaseModel):
    """Request to resolve and run one piece action from an instruction."""

    piece_name: str
    piece_version: str
    action_name: str
    instruction: str
    predefined_input: PredefinedInput | None = None
    project_id: str = ""


class ExecutionToolStatus(str, Enum):
    """Outcome of a tool execution."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class ExecuteToolResponse(BaseModel):
    """Result of a tool execution. resolved_input never carries cleartext auth."""

    status: ExecutionToolStatus
    output: Any = None
    resolved_input: dict[str, Any] = Field(default_factory=dict)
    error_message: str | None = None


class FlowActionType(str, Enum):
    """Kinds of executable steps the runtime knows how to run."""

    PIECE = "PIECE"
    CODE = "CODE"
    LOOP_ON_ITEMS = "LOOP_ON_ITEMS"
    ROUTER = "ROUTER"


class PropertyExecutionType(str, Enum):
    """How the runtime treats a step input value."""

    MANUAL = "MANUAL"
    DYNAMIC = "DYNAMIC"


class PropertySettings(BaseModel):
    """Per-input execution settings for a step."""

    type: PropertyExecutionType = PropertyExecutionType.MANUAL
    schema_: Any = Field(default=None, alias="schema")

    model_config = {"populate_by_name": True}


class PieceActionSettings(BaseModel):
    """Settings of a PIECE step."""

    input: dict[str, Any] = Field(default_factory=dict)
    piece_name: str
    piece_version: str
    action_name: str
    property_settings: dict[str, PropertySettings] = Field(default_factory=dict)


class PieceActionStep(BaseModel):
    """Executable step description handed to the action runtime."""

    name: str
    display_name: str
    type: FlowActionType = FlowActionType.PIECE
    settings: PieceActionSettings
    valid: bool = True


class StepOutputStatus(str, Enum):
    """Per-step status reported by the runtime."""

    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    PAUSED = "PAUSED"
    RUNNING = "RUNNING"


class StepOutput(BaseModel):
    """Runtime result of one step."""

    status: StepOutputStatus
    output: Any = None
    error_message: str | None = None


class FlowRunResult(BaseModel):
    """Runtime result keyed by step name."""

    steps: dict[str, StepOutput] = Field(default_factory=dict)


class ExecutionConstants(BaseModel):
    """Context the runtime needs besides the step itself."""

    project_id: str = ""
    piece_name: str
    piece_version: str

    @classmethod
    def from_operation(cls, operation: ExecuteToolOperation) -> "ExecutionConstants":
        return cls(
            project_id=operation.project_id,
            piece_name=operation.piece_name,
            piece_version=operation.piece_version,
        )
