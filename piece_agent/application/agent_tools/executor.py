"""Agent Tool Executor - resolve a piece action's input and run it."""

from collections.abc import Mapping
from typing import Any

import structlog

from piece_agent.application.agent_tools.resolver import PropertyResolver
from piece_agent.domain.entities.tool_execution import (
    REDACTED,
    ExecuteToolOperation,
    ExecuteToolResponse,
    ExecutionConstants,
    ExecutionToolStatus,
    FlowActionType,
    PieceActionSettings,
    PieceActionStep,
    PropertyExecutionType,
    PropertySettings,
    StepOutputStatus,
)
from piece_agent.domain.ports.pieces import ActionRuntimePort, PieceLoaderPort
from piece_agent.domain.services.property_sorter import sort_properties_by_dependencies

log = structlog.get_logger()


def build_piece_step(operation: ExecuteToolOperation, resolved_input: dict[str, Any]) -> PieceActionStep:
    """Executable PIECE step with every resolved input marked MANUAL."""
    return PieceActionStep(
        name=operation.action_name,
        display_name=operation.action_name,
        type=FlowActionType.PIECE,
        settings=PieceActionSettings(
            input=resolved_input,
            piece_name=operation.piece_name,
            piece_version=operation.piece_version,
            action_name=operation.action_name,
            property_settings={
                key: PropertySettings(type=PropertyExecutionType.MANUAL) for key in resolved_input
            },
        ),
        valid=True,
    )


def redact_auth(resolved_input: dict[str, Any]) -> dict[str, Any]:
    """Copy of *resolved_input* with ``auth`` replaced by ``Redacted``."""
    return {**resolved_input, "auth": REDACTED}


class AgentToolExecutor:
    """Runs one piece action from an instruction. Never raises: failures become FAILED responses."""

    def __init__(
        self,
        piece_loader: PieceLoaderPort,
        resolver: PropertyResolver,
        runtimes: Mapping[FlowActionType, ActionRuntimePort],
    ) -> None:
        self._pieces = piece_loader
        self._resolver = resolver
        self._runtimes = runtimes

    def _runtime_for(self, action_type: FlowActionType) -> ActionRuntimePort:
        runtime = self._runtimes.get(action_type)
        if runtime is None:
            raise LookupError(f"No runtime registered for step type {action_type.value}")
        return runtime

    async def execute(self, operation: ExecuteToolOperation, model: str | None = None) -> ExecuteToolResponse:
        try:
            action = await self._pieces.get_action_or_throw(
                piece_name=operation.piece_name,
                piece_version=operation.piece_version,
                action_name=operation.action_name,
            )
            levels = sort_properties_by_dependencies(action.props)
            resolved_input = await self._resolver.resolve(levels, operation.instruction, action, model, operation)
            step = build_piece_step(operation, resolved_input)
            result = await self._runtime_for(step.type).run(step, ExecutionConstants.from_operation(operation))
            step_output = result.steps[operation.action_name]
            status = (
                ExecutionToolStatus.FAILED
                if step_output.status == StepOutputStatus.FAILED
                else ExecutionToolStatus.SUCCESS
            )
            log.info(
                "agent_tool_executed",
                piece=operation.piece_name,
                action=operation.action_name,
                status=status.value,
            )
            return ExecuteToolResponse(
                status=status,
                output=step_output.output,
                resolved_input=redact_auth(resolved_input),
                error_message=step_output.error_message,
            )
        except Exception as e:
            log.error(
                "agent_tool_execution_failed",
                piece=operation.piece_name,
                action=operation.action_name,
                error=str(e),
                exc_info=True,
            )
            return ExecuteToolResponse(
                status=ExecutionToolStatus.FAILED,
                output=None,
                resolved_input={},
                error_message=f"Tool execution error: {e}",
            )
