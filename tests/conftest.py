"""Pytest configuration and shared fixtures."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from piece_agent.domain.entities.piece import (
    DropdownOption,
    DropdownState,
    PieceAction,
    PieceMetadata,
    PieceProperty,
    PropertyType,
)
from piece_agent.domain.entities.tool_execution import (
    ExecuteToolOperation,
    FlowRunResult,
    PredefinedInput,
    StepOutput,
    StepOutputStatus,
)
from piece_agent.domain.ports.llm import StructuredOutput


@pytest.fixture
def make_llm():
    """Factory: LLM mock whose generate_object returns the given objects in order."""

    def factory(*outputs: dict[str, Any]) -> MagicMock:
        llm = MagicMock()
        llm.generate_object = AsyncMock(side_effect=[StructuredOutput(output=o, text="") for o in outputs])
        return llm

    return factory


@pytest.fixture
def payment_action():
    """Action with a static currency dropdown and a number amount, plus auth."""
    return PieceAction(
        name="create_payment",
        display_name="Create Payment",
        description="Create a payment",
        props={
            "auth": PieceProperty(type=PropertyType.CUSTOM_AUTH, required=True),
            "amount": PieceProperty(type=PropertyType.NUMBER, required=True, description="Amount to charge"),
            "currency": PieceProperty(
                type=PropertyType.STATIC_DROPDOWN,
                required=True,
                options=DropdownState(
                    options=[
                        DropdownOption(label="US Dollar", value="USD"),
                        DropdownOption(label="Euro", value="EUR"),
                    ]
                ),
            ),
        },
    )


@pytest.fixture
def slack_action():
    """Action whose channel dropdown is loaded and message refreshes on channel."""
    return PieceAction(
        name="send_message",
        display_name="Send Message",
        description="Send a message to a channel",
        props={
            "channel": PieceProperty(type=PropertyType.DROPDOWN, required=True, refreshers=["auth"]),
            "text": PieceProperty(type=PropertyType.LONG_TEXT, required=True, refreshers=["channel"]),
        },
    )


@pytest.fixture
def payment_piece(payment_action):
    return PieceMetadata(
        name="@activepieces/piece-stripe",
        version="0.3.0",
        actions={payment_action.name: payment_action},
    )


@pytest.fixture
def operation():
    """Operation for the payment action with predefined auth."""
    return ExecuteToolOperation(
        piece_name="@activepieces/piece-stripe",
        piece_version="0.3.0",
        action_name="create_payment",
        instruction="Charge $50 in USD",
        predefined_input=PredefinedInput(auth={"secret_key": "sk_live_123"}),
        project_id="proj_1",
    )


@pytest.fixture
def mock_props():
    """PropertyOptionsPort mock returning no options."""
    props = MagicMock()
    props.execute_props = AsyncMock(return_value={"options": {"options": []}})
    return props


@pytest.fixture
def succeeding_runtime():
    """ActionRuntimePort mock whose step succeeds with {"id": "pay_1"}."""
    runtime = MagicMock()

    async def run(step, constants):
        return FlowRunResult(steps={step.name: StepOutput(status=StepOutputStatus.SUCCEEDED, output={"id": "pay_1"})})

    runtime.run = AsyncMock(side_effect=run)
    return runtime
