"""Tests for AgentUseCase."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from piece_agent.application.agent.use_case import AgentUseCase
from piece_agent.application.agent_tools.tool_factory import AgentToolDefinition, ToolInstruction
from piece_agent.domain.entities.agent_result import (
    AgentTaskStatus,
    AgentTool,
    AgentToolType,
    MarkdownContentBlock,
    ToolCallContentBlock,
    ToolCallStatus,
)
from piece_agent.domain.entities.tool_execution import (
    AgentPieceToolMetadata,
    ExecuteToolResponse,
    ExecutionToolStatus,
)


@pytest.fixture
def agent_tools():
    return [
        AgentTool(
            type=AgentToolType.PIECE,
            tool_name="stripe_create_payment",
            piece_metadata=AgentPieceToolMetadata(
                piece_name="@activepieces/piece-stripe", piece_version="0.3.0", action_name="create_payment"
            ),
        )
    ]


@pytest.fixture
def execute():
    return AsyncMock(
        return_value=ExecuteToolResponse(
            status=ExecutionToolStatus.SUCCESS,
            output={"id": "pay_1"},
            resolved_input={"auth": "Redacted", "amount": 50},
        )
    )


@pytest.fixture
def definitions(execute):
    return {
        "stripe_create_payment": AgentToolDefinition(
            name="stripe_create_payment",
            description="Create a payment",
            input_schema=ToolInstruction,
            execute=execute,
        )
    }


class TestAgentUseCaseRun:
    """Tests for AgentUseCase.run."""

    @pytest.mark.asyncio
    async def test_answer_without_tools_completes(self, agent_tools, definitions):
        """A plain answer completes the run."""
        llm = MagicMock()
        llm.chat_with_tools = AsyncMock(return_value=("All done.", []))
        use_case = AgentUseCase(llm)

        result = await use_case.run("hi", agent_tools, definitions)

        assert result.status == AgentTaskStatus.COMPLETED
        assert result.steps == [MarkdownContentBlock(markdown="All done.")]
        tools_arg = llm.chat_with_tools.call_args.kwargs["tools"]
        assert tools_arg[0]["function"]["name"] == "stripe_create_payment"
        assert "instruction" in tools_arg[0]["function"]["parameters"]["properties"]

    @pytest.mark.asyncio
    async def test_tool_call_recorded_and_fed_back(self, agent_tools, definitions, execute):
        """Tool calls are executed, recorded and returned to the model."""
        llm = MagicMock()
        llm.chat_with_tools = AsyncMock(
            side_effect=[
                ("Charging.", [{"name": "stripe_create_payment", "arguments": {"instruction": "Charge $50"}}]),
                ("Charged.", []),
            ]
        )
        use_case = AgentUseCase(llm)

        result = await use_case.run("Charge $50", agent_tools, definitions, model="m")

        assert result.status == AgentTaskStatus.COMPLETED
        execute.assert_called_once_with({"instruction": "Charge $50"})
        call_block = result.steps[1]
        assert isinstance(call_block, ToolCallContentBlock)
        assert call_block.status == ToolCallStatus.COMPLETED
        assert call_block.output["status"] == "SUCCESS"
        assert call_block.tool_call_id.startswith("call_")
        assert result.steps[2] == MarkdownContentBlock(markdown="Charged.")

        messages = llm.chat_with_tools.call_args_list[1].kwargs["messages"]
        assert messages[-1]["role"] == "tool"
        assert messages[-1]["tool_call_id"] == call_block.tool_call_id
        assert '"pay_1"' in messages[-1]["content"]
        assert llm.chat_with_tools.call_args.kwargs["model"] == "m"

    @pytest.mark.asyncio
    async def test_provider_call_ids_are_kept(self, agent_tools, definitions):
        """Ids from the provider are used as transcript ids."""
        llm = MagicMock()
        llm.chat_with_tools = AsyncMock(
            side_effect=[
                ("", [{"id": "abc", "name": "stripe_create_payment", "arguments": {"instruction": "x"}}]),
                ("", []),
            ]
        )

        result = await AgentUseCase(llm).run("x", agent_tools, definitions)

        assert result.steps[0].tool_call_id == "abc"

    @pytest.mark.asyncio
    async def test_raising_tool_is_failed_call(self, agent_tools, definitions, execute):
        """A tool that raises is recorded as a failed call and the loop continues."""
        execute.side_effect = RuntimeError("boom")
        llm = MagicMock()
        llm.chat_with_tools = AsyncMock(
            side_effect=[
                ("", [{"id": "c1", "name": "stripe_create_payment", "arguments": {"instruction": "x"}}]),
                ("Sorry.", []),
            ]
        )

        result = await AgentUseCase(llm).run("x", agent_tools, definitions)

        assert result.status == AgentTaskStatus.COMPLETED
        assert result.steps[0].output == {"status": "FAILED"}

    @pytest.mark.asyncio
    async def test_unknown_tool_fails_run(self, agent_tools, definitions):
        """A tool name matching no agent tool fails the run."""
        llm = MagicMock()
        llm.chat_with_tools = AsyncMock(return_value=("", [{"id": "c1", "name": "rm_rf", "arguments": {}}]))

        result = await AgentUseCase(llm).run("x", agent_tools, definitions)

        assert result.status == AgentTaskStatus.FAILED
        assert "rm_rf" in result.steps[-1].markdown

    @pytest.mark.asyncio
    async def test_iteration_cap_fails(self, agent_tools, definitions):
        """Hitting max_iterations fails the run."""
        llm = MagicMock()
        llm.chat_with_tools = AsyncMock(
            return_value=("", [{"name": "stripe_create_payment", "arguments": {"instruction": "again"}}])
        )

        result = await AgentUseCase(llm, max_iterations=2).run("x", agent_tools, definitions)

        assert result.status == AgentTaskStatus.FAILED
        assert llm.chat_with_tools.call_count == 2
        assert "2 iterations" in result.steps[-1].markdown

    @pytest.mark.asyncio
    async def test_llm_error_fails(self, agent_tools, definitions):
        """Provider errors fail the run instead of raising."""
        llm = MagicMock()
        llm.chat_with_tools = AsyncMock(side_effect=ConnectionError("refused"))

        result = await AgentUseCase(llm).run("x", agent_tools, definitions)

        assert result.status == AgentTaskStatus.FAILED
        assert result.steps == [MarkdownContentBlock(markdown="refused")]
