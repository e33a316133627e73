"""Tests for AgentOutputBuilder."""

import pytest

from piece_agent.application.agent.output_builder import AgentOutputBuilder, find_matching_tool
from piece_agent.domain.entities.agent_result import (
    AgentTaskStatus,
    AgentTool,
    AgentToolType,
    MarkdownContentBlock,
    ToolCallContentBlock,
    ToolCallStatus,
    ToolCallType,
)
from piece_agent.domain.entities.tool_execution import AgentPieceToolMetadata
from piece_agent.domain.errors import ToolCallNotFoundError, ToolNotFoundError


@pytest.fixture
def tools():
    return [
        AgentTool(
            type=AgentToolType.PIECE,
            tool_name="slack_send_message",
            piece_metadata=AgentPieceToolMetadata(
                piece_name="@activepieces/piece-slack", piece_version="0.5.1", action_name="send_message"
            ),
        ),
        AgentTool(type=AgentToolType.FLOW, tool_name="refund_flow", external_flow_id="flow_9"),
        AgentTool(type=AgentToolType.MCP, tool_name="zendesk", server_url="https://mcp.example.com"),
    ]


class TestMarkdown:
    """Tests for markdown coalescing."""

    def test_consecutive_chunks_coalesce(self):
        """Chunks in a row join into one block."""
        builder = AgentOutputBuilder("p")
        builder.add_markdown("Hello")
        builder.add_markdown(", world")

        result = builder.build()

        assert result.steps == [MarkdownContentBlock(markdown="Hello, world")]

    def test_tool_call_splits_markdown(self, tools):
        """Markdown after a tool call opens a new block."""
        builder = AgentOutputBuilder("p")
        builder.add_markdown("Sending.")
        builder.start_tool_call("slack_send_message", "c1", {"instruction": "hi"}, tools)
        builder.add_markdown("Done.")

        steps = builder.build().steps

        assert [type(s) for s in steps] == [MarkdownContentBlock, ToolCallContentBlock, MarkdownContentBlock]


class TestToolCalls:
    """Tests for tool call records."""

    def test_piece_call_record(self, tools):
        """PIECE records carry piece identity."""
        builder = AgentOutputBuilder("p")
        builder.start_tool_call("slack_send_message", "c1", {"instruction": "hi"}, tools)

        block = builder.build().steps[0]

        assert block.tool_call_type == ToolCallType.PIECE
        assert block.status == ToolCallStatus.IN_PROGRESS
        assert block.piece_name == "@activepieces/piece-slack"
        assert block.piece_version == "0.5.1"
        assert block.action_name == "send_message"
        assert block.input == {"instruction": "hi"}
        assert block.start_time
        assert block.end_time is None

    def test_flow_call_record(self, tools):
        """FLOW records carry the flow id."""
        builder = AgentOutputBuilder("p")
        builder.start_tool_call("refund_flow", "c1", {}, tools)

        block = builder.build().steps[0]

        assert block.tool_call_type == ToolCallType.FLOW
        assert block.display_name == "refund_flow"
        assert block.external_flow_id == "flow_9"

    def test_mcp_call_matches_by_suffix(self, tools):
        """MCP tools match <called>_<registered> and strip the suffix for display."""
        builder = AgentOutputBuilder("p")
        builder.start_tool_call("list_tickets_zendesk", "c1", {}, tools)

        block = builder.build().steps[0]

        assert block.tool_call_type == ToolCallType.MCP
        assert block.display_name == "list_tickets"
        assert block.server_url == "https://mcp.example.com"

    def test_unknown_tool_raises(self, tools):
        """Unmatched names raise ToolNotFoundError."""
        builder = AgentOutputBuilder("p")

        with pytest.raises(ToolNotFoundError):
            builder.start_tool_call("delete_everything", "c1", {}, tools)

    def test_suffix_match_only_for_mcp(self, tools):
        """Non-MCP tools require exact names."""
        assert find_matching_tool("x_refund_flow", tools) is None

    def test_missing_kind_metadata_raises(self):
        """A PIECE tool without metadata is a programming error."""
        builder = AgentOutputBuilder("p")
        bare = [AgentTool(type=AgentToolType.PIECE, tool_name="t")]

        with pytest.raises(ValueError, match="Piece metadata is required"):
            builder.start_tool_call("t", "c1", {}, bare)

    def test_finish_sets_output(self, tools):
        """finish_tool_call completes with output and end time."""
        builder = AgentOutputBuilder("p")
        builder.start_tool_call("slack_send_message", "c1", {}, tools)
        builder.finish_tool_call("c1", {"status": "SUCCESS"})

        block = builder.build().steps[0]

        assert block.status == ToolCallStatus.COMPLETED
        assert block.output == {"status": "SUCCESS"}
        assert block.end_time is not None

    def test_fail_sets_failed_output(self, tools):
        """fail_tool_call completes with a FAILED marker."""
        builder = AgentOutputBuilder("p")
        builder.start_tool_call("slack_send_message", "c1", {}, tools)
        builder.fail_tool_call("c1")

        block = builder.build().steps[0]

        assert block.status == ToolCallStatus.COMPLETED
        assert block.output == {"status": "FAILED"}

    def test_unknown_call_id_raises(self):
        """Finishing an unknown call raises."""
        builder = AgentOutputBuilder("p")

        with pytest.raises(ToolCallNotFoundError):
            builder.finish_tool_call("missing", {})


class TestStatusAndStructuredOutput:
    """Tests for status, failure and structured output."""

    def test_defaults(self):
        """A new builder is in progress with no structured output."""
        result = AgentOutputBuilder("do it").build()

        assert result.status == AgentTaskStatus.IN_PROGRESS
        assert result.prompt == "do it"
        assert result.structured_output is None
        assert result.steps == []

    def test_fail_records_message_and_error(self):
        """fail() adds markdown and appends to structured errors."""
        builder = AgentOutputBuilder("p")
        builder.set_structured_output({"answer": None})
        builder.fail("Out of budget")

        result = builder.build()

        assert result.status == AgentTaskStatus.FAILED
        assert result.steps == [MarkdownContentBlock(markdown="Out of budget")]
        assert result.structured_output == {"answer": None, "errors": [{"message": "Out of budget"}]}

    def test_append_error_without_structured_output_is_noop(self):
        """No structured output: errors are not recorded."""
        builder = AgentOutputBuilder("p")
        builder.append_error_to_structured_output({"message": "x"})

        assert builder.build().structured_output is None

    def test_errors_accumulate(self):
        """Errors append in order."""
        builder = AgentOutputBuilder("p")
        builder.set_structured_output({})
        builder.append_error_to_structured_output("a")
        builder.append_error_to_structured_output("b")

        assert builder.build().structured_output == {"errors": ["a", "b"]}

    def test_build_is_a_snapshot(self):
        """Later builder changes don't leak into a built result."""
        builder = AgentOutputBuilder("p")
        builder.add_markdown("one")
        first = builder.build()
        builder.set_status(AgentTaskStatus.COMPLETED)
        builder.start_tool_call(
            "refund_flow",
            "c1",
            {},
            [AgentTool(type=AgentToolType.FLOW, tool_name="refund_flow", external_flow_id="f")],
        )

        assert first.status == AgentTaskStatus.IN_PROGRESS
        assert len(first.steps) == 1
