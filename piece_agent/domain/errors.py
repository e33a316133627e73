"""Error taxonomy for tool resolution and execution."""


class PieceAgentError(Exception):
    """Base class for errors raised by the resolution engine."""


class CyclicDependencyError(PieceAgentError):
    """Action declares properties that refresh each other in a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(f"Cyclic property dependency: {' -> '.join(cycle)}")


class UnsupportedPropertyTypeError(PieceAgentError):
    """Property type can never be extracted from natural language (auth, secrets)."""

    def __init__(self, property_type: str) -> None:
        self.property_type = property_type
        super().__init__(f"Unsupported property type: {property_type}")


class ModelGenerationError(PieceAgentError):
    """Model output could not be turned into an object matching the schema.

    ``text`` is the raw generated text. ``parse_failed`` is True when the text
    was not valid JSON at all (as opposed to JSON that failed validation).
    """

    def __init__(self, message: str, text: str | None = None, parse_failed: bool = False) -> None:
        self.text = text
        self.parse_failed = parse_failed
        super().__init__(message)


class ActionNotFoundError(PieceAgentError):
    """Piece, version or action is not known to the piece loader."""

    def __init__(self, piece_name: str, piece_version: str, action_name: str) -> None:
        self.piece_name = piece_name
        self.piece_version = piece_version
        self.action_name = action_name
        super().__init__(f"Action not found: {piece_name}@{piece_version}/{action_name}")


class ToolNotFoundError(PieceAgentError):
    """Tool name from the model matches no registered agent tool."""

    def __init__(self, tool_name: str, registered: list[str]) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool {tool_name} not found in agent tools: [{', '.join(registered)}]")


class ToolCallNotFoundError(PieceAgentError):
    """finish/fail was called for a tool call id that was never started."""

    def __init__(self, tool_call_id: str) -> None:
        self.tool_call_id = tool_call_id
        super().__init__(f"Tool call {tool_call_id} not found in transcript")
