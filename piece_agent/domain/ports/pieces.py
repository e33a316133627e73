"""Piece Ports - collaborators the resolution engine calls but does not own."""

from typing import Any, Protocol

from pydantic import BaseModel

from piece_agent.domain.entities.piece import PieceAction, PieceMetadata
from piece_agent.domain.entities.tool_execution import (
    ExecuteToolOperation,
    ExecutionConstants,
    FlowRunResult,
    PieceActionStep,
)


class PieceLoaderPort(Protocol):
    """Looks up action declarations."""

    async def get_action_or_throw(
        self,
        piece_name: str,
        piece_version: str,
        action_name: str,
    ) -> PieceAction:
        """Return the action or raise ActionNotFoundError."""
        ...


class PropertyOptionsPort(Protocol):
    """Loads live options for a property given the input resolved so far.

    Returns the raw props payload: ``{"options": {"options": [{label, value}]}}``
    for dropdowns, ``{"options": {name: declaration, ...}}`` or
    ``{"options": {"disabled": True}}`` for dynamic properties.
    """

    async def execute_props(
        self,
        property_name: str,
        operation: ExecuteToolOperation,
        input: dict[str, Any],
    ) -> dict[str, Any]:
        ...


class ActionRuntimePort(Protocol):
    """Runs one executable step and reports per-step results."""

    async def run(self, step: PieceActionStep, constants: ExecutionConstants) -> FlowRunResult:
        ...


class PieceRegistryEntry(BaseModel):
    """Piece version advertised by the registry."""

    name: str
    version: str


class PieceRegistryPort(Protocol):
    """Remote catalogue of published pieces."""

    async def list_pieces(self) -> list[PieceRegistryEntry]:
        ...

    async def get_piece(self, name: str, version: str) -> PieceMetadata | None:
        """Fetch full metadata; None when the registry does not serve it."""
        ...


class PieceMetadataRepository(Protocol):
    """Storage of installed piece metadata."""

    async def list_all(self) -> list[PieceMetadata]:
        ...

    async def save(self, piece: PieceMetadata) -> None:
        ...

    async def bulk_delete(self, keys: list[tuple[str, str]]) -> None:
        """Delete by (name, version)."""
        ...
