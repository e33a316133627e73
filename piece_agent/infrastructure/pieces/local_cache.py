"""Local piece cache - process-scoped snapshot of installed piece metadata.

Explicit state with an explicit lifecycle: nothing is visible until
``refresh()`` runs, and the sync service calls ``refresh()`` after every
sync. Implements PieceLoaderPort.
"""

import asyncio
import logging

from piece_agent.domain.entities.piece import PieceAction, PieceMetadata
from piece_agent.domain.errors import ActionNotFoundError
from piece_agent.domain.ports.pieces import PieceMetadataRepository

logger = logging.getLogger(__name__)


class LocalPieceCache:
    """In-memory index of (piece name, version) -> metadata."""

    def __init__(self, repository: PieceMetadataRepository) -> None:
        self._repository = repository
        self._pieces: dict[tuple[str, str], PieceMetadata] = {}
        self._lock = asyncio.Lock()

    async def refresh(self) -> int:
        """Reload every piece from the repository. Returns the number cached."""
        async with self._lock:
            pieces = await self._repository.list_all()
            self._pieces = {(p.name, p.version): p for p in pieces}
        logger.info("Piece cache refreshed: %d pieces", len(self._pieces))
        return len(self._pieces)

    def get_piece(self, piece_name: str, piece_version: str) -> PieceMetadata | None:
        return self._pieces.get((piece_name, piece_version))

    async def get_action_or_throw(
        self,
        piece_name: str,
        piece_version: str,
        action_name: str,
    ) -> PieceAction:
        piece = self.get_piece(piece_name, piece_version)
        action = piece.actions.get(action_name) if piece else None
        if action is None:
            raise ActionNotFoundError(piece_name, piece_version, action_name)
        return action
