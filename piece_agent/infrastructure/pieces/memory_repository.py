"""In-memory piece metadata repository."""

from piece_agent.domain.entities.piece import PieceMetadata


class InMemoryPieceRepository:
    """PieceMetadataRepository kept in process memory. Keyed by (name, version)."""

    def __init__(self, pieces: list[PieceMetadata] | None = None) -> None:
        self._pieces: dict[tuple[str, str], PieceMetadata] = {}
        for piece in pieces or []:
            self._pieces[(piece.name, piece.version)] = piece

    async def list_all(self) -> list[PieceMetadata]:
        return list(self._pieces.values())

    async def save(self, piece: PieceMetadata) -> None:
        self._pieces[(piece.name, piece.version)] = piece

    async def bulk_delete(self, keys: list[tuple[str, str]]) -> None:
        for key in keys:
            self._pieces.pop(key, None)
