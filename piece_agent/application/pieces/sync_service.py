"""Piece Sync Service - mirror registry pieces into the repository, then refresh the cache."""

import asyncio
import time
from dataclasses import dataclass

import structlog

from piece_agent.domain.entities.piece import PieceMetadata
from piece_agent.domain.ports.config import PiecesConfig
from piece_agent.domain.ports.pieces import PieceMetadataRepository, PieceRegistryEntry, PieceRegistryPort
from piece_agent.infrastructure.pieces.local_cache import LocalPieceCache

log = structlog.get_logger()

OFFICIAL_AUTO = "official_auto"
PIECE_NAME_PREFIX = "@activepieces/piece-"


@dataclass
class PieceSyncResult:
    added: int
    deleted: int


def normalize_piece_names(names: list[str]) -> set[str]:
    """``slack`` -> ``@activepieces/piece-slack``; full names kept."""
    return {name if name.startswith(PIECE_NAME_PREFIX) else f"{PIECE_NAME_PREFIX}{name}" for name in names}


class PieceSyncService:
    """Installs new piece versions in batches and deletes ones the registry dropped."""

    def __init__(
        self,
        registry: PieceRegistryPort,
        repository: PieceMetadataRepository,
        cache: LocalPieceCache,
        config: PiecesConfig,
    ) -> None:
        self._registry = registry
        self._repository = repository
        self._cache = cache
        self._config = config

    async def sync(self) -> PieceSyncResult | None:
        """Run one sync. Returns None when disabled or when the sync failed (logged)."""
        if self._config.sync_mode != OFFICIAL_AUTO:
            log.info("piece_sync_disabled", sync_mode=self._config.sync_mode)
            return None
        piece_filter = normalize_piece_names(self._config.filter) if self._config.filter else None
        try:
            log.info("piece_sync_started", piece_filter=sorted(piece_filter) if piece_filter else "none")
            start = time.perf_counter()
            db_pieces, cloud_pieces = await asyncio.gather(
                self._repository.list_all(),
                self._registry.list_pieces(),
            )
            if piece_filter is not None:
                cloud_pieces = [p for p in cloud_pieces if p.name in piece_filter]
            added = await self._install_new_pieces(cloud_pieces, db_pieces)
            deleted = await self._delete_removed_pieces(db_pieces, cloud_pieces, piece_filter)
            log.info(
                "piece_sync_completed",
                added=added,
                deleted=deleted,
                duration_ms=int((time.perf_counter() - start) * 1000),
            )
            await self._cache.refresh()
            return PieceSyncResult(added=added, deleted=deleted)
        except Exception as e:
            log.error("piece_sync_failed", error=str(e), exc_info=True)
            return None

    async def _install_new_pieces(
        self,
        cloud_pieces: list[PieceRegistryEntry],
        db_pieces: list[PieceMetadata],
    ) -> int:
        installed = {(p.name, p.version) for p in db_pieces}
        to_fetch = [p for p in cloud_pieces if (p.name, p.version) not in installed]
        batch_size = max(1, self._config.sync_batch_size)
        for done in range(0, len(to_fetch), batch_size):
            batch = to_fetch[done:done + batch_size]
            await asyncio.gather(*(self._install(entry) for entry in batch))
        return len(to_fetch)

    async def _install(self, entry: PieceRegistryEntry) -> None:
        piece = await self._registry.get_piece(entry.name, entry.version)
        if piece is None:
            log.warning("piece_metadata_unavailable", name=entry.name, version=entry.version)
            return
        await self._repository.save(piece)

    async def _delete_removed_pieces(
        self,
        db_pieces: list[PieceMetadata],
        cloud_pieces: list[PieceRegistryEntry],
        piece_filter: set[str] | None,
    ) -> int:
        on_cloud = {(p.name, p.version) for p in cloud_pieces}
        to_delete = []
        for piece in db_pieces:
            if piece.piece_type != "OFFICIAL":
                continue
            outside_filter = piece_filter is not None and piece.name not in piece_filter
            if outside_filter or (piece.name, piece.version) not in on_cloud:
                to_delete.append((piece.name, piece.version))
        await self._repository.bulk_delete(to_delete)
        return len(to_delete)
