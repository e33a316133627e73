"""Piece registry client - GET {registry_url}/registry and {registry_url}/{name}.

Retries transport errors with exponential backoff. HTTP error statuses are
not retried.
"""

import logging

import httpx
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from piece_agent.domain.entities.piece import PieceMetadata
from piece_agent.domain.ports.config import PiecesConfig
from piece_agent.domain.ports.pieces import PieceRegistryEntry

logger = logging.getLogger(__name__)

_transport_retry = retry(
    retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)


class PieceRegistryClient:
    """Implements PieceRegistryPort over HTTP."""

    def __init__(self, config: PiecesConfig) -> None:
        self._base_url = config.registry_url.rstrip("/")
        self._timeout = config.timeout

    @_transport_retry
    async def list_pieces(self) -> list[PieceRegistryEntry]:
        """All published (name, version) pairs.

        Raises:
            httpx.HTTPStatusError: Registry answered with an error status.

        """
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(f"{self._base_url}/registry")
            resp.raise_for_status()
            data = resp.json()
        return [PieceRegistryEntry.model_validate(item) for item in data if isinstance(item, dict)]

    @_transport_retry
    async def get_piece(self, name: str, version: str) -> PieceMetadata | None:
        """Full metadata for one piece version; None on error status or bad payload."""
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(f"{self._base_url}/{name}", params={"version": version} if version else None)
        if resp.status_code >= 400:
            logger.warning("Error reading piece metadata %s@%s: status %s", name, version, resp.status_code)
            return None
        try:
            return PieceMetadata.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            logger.warning("Invalid piece metadata %s@%s: %s", name, version, e)
            return None
