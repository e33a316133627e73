"""Dependency Injection Container - centralized service management."""

from collections.abc import Mapping
from functools import cached_property

import structlog

from piece_agent.application.agent.use_case import AgentUseCase
from piece_agent.application.agent_tools.executor import AgentToolExecutor
from piece_agent.application.agent_tools.property_options import PropertyOptionsLoader
from piece_agent.application.agent_tools.resolver import PropertyResolver
from piece_agent.application.agent_tools.tool_factory import AgentToolDefinition, build_piece_tools
from piece_agent.application.pieces.sync_service import PieceSyncService
from piece_agent.domain.entities.agent_result import AgentTool
from piece_agent.domain.entities.tool_execution import FlowActionType
from piece_agent.domain.ports.config import AppConfig
from piece_agent.domain.ports.llm import LLMPort
from piece_agent.domain.ports.pieces import (
    ActionRuntimePort,
    PieceMetadataRepository,
    PieceRegistryPort,
    PropertyOptionsPort,
)
from piece_agent.infrastructure.config.toml_loader import load_config
from piece_agent.infrastructure.pieces.local_cache import LocalPieceCache
from piece_agent.infrastructure.pieces.memory_repository import InMemoryPieceRepository
from piece_agent.shared.logging import setup_logging

log = structlog.get_logger()


class Container:
    """Dependency Injection Container with lazy initialization.

    All dependencies are created on first access and cached. The options
    port and action runtimes belong to the host engine and are injected.

    Usage:
        container = Container(props=engine_props, runtimes={FlowActionType.PIECE: engine_runtime})
        await container.startup()
        response = await container.executor.execute(operation)
        await container.shutdown()
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        props: PropertyOptionsPort | None = None,
        runtimes: Mapping[FlowActionType, ActionRuntimePort] | None = None,
        repository: PieceMetadataRepository | None = None,
        llm: LLMPort | None = None,
    ):
        """Initialize container with optional overrides."""
        self._config_override = config
        self._props = props
        self._runtimes = dict(runtimes or {})
        self._repository_override = repository
        self._llm_override = llm

    @cached_property
    def config(self) -> AppConfig:
        """Application configuration."""
        if self._config_override:
            return self._config_override
        return load_config()

    @cached_property
    def llm(self) -> LLMPort:
        """LLM adapter based on config provider."""
        if self._llm_override is not None:
            return self._llm_override
        if self.config.llm.provider == "lm_studio":
            from piece_agent.infrastructure.llm.openai_compatible import OpenAICompatibleAdapter
            return OpenAICompatibleAdapter(self.config.openai_compatible)

        from piece_agent.infrastructure.llm.ollama import OllamaAdapter
        return OllamaAdapter(self.config.ollama)

    @cached_property
    def extraction_model(self) -> str:
        """Model used for property extraction."""
        return self.config.models.for_provider(self.config.llm.provider, "extraction")

    @cached_property
    def agent_model(self) -> str:
        """Model used for the agent loop."""
        return self.config.models.for_provider(self.config.llm.provider, "agent")

    @cached_property
    def piece_repository(self) -> PieceMetadataRepository:
        """Piece metadata storage."""
        return self._repository_override or InMemoryPieceRepository()

    @cached_property
    def piece_cache(self) -> LocalPieceCache:
        """Process-scoped piece metadata cache. Empty until refresh() or a sync runs."""
        return LocalPieceCache(self.piece_repository)

    @cached_property
    def registry(self) -> PieceRegistryPort:
        """Cloud piece registry client."""
        from piece_agent.infrastructure.pieces.registry_client import PieceRegistryClient
        return PieceRegistryClient(self.config.pieces)

    @cached_property
    def sync_service(self) -> PieceSyncService:
        """Registry -> repository -> cache sync."""
        return PieceSyncService(self.registry, self.piece_repository, self.piece_cache, self.config.pieces)

    @cached_property
    def options_loader(self) -> PropertyOptionsLoader:
        """Dropdown option and dynamic property loading."""
        if self._props is None:
            raise RuntimeError("Container needs a PropertyOptionsPort (props=...) to resolve properties")
        return PropertyOptionsLoader(self._props)

    @cached_property
    def resolver(self) -> PropertyResolver:
        """Level-by-level property resolver."""
        return PropertyResolver(self.llm, self.options_loader)

    @cached_property
    def executor(self) -> AgentToolExecutor:
        """Tool executor (never raises)."""
        return AgentToolExecutor(self.piece_cache, self.resolver, self._runtimes)

    @cached_property
    def agent_use_case(self) -> AgentUseCase:
        """Agent tool-calling loop."""
        return AgentUseCase(self.llm, max_iterations=self.config.agent.max_iterations)

    async def piece_tools(self, tools: list[AgentTool], project_id: str = "") -> dict[str, AgentToolDefinition]:
        """Build callable definitions for the agent's PIECE tools."""
        return await build_piece_tools(
            tools,
            self.piece_cache,
            self.executor,
            model=self.extraction_model,
            project_id=project_id,
        )

    def apply_logging_config(self) -> None:
        """Apply logging from config (stdout + optional rotating file)."""
        c = self.config
        setup_logging(
            level=c.log_level,
            file_path=c.log_file or "",
            rotation_max_mb=c.log_rotation_max_mb,
            rotation_backups=c.log_rotation_backups,
        )

    async def startup(self) -> None:
        """Apply logging, sync pieces from the registry and fill the cache."""
        self.apply_logging_config()
        log.info("startup_begin", llm_provider=self.config.llm.provider, sync_mode=self.config.pieces.sync_mode)
        result = await self.sync_service.sync()
        if result is None:
            # Sync skipped or failed; serve whatever the repository holds
            await self.piece_cache.refresh()
        log.info("startup_complete", synced=result is not None)

    async def shutdown(self) -> None:
        """Close shared resources."""
        if hasattr(self.llm, "close"):
            await self.llm.close()
        log.info("shutdown_complete")

    def reset(self) -> None:
        """Reset all cached instances (useful for testing)."""
        for attr in list(self.__dict__.keys()):
            if not attr.startswith("_"):
                delattr(self, attr)


# Global container instance
_container: Container | None = None


def get_container() -> Container:
    """Get or create global container instance."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Reset global container (for testing)."""
    global _container
    if _container:
        _container.reset()
    _container = None
