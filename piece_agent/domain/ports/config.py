"""Config models - typed application configuration."""

from pydantic import BaseModel, ConfigDict


class ModelConfig(BaseModel):
    """Model IDs per role. Provider-agnostic defaults + per-provider overrides."""

    extraction: str = "qwen2.5:7b"  # Property extraction (structured output)
    agent: str = "qwen2.5:7b"  # Agent loop (tool calling)
    # Per-provider overrides. Keys: provider name (lm_studio, ollama, ...), values: role -> model.
    overrides: dict[str, dict[str, str]] = {}

    model_config = ConfigDict(extra="ignore")

    def for_provider(self, provider: str, role: str) -> str:
        """Resolve model ID for a role, preferring the provider override."""
        override = self.overrides.get(provider, {}).get(role)
        if override:
            return override
        return getattr(self, role)


class LLMConfig(BaseModel):
    """LLM provider selection."""

    provider: str = "ollama"  # "ollama" | "lm_studio"


class OllamaConfig(BaseModel):
    """Ollama connection configuration."""

    host: str = "http://localhost:11434"
    timeout: int = 120
    num_ctx: int | None = None  # Context window. None = model default.
    num_predict: int | None = None  # Max tokens to generate. None = model default.


class OpenAICompatibleConfig(BaseModel):
    """LM Studio, vLLM, LocalAI - OpenAI-compatible API."""

    base_url: str = "http://localhost:1234/v1"
    api_key: str = ""
    timeout: int = 120
    max_tokens: int | None = None


class AgentConfig(BaseModel):
    """Agent loop settings."""

    max_iterations: int = 15  # Max tool-call rounds per run


class PiecesConfig(BaseModel):
    """Piece metadata sync settings."""

    sync_mode: str = "official_auto"  # "official_auto" | "none"
    registry_url: str = "https://cloud.activepieces.com/api/v1/pieces"
    filter: list[str] = []  # Piece names to sync; empty = all
    sync_batch_size: int = 5  # Concurrent metadata fetches per batch
    timeout: int = 30


class AppConfig(BaseModel):
    """Full application configuration."""

    llm: LLMConfig = LLMConfig()
    ollama: OllamaConfig = OllamaConfig()
    openai_compatible: OpenAICompatibleConfig = OpenAICompatibleConfig()
    models: ModelConfig = ModelConfig()
    agent: AgentConfig = AgentConfig()
    pieces: PiecesConfig = PiecesConfig()
    log_level: str = "INFO"
    # Log file: path relative to cwd or absolute. Empty = only stdout.
    log_file: str = ""
    log_rotation_max_mb: int = 5
    log_rotation_backups: int = 3
