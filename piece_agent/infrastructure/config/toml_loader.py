"""TOML configuration loader with env overrides."""

import logging
import os
import tomllib
from pathlib import Path

from piece_agent.domain.ports.config import (
    AgentConfig,
    AppConfig,
    LLMConfig,
    ModelConfig,
    OllamaConfig,
    OpenAICompatibleConfig,
    PiecesConfig,
)

logger = logging.getLogger(__name__)


def _load_toml(path: Path) -> dict:
    """Load TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _load_models_config(raw: dict) -> ModelConfig:
    """Load ModelConfig with per-provider overrides from nested TOML tables."""
    overrides = {k: dict(v) for k, v in raw.items() if isinstance(v, dict)}
    defaults = {k: v for k, v in raw.items() if k not in overrides and isinstance(v, str)}
    return ModelConfig(overrides=overrides, **defaults)


def _apply_env_overrides(config: dict) -> dict:
    """Apply environment variable overrides."""
    if provider := os.getenv("LLM_PROVIDER"):
        config.setdefault("llm", {})["provider"] = provider
    if host := os.getenv("OLLAMA_HOST"):
        config.setdefault("ollama", {})["host"] = host
    if base_url := os.getenv("OPENAI_BASE_URL"):
        config.setdefault("openai_compatible", {})["base_url"] = base_url
    if key := os.getenv("OPENAI_API_KEY"):
        config.setdefault("openai_compatible", {})["api_key"] = key.strip()
    if model := os.getenv("EXTRACTION_MODEL"):
        config.setdefault("models", {})["extraction"] = model
    if model := os.getenv("AGENT_MODEL"):
        config.setdefault("models", {})["agent"] = model
    if iterations := os.getenv("AGENT_MAX_ITERATIONS"):
        try:
            config.setdefault("agent", {})["max_iterations"] = int(iterations)
        except ValueError:
            logger.warning("Invalid AGENT_MAX_ITERATIONS env value: %r, ignoring", iterations)
    if mode := os.getenv("PIECES_SYNC_MODE"):
        config.setdefault("pieces", {})["sync_mode"] = mode.strip().lower()
    if names := os.getenv("PIECES_FILTER"):
        config.setdefault("pieces", {})["filter"] = [n.strip() for n in names.split(",") if n.strip()]
    if url := os.getenv("PIECES_REGISTRY_URL"):
        config.setdefault("pieces", {})["registry_url"] = url.strip()
    if level := os.getenv("LOG_LEVEL"):
        config.setdefault("logging", {})["level"] = level.upper()
    if path := os.getenv("LOG_FILE"):
        config.setdefault("logging", {})["file"] = path.strip()
    return config


def load_config(config_dir: Path | None = None) -> AppConfig:
    """Load configuration from TOML files with env overrides.

    Loads default.toml, then development.toml if exists.
    """
    if config_dir is None:
        config_dir = Path(__file__).resolve().parent.parent.parent.parent / "config"

    config: dict = {}

    default_path = config_dir / "default.toml"
    if default_path.exists():
        config = _load_toml(default_path)

    dev_path = config_dir / "development.toml"
    if dev_path.exists():
        dev_config = _load_toml(dev_path)
        for key, value in dev_config.items():
            if isinstance(value, dict) and key in config and isinstance(config[key], dict):
                config[key] = {**config[key], **value}
            else:
                config[key] = value

    config = _apply_env_overrides(config)

    logging_raw = config.get("logging") or {}

    return AppConfig(
        llm=LLMConfig(**(config.get("llm") or {})),
        ollama=OllamaConfig(**(config.get("ollama") or {})),
        openai_compatible=OpenAICompatibleConfig(**(config.get("openai_compatible") or {})),
        models=_load_models_config(config.get("models") or {}),
        agent=AgentConfig(**(config.get("agent") or {})),
        pieces=PiecesConfig(**(config.get("pieces") or {})),
        log_level=logging_raw.get("level", "INFO"),
        log_file=(logging_raw.get("file") or "").strip(),
        log_rotation_max_mb=int(logging_raw.get("log_rotation_max_mb", 5)),
        log_rotation_backups=int(logging_raw.get("log_rotation_backups", 3)),
    )
