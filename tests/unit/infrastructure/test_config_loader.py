"""Tests for TOML config loader."""

import os
import tempfile
from pathlib import Path
from unittest.mock import patch

from piece_agent.infrastructure.config.toml_loader import _apply_env_overrides, load_config


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_default_config(self):
        """Loads the shipped default configuration."""
        config = load_config()

        assert config.llm.provider == "ollama"
        assert config.agent.max_iterations == 15
        assert config.pieces.sync_mode == "official_auto"
        assert config.pieces.sync_batch_size == 5
        assert config.models.for_provider("lm_studio", "extraction") == "qwen2.5-7b-instruct"

    def test_missing_dir_uses_model_defaults(self):
        """No TOML files: pydantic defaults apply."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config = load_config(Path(tmpdir))

        assert config.pieces.registry_url == "https://cloud.activepieces.com/api/v1/pieces"
        assert config.log_level == "INFO"

    def test_merges_development_config(self):
        """Merges development.toml over default.toml."""
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "default.toml").write_text("""
[llm]
provider = "ollama"

[pieces]
sync_batch_size = 5
timeout = 10
""")
            (Path(tmpdir) / "development.toml").write_text("""
[pieces]
sync_batch_size = 2
""")
            config = load_config(Path(tmpdir))

            assert config.pieces.sync_batch_size == 2
            assert config.pieces.timeout == 10
            assert config.llm.provider == "ollama"

    def test_logging_section(self):
        """Logging keys map onto AppConfig."""
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "default.toml").write_text("""
[logging]
level = "DEBUG"
file = " logs/agent.log "
log_rotation_backups = 7
""")
            config = load_config(Path(tmpdir))

            assert config.log_level == "DEBUG"
            assert config.log_file == "logs/agent.log"
            assert config.log_rotation_backups == 7

    def test_model_overrides_per_provider(self):
        """Nested [models.<provider>] tables become overrides."""
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "default.toml").write_text("""
[models]
extraction = "base-model"

[models.lm_studio]
extraction = "studio-model"
""")
            config = load_config(Path(tmpdir))

            assert config.models.for_provider("ollama", "extraction") == "base-model"
            assert config.models.for_provider("lm_studio", "extraction") == "studio-model"
            assert config.models.for_provider("lm_studio", "agent") == "qwen2.5:7b"


class TestEnvOverrides:
    """Tests for _apply_env_overrides."""

    def test_provider_and_hosts(self):
        """LLM provider and endpoints come from env."""
        env = {
            "LLM_PROVIDER": "lm_studio",
            "OLLAMA_HOST": "http://gpu:11434",
            "OPENAI_BASE_URL": "http://studio:1234/v1",
            "OPENAI_API_KEY": " key ",
        }
        with patch.dict(os.environ, env, clear=True):
            config = _apply_env_overrides({})

        assert config["llm"]["provider"] == "lm_studio"
        assert config["ollama"]["host"] == "http://gpu:11434"
        assert config["openai_compatible"] == {"base_url": "http://studio:1234/v1", "api_key": "key"}

    def test_models_and_pieces(self):
        """Model ids, sync mode, filter and registry come from env."""
        env = {
            "EXTRACTION_MODEL": "x",
            "AGENT_MODEL": "y",
            "PIECES_SYNC_MODE": "NONE",
            "PIECES_FILTER": "slack, gmail,,",
            "PIECES_REGISTRY_URL": "http://mirror/pieces",
        }
        with patch.dict(os.environ, env, clear=True):
            config = _apply_env_overrides({"pieces": {"timeout": 5}})

        assert config["models"] == {"extraction": "x", "agent": "y"}
        assert config["pieces"] == {
            "timeout": 5,
            "sync_mode": "none",
            "filter": ["slack", "gmail"],
            "registry_url": "http://mirror/pieces",
        }

    def test_invalid_iterations_ignored(self):
        """Non-integer AGENT_MAX_ITERATIONS is ignored."""
        with patch.dict(os.environ, {"AGENT_MAX_ITERATIONS": "many"}, clear=True):
            config = _apply_env_overrides({})

        assert "max_iterations" not in config.get("agent", {})

    def test_iterations_and_logging(self):
        """Numeric and logging overrides apply."""
        env = {"AGENT_MAX_ITERATIONS": "4", "LOG_LEVEL": "debug", "LOG_FILE": "/tmp/a.log"}
        with patch.dict(os.environ, env, clear=True):
            config = _apply_env_overrides({})

        assert config["agent"]["max_iterations"] == 4
        assert config["logging"] == {"level": "DEBUG", "file": "/tmp/a.log"}

    def test_env_reaches_app_config(self):
        """Overrides flow through load_config."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with patch.dict(os.environ, {"PIECES_FILTER": "slack"}, clear=True):
                config = load_config(Path(tmpdir))

        assert config.pieces.filter == ["slack"]
