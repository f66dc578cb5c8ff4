"""Tests for configuration loading and validation."""

from pathlib import Path
from tempfile import TemporaryDirectory

import pytest
import yaml

from chatgate.config.loader import ConfigError, load_config, save_config
from chatgate.config.schema import GatewayConfig


def test_default_config():
    """Test that default config has expected values."""
    config = GatewayConfig()

    assert config.agent.max_steps == 20
    assert config.agent.backend_timeout == 120
    assert config.agent.tool_timeout == 30
    assert config.agent.run_timeout == 300
    assert config.agent.save_partial is False
    assert config.agent.system_prompt

    assert config.providers.unknown_provider == "reject"
    assert config.include_builtin_models is True
    assert config.models == []

    assert config.tools.calculate is True
    assert config.tools.code_executor is False

    assert config.storage.backend == "memory"
    assert config.storage.user_header == "X-User-Id"
    assert config.logging.level == "INFO"

    assert config.server.host == "127.0.0.1"
    assert config.server.port == 8000


def test_load_config_nonexistent_returns_defaults():
    """Test that loading a nonexistent config returns defaults."""
    with TemporaryDirectory() as tmpdir:
        config = load_config(Path(tmpdir) / "nonexistent.yaml")

        assert config.agent.max_steps == 20


def test_load_config_empty_file_returns_defaults():
    """Test that an empty config file returns defaults."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "empty.yaml"
        config_path.write_text("")

        assert load_config(config_path) == GatewayConfig()


def test_load_config_partial_override():
    """Test that partial config overrides only specified values."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "partial.yaml"
        config_path.write_text(
            yaml.safe_dump(
                {
                    "agent": {"max_steps": 5},
                    "providers": {"api_keys": {"openai": "sk-config"}},
                    "models": [
                        {
                            "value": "local-qwen",
                            "label": "Qwen (local)",
                            "provider": "ollama",
                            "model_id": "qwen2.5:7b",
                            "supports_tools": True,
                        }
                    ],
                }
            )
        )

        config = load_config(config_path)

        assert config.agent.max_steps == 5
        assert config.agent.tool_timeout == 30
        assert config.providers.api_keys == {"openai": "sk-config"}
        assert config.models[0].model_id == "qwen2.5:7b"


@pytest.mark.parametrize(
    "content",
    [
        "agent: [unclosed",
        "agent:\n  max_steps: 0\n",
        "agent:\n  max_steps: 500\n",
        "storage:\n  backend: postgres\n",
        "providers:\n  unknown_provider: guess\n",
    ],
)
def test_invalid_config_raises(content):
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "bad.yaml"
        config_path.write_text(content)

        with pytest.raises(ConfigError):
            load_config(config_path)


def test_save_and_reload_config():
    """Test that a saved config loads back unchanged."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "nested" / "chatgate.yaml"
        config = GatewayConfig()
        config.agent.max_steps = 7
        config.storage.backend = "sqlite"

        save_config(config, config_path)

        assert load_config(config_path) == config
