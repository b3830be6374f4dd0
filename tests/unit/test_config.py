"""Tests for configuration module."""

import logging

import pytest
import yaml
from pydantic import ValidationError

from retitler.config import (
    DEFAULT_PROMPT,
    BackendSettings,
    DuplicateSettings,
    GenerationConfig,
    ModelCacheSettings,
    Settings,
    TitleSettings,
    _deep_merge,
    _load_yaml_config,
)
from retitler.utils.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep host environment variables and .env files out of these tests."""
    for name in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY", "RETITLER_BACKEND"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestTitleSettings:
    """Tests for TitleSettings."""

    def test_default_values(self):
        """Test default values are set correctly."""
        settings = TitleSettings()
        assert settings.temperature == 0.7
        assert settings.max_title_length == 200
        assert settings.max_content_length == 2000
        assert settings.timeout_seconds == 60
        assert settings.max_attempts == 1
        assert settings.prompt == DEFAULT_PROMPT

    def test_rejects_out_of_range(self):
        """Test invalid values are rejected."""
        with pytest.raises(ValidationError):
            TitleSettings(temperature=1.5)
        with pytest.raises(ValidationError):
            TitleSettings(max_title_length=0)

    def test_warns_on_missing_placeholder(self, caplog):
        """Test a prompt without {max_length} is accepted with a warning."""
        with caplog.at_level(logging.WARNING, logger="retitler.config"):
            settings = TitleSettings(prompt="Make a title.")
        assert settings.prompt == "Make a title."
        assert "{max_length}" in caplog.text


class TestModelCacheSettings:
    """Tests for ModelCacheSettings."""

    def test_default_values(self):
        """Test the catalogue TTL defaults to one hour."""
        settings = ModelCacheSettings()
        assert settings.ttl_seconds == 3600
        assert settings.timeout_seconds == 10


class TestDuplicateSettings:
    """Tests for DuplicateSettings."""

    def test_thresholds(self):
        """Test thresholds are exposed by tier name."""
        settings = DuplicateSettings(strict_threshold=0.99)
        assert settings.thresholds() == {"strict": 0.99, "normal": 0.85, "loose": 0.7}

    def test_defaults(self):
        """Test the default removal policy."""
        settings = DuplicateSettings()
        assert settings.remove_policy == "exact"
        assert settings.plain_text_window == 3
        assert settings.max_leading_blank_lines == 0


class TestGenerationConfig:
    """Tests for GenerationConfig."""

    def test_is_frozen(self):
        """Test snapshots cannot be mutated."""
        config = GenerationConfig(backend="ollama")
        with pytest.raises(ValidationError):
            config.max_title_length = 10

    def test_replaced_wholesale(self):
        """Test changes produce a new snapshot."""
        config = GenerationConfig(backend="ollama")
        changed = config.model_copy(update={"max_title_length": 10})
        assert config.max_title_length == 200
        assert changed.max_title_length == 10

    def test_endpoint_lookup(self):
        """Test endpoint() defaults to the active backend."""
        config = GenerationConfig(backend="ollama")
        assert config.endpoint().base_url == "http://localhost:11434"
        assert config.endpoint("lmstudio").base_url == "http://127.0.0.1:1234"

    def test_unknown_endpoint_is_empty(self):
        """Test an unconfigured backend yields empty settings."""
        assert GenerationConfig(backend="ollama").endpoint("nope") == BackendSettings()


class TestSettings:
    """Tests for main Settings class."""

    def test_default_values(self):
        """Test default values are set correctly."""
        settings = Settings()
        assert settings.backend == "ollama"
        assert set(settings.backends) == {"openai", "anthropic", "google", "ollama", "lmstudio"}
        assert isinstance(settings.title, TitleSettings)

    def test_vendor_key_aliases(self, monkeypatch):
        """Test vendor API key variables fill in backend credentials."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("GOOGLE_API_KEY", "g-test")
        settings = Settings()
        assert settings.backends["openai"].api_key == "sk-test"
        assert settings.backends["google"].api_key == "g-test"
        assert settings.backends["anthropic"].api_key == ""

    def test_configured_key_wins_over_alias(self, monkeypatch):
        """Test an explicitly configured key is not replaced by the alias."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        settings = Settings(backends={"openai": {"api_key": "sk-config"}})
        assert settings.backends["openai"].api_key == "sk-config"

    def test_prefixed_environment(self, monkeypatch):
        """Test RETITLER_ variables override defaults."""
        monkeypatch.setenv("RETITLER_BACKEND", "lmstudio")
        monkeypatch.setenv("RETITLER_TITLE__MAX_TITLE_LENGTH", "50")
        settings = Settings()
        assert settings.backend == "lmstudio"
        assert settings.title.max_title_length == 50

    def test_unknown_backend_rejected(self):
        """Test only supported backends can be selected."""
        with pytest.raises(ValidationError):
            Settings(backend="carrier-pigeon")

    def test_partial_backend_config_keeps_defaults(self):
        """Test configuring one field keeps the other defaults."""
        settings = Settings(backends={"ollama": {"model": "qwen2"}})
        assert settings.backends["ollama"].model == "qwen2"
        assert settings.backends["ollama"].base_url == "http://localhost:11434"
        assert "openai" in settings.backends

    def test_generation_config_snapshot(self):
        """Test the snapshot mirrors the settings."""
        settings = Settings(backend="lmstudio", title=TitleSettings(max_title_length=42))
        config = settings.generation_config()
        assert config.backend == "lmstudio"
        assert config.max_title_length == 42
        assert config.endpoint().base_url == "http://127.0.0.1:1234"

    def test_validate_required_local_backend(self):
        """Test the default local backend validates without credentials."""
        Settings().validate_required()

    def test_validate_required_missing_key(self):
        """Test a cloud backend without a key fails validation."""
        with pytest.raises(ConfigurationError, match="API key"):
            Settings(backend="anthropic").validate_required()

    def test_validate_required_with_alias(self, monkeypatch):
        """Test the aliased key satisfies validation."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        Settings(backend="anthropic").validate_required()


class TestYamlLoading:
    """Tests for YAML configuration loading."""

    def test_missing_files(self, tmp_path):
        """Test an empty directory yields empty config."""
        assert _load_yaml_config(tmp_path) == {}

    def test_local_overlay(self, tmp_path):
        """Test config.local.yaml is merged over config.yaml."""
        (tmp_path / "config.yaml").write_text(
            yaml.dump({"backend": "ollama", "title": {"max_title_length": 80, "temperature": 0.3}})
        )
        (tmp_path / "config.local.yaml").write_text(yaml.dump({"title": {"max_title_length": 40}}))

        config = _load_yaml_config(tmp_path)

        assert config["title"] == {"max_title_length": 40, "temperature": 0.3}

    def test_settings_from_config_dir(self, tmp_path):
        """Test Settings reads YAML and explicit values take precedence."""
        (tmp_path / "config.yaml").write_text(
            yaml.dump({"backend": "lmstudio", "models": {"ttl_seconds": 120}})
        )

        settings = Settings(config_dir=tmp_path, backend="ollama")

        assert settings.backend == "ollama"
        assert settings.models.ttl_seconds == 120

    def test_deep_merge(self):
        """Test nested dictionaries are merged, not replaced."""
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        override = {"a": {"y": 3}, "c": 4}
        assert _deep_merge(base, override) == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}
        assert base == {"a": {"x": 1, "y": 2}, "b": 1}
