"""Configuration management using Pydantic Settings.

Loads configuration from multiple sources with the following priority (highest first):
1. Environment variables (RETITLER_* prefix)
2. .env file
3. config.local.yaml (if exists)
4. config.yaml
5. Default values

The title generator never reads Settings directly. It works from a frozen
GenerationConfig snapshot taken per call via Settings.generation_config().
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

BackendId = Literal["openai", "anthropic", "google", "ollama", "lmstudio"]

DEFAULT_PROMPT = (
    "Generate a concise, descriptive title for the following text. "
    "The title must be a maximum of {max_length} characters."
)

DEFAULT_REFINE_PROMPT = (
    "The following title is too long. Please shorten it to be under {max_length} "
    'characters, while preserving its core meaning: "{title}"'
)


class CorsSettings(BaseModel):
    """CORS configuration."""

    allowed_origins: list[str] = ["http://localhost:5173"]
    allowed_methods: list[str] = ["GET", "POST", "DELETE", "OPTIONS"]
    allowed_headers: list[str] = ["Content-Type", "X-Request-ID"]


class ServerSettings(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000
    cors: CorsSettings = Field(default_factory=CorsSettings)


class BackendSettings(BaseModel):
    """Credential, endpoint and selected model for one backend."""

    model_config = ConfigDict(frozen=True)

    api_key: str = ""
    base_url: str = ""
    model: str = ""


def _default_backends() -> dict[str, BackendSettings]:
    return {
        "openai": BackendSettings(
            base_url="https://api.openai.com/v1", model="gpt-4o-mini"
        ),
        "anthropic": BackendSettings(
            base_url="https://api.anthropic.com/v1", model="claude-3-haiku-20240307"
        ),
        "google": BackendSettings(
            base_url="https://generativelanguage.googleapis.com/v1beta",
            model="gemini-1.5-flash-latest",
        ),
        "ollama": BackendSettings(base_url="http://localhost:11434", model="llama3"),
        "lmstudio": BackendSettings(base_url="http://127.0.0.1:1234", model="llama-3"),
    }


class TitleSettings(BaseModel):
    """Settings for title generation."""

    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    max_title_length: int = Field(
        default=200,
        gt=0,
        description="Maximum title length in characters",
    )
    max_content_length: int = Field(
        default=2000,
        gt=0,
        description="Characters of the document sent to the backend",
    )
    prompt: str = DEFAULT_PROMPT
    refine_prompt: str = DEFAULT_REFINE_PROMPT
    lowercase_titles: bool = False
    strip_forbidden_chars: bool = True
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for a single generation call",
    )
    max_attempts: int = Field(
        default=1,
        ge=1,
        le=5,
        description="Attempts per document when the caller retries retryable failures",
    )

    @field_validator("prompt")
    @classmethod
    def check_prompt_placeholders(cls, v: str) -> str:
        """Warn when the initial prompt lacks {max_length}; it still passes through."""
        if "{max_length}" not in v:
            logger.warning("Title prompt has no {max_length} placeholder")
        return v

    @field_validator("refine_prompt")
    @classmethod
    def check_refine_placeholders(cls, v: str) -> str:
        """Warn when the refinement prompt lacks {max_length} or {title}."""
        for placeholder in ("{max_length}", "{title}"):
            if placeholder not in v:
                logger.warning(f"Refinement prompt has no {placeholder} placeholder")
        return v


class ModelCacheSettings(BaseModel):
    """Settings for the per-backend model catalogue cache."""

    ttl_seconds: float = Field(default=3600.0, gt=0)
    timeout_seconds: float = Field(default=10.0, gt=0)


class DuplicateSettings(BaseModel):
    """Thresholds and policy for duplicate-title removal."""

    enabled: bool = True
    sensitivity: Literal["strict", "normal", "loose"] = "normal"
    strict_threshold: float = Field(default=0.95, ge=0.0, le=1.0)
    normal_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    loose_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    exact_match_threshold: float = Field(default=0.98, ge=0.0, le=1.0)
    plain_text_window: int = Field(default=3, ge=0)
    max_leading_blank_lines: int = Field(default=0, ge=0)
    remove_policy: Literal["exact", "similar"] = "exact"

    def thresholds(self) -> dict[str, float]:
        return {
            "strict": self.strict_threshold,
            "normal": self.normal_threshold,
            "loose": self.loose_threshold,
        }


class DocumentSettings(BaseModel):
    """Filesystem document store configuration."""

    root_dir: Path = Path(".")
    extensions: list[str] = [".md"]


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class HealthSettings(BaseModel):
    """Health check configuration."""

    backend_check_enabled: bool = True
    timeout_seconds: float = 5.0


class GenerationConfig(BaseModel):
    """Immutable snapshot of everything one title generation needs.

    Replaced wholesale on change (model_copy(update=...)), never mutated.
    """

    model_config = ConfigDict(frozen=True)

    backend: str
    backends: dict[str, BackendSettings] = Field(default_factory=_default_backends)
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    max_title_length: int = Field(default=200, gt=0)
    max_content_length: int = Field(default=2000, gt=0)
    prompt: str = DEFAULT_PROMPT
    refine_prompt: str = DEFAULT_REFINE_PROMPT
    lowercase_titles: bool = False
    strip_forbidden_chars: bool = True

    def endpoint(self, backend: str | None = None) -> BackendSettings:
        """Credential/endpoint/model for a backend, empty if not configured."""
        return self.backends.get(backend or self.backend, BackendSettings())


def _load_yaml_config(config_dir: Path) -> dict:
    """Load config.yaml and overlay config.local.yaml if present."""
    config = {}

    config_file = config_dir / "config.yaml"
    if config_file.exists():
        with open(config_file) as f:
            config = yaml.safe_load(f) or {}

    local_config_file = config_dir / "config.local.yaml"
    if local_config_file.exists():
        with open(local_config_file) as f:
            local_config = yaml.safe_load(f) or {}
            config = _deep_merge(config, local_config)

    return config


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class Settings(BaseSettings):
    """Application settings loaded from environment, .env, and config files."""

    model_config = SettingsConfigDict(
        env_prefix="RETITLER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend: BackendId = "ollama"
    backends: dict[str, BackendSettings] = Field(default_factory=_default_backends)
    title: TitleSettings = Field(default_factory=TitleSettings)
    models: ModelCacheSettings = Field(default_factory=ModelCacheSettings)
    duplicates: DuplicateSettings = Field(default_factory=DuplicateSettings)
    documents: DocumentSettings = Field(default_factory=DocumentSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    health: HealthSettings = Field(default_factory=HealthSettings)

    # Direct environment variable mappings for vendor keys
    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    anthropic_api_key: str | None = Field(default=None, validation_alias="ANTHROPIC_API_KEY")
    google_api_key: str | None = Field(default=None, validation_alias="GOOGLE_API_KEY")

    def __init__(self, config_dir: Path | None = None, **data):
        """Initialize settings, loading from YAML if config_dir provided."""
        if config_dir is not None:
            yaml_config = _load_yaml_config(config_dir)
            merged = _deep_merge(yaml_config, data)
            super().__init__(**merged)
        else:
            super().__init__(**data)

        self._apply_key_aliases()

    @field_validator("backends", mode="before")
    @classmethod
    def merge_default_backends(cls, v):
        """Overlay configured backends onto the defaults so partial config works."""
        if not v:
            return _default_backends()
        merged = {name: s.model_dump() for name, s in _default_backends().items()}
        for name, value in v.items():
            if isinstance(value, BackendSettings):
                value = value.model_dump()
            merged[name] = {**merged.get(name, {}), **value}
        return merged

    def _apply_key_aliases(self) -> None:
        aliases = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
        }
        for name, key in aliases.items():
            current = self.backends.get(name, BackendSettings())
            if key and not current.api_key:
                self.backends[name] = current.model_copy(update={"api_key": key})

    def generation_config(self) -> GenerationConfig:
        """Take a fresh immutable snapshot for one generation call."""
        return GenerationConfig(
            backend=self.backend,
            backends=dict(self.backends),
            temperature=self.title.temperature,
            max_title_length=self.title.max_title_length,
            max_content_length=self.title.max_content_length,
            prompt=self.title.prompt,
            refine_prompt=self.title.refine_prompt,
            lowercase_titles=self.title.lowercase_titles,
            strip_forbidden_chars=self.title.strip_forbidden_chars,
        )

    def validate_required(self) -> None:
        """Validate that the active backend is usable.

        Raises:
            ConfigurationError: If the credential, endpoint or model is missing.
        """
        from retitler.core.backends import describe, validate_endpoint

        validate_endpoint(describe(self.backend), self.generation_config().endpoint())


@lru_cache
def get_settings(config_dir: Path | None = None) -> Settings:
    """Get cached settings instance.

    Args:
        config_dir: Optional path to config directory. If None, the project's
                   config/ directory is used when it exists.

    Returns:
        Settings instance.
    """
    if config_dir is None:
        project_root = Path(__file__).parent.parent.parent
        default_config_dir = project_root / "config"
        if default_config_dir.exists():
            config_dir = default_config_dir

    return Settings(config_dir=config_dir)
