"""Backend descriptor table.

Each descriptor holds everything needed to talk to one backend: whether it
needs a credential, how to build a generation request and read its
response, and how to query and parse its model catalogue. The generator and
the model cache dispatch through this table and never branch on backend
identity themselves. Adding a backend means adding one entry to BACKENDS.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from retitler.utils.errors import ConfigurationError, UnsupportedBackendError

if TYPE_CHECKING:
    from retitler.config import BackendSettings, GenerationConfig

ANTHROPIC_VERSION = "2023-06-01"

# Extra output budget for Gemini, which counts reasoning tokens against the limit
GOOGLE_EXTRA_OUTPUT_TOKENS = 256


@dataclass(frozen=True)
class BackendRequest:
    """An outbound HTTP request, independent of the HTTP client used to send it."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    json: dict[str, Any] | None = None


@dataclass(frozen=True)
class BackendDescriptor:
    """Static description of one backend."""

    id: str
    name: str
    requires_credential: bool
    build_generation_request: Callable[[str, "GenerationConfig"], BackendRequest]
    parse_generation_response: Callable[[Any], str]
    build_catalogue_request: Callable[["GenerationConfig"], BackendRequest] | None
    parse_catalogue_response: Callable[[Any], list[str]]
    # Served instead of a catalogue query when build_catalogue_request is None
    static_models: tuple[str, ...] = ()


def _url(base: str, path: str) -> str:
    return base.rstrip("/") + path


def _dig(data: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists, returning None on any missing step."""
    for key in path:
        try:
            data = data[key]
        except (KeyError, IndexError, TypeError):
            return None
    return data


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _unique_sorted(names: list[Any]) -> list[str]:
    return sorted({name for name in names if isinstance(name, str) and name})


def _chat_messages(prompt: str) -> list[dict[str, str]]:
    return [{"role": "user", "content": prompt}]


# OpenAI


def _openai_generation(prompt: str, config: "GenerationConfig") -> BackendRequest:
    endpoint = config.endpoint("openai")
    return BackendRequest(
        method="POST",
        url=_url(endpoint.base_url, "/chat/completions"),
        headers={"Authorization": f"Bearer {endpoint.api_key}"},
        json={
            "model": endpoint.model,
            "messages": _chat_messages(prompt),
            "temperature": config.temperature,
            "max_tokens": config.max_title_length,
        },
    )


def _chat_completion_text(data: Any) -> str:
    return _text(_dig(data, "choices", 0, "message", "content"))


def _openai_catalogue(config: "GenerationConfig") -> BackendRequest:
    endpoint = config.endpoint("openai")
    return BackendRequest(
        method="GET",
        url=_url(endpoint.base_url, "/models"),
        headers={"Authorization": f"Bearer {endpoint.api_key}"},
    )


def _openai_models(data: Any) -> list[str]:
    entries = _dig(data, "data")
    if not isinstance(entries, list):
        raise ValueError("Invalid response format from OpenAI API")
    return _unique_sorted(
        [e.get("id") for e in entries if isinstance(e, dict) and "gpt" in str(e.get("id", ""))]
    )


# Anthropic


def _anthropic_generation(prompt: str, config: "GenerationConfig") -> BackendRequest:
    endpoint = config.endpoint("anthropic")
    return BackendRequest(
        method="POST",
        url=_url(endpoint.base_url, "/messages"),
        headers={
            "x-api-key": endpoint.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        },
        json={
            "model": endpoint.model,
            "messages": _chat_messages(prompt),
            "temperature": config.temperature,
            "max_tokens": config.max_title_length,
        },
    )


def _anthropic_text(data: Any) -> str:
    return _text(_dig(data, "content", 0, "text"))


# Google Gemini


def _google_generation(prompt: str, config: "GenerationConfig") -> BackendRequest:
    endpoint = config.endpoint("google")
    return BackendRequest(
        method="POST",
        url=_url(endpoint.base_url, f"/models/{endpoint.model}:generateContent"),
        params={"key": endpoint.api_key},
        json={
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": config.temperature,
                "maxOutputTokens": config.max_title_length + GOOGLE_EXTRA_OUTPUT_TOKENS,
            },
        },
    )


def _google_text(data: Any) -> str:
    # A candidate without parts (e.g. finishReason SAFETY) yields no text
    return _text(_dig(data, "candidates", 0, "content", "parts", 0, "text"))


def _google_catalogue(config: "GenerationConfig") -> BackendRequest:
    endpoint = config.endpoint("google")
    return BackendRequest(
        method="GET",
        url=_url(endpoint.base_url, "/models"),
        params={"key": endpoint.api_key},
    )


def _google_models(data: Any) -> list[str]:
    entries = _dig(data, "models")
    if not isinstance(entries, list):
        raise ValueError("Invalid response format from Google API")
    names = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        if "generateContent" in (entry.get("supportedGenerationMethods") or []):
            names.append(str(entry.get("name", "")).removeprefix("models/"))
    return _unique_sorted(names)


# Ollama


def _ollama_generation(prompt: str, config: "GenerationConfig") -> BackendRequest:
    endpoint = config.endpoint("ollama")
    return BackendRequest(
        method="POST",
        url=_url(endpoint.base_url, "/api/generate"),
        json={
            "model": endpoint.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": config.temperature},
        },
    )


def _ollama_text(data: Any) -> str:
    return _text(_dig(data, "response"))


def _ollama_catalogue(config: "GenerationConfig") -> BackendRequest:
    return BackendRequest(method="GET", url=_url(config.endpoint("ollama").base_url, "/api/tags"))


def _ollama_models(data: Any) -> list[str]:
    entries = _dig(data, "models")
    if not isinstance(entries, list):
        raise ValueError("Invalid response format from Ollama API")
    return _unique_sorted([e.get("name") for e in entries if isinstance(e, dict)])


# LM Studio (OpenAI-compatible server)


def _lmstudio_generation(prompt: str, config: "GenerationConfig") -> BackendRequest:
    endpoint = config.endpoint("lmstudio")
    return BackendRequest(
        method="POST",
        url=_url(endpoint.base_url, "/v1/chat/completions"),
        json={
            "model": endpoint.model,
            "messages": _chat_messages(prompt),
            "temperature": config.temperature,
            "max_tokens": config.max_title_length,
        },
    )


def _lmstudio_catalogue(config: "GenerationConfig") -> BackendRequest:
    return BackendRequest(method="GET", url=_url(config.endpoint("lmstudio").base_url, "/v1/models"))


def _lmstudio_models(data: Any) -> list[str]:
    entries = _dig(data, "data")
    if not isinstance(entries, list):
        raise ValueError("Invalid response format from LM Studio API")
    return _unique_sorted([e.get("id") for e in entries if isinstance(e, dict)])


BACKENDS: MappingProxyType[str, BackendDescriptor] = MappingProxyType(
    {
        "openai": BackendDescriptor(
            id="openai",
            name="OpenAI",
            requires_credential=True,
            build_generation_request=_openai_generation,
            parse_generation_response=_chat_completion_text,
            build_catalogue_request=_openai_catalogue,
            parse_catalogue_response=_openai_models,
        ),
        "anthropic": BackendDescriptor(
            id="anthropic",
            name="Anthropic",
            requires_credential=True,
            build_generation_request=_anthropic_generation,
            parse_generation_response=_anthropic_text,
            build_catalogue_request=None,
            parse_catalogue_response=list,
            static_models=(
                "claude-3-5-sonnet-20240620",
                "claude-3-haiku-20240307",
                "claude-3-opus-20240229",
                "claude-3-sonnet-20240229",
            ),
        ),
        "google": BackendDescriptor(
            id="google",
            name="Google Gemini",
            requires_credential=True,
            build_generation_request=_google_generation,
            parse_generation_response=_google_text,
            build_catalogue_request=_google_catalogue,
            parse_catalogue_response=_google_models,
        ),
        "ollama": BackendDescriptor(
            id="ollama",
            name="Ollama",
            requires_credential=False,
            build_generation_request=_ollama_generation,
            parse_generation_response=_ollama_text,
            build_catalogue_request=_ollama_catalogue,
            parse_catalogue_response=_ollama_models,
        ),
        "lmstudio": BackendDescriptor(
            id="lmstudio",
            name="LM Studio",
            requires_credential=False,
            build_generation_request=_lmstudio_generation,
            parse_generation_response=_chat_completion_text,
            build_catalogue_request=_lmstudio_catalogue,
            parse_catalogue_response=_lmstudio_models,
        ),
    }
)


def describe(backend_id: str) -> BackendDescriptor:
    """Look up the descriptor for a backend.

    Raises:
        UnsupportedBackendError: If the backend id is unknown.
    """
    try:
        return BACKENDS[backend_id]
    except KeyError:
        raise UnsupportedBackendError(backend_id) from None


def validate_endpoint(
    descriptor: BackendDescriptor,
    endpoint: "BackendSettings",
    require_model: bool = True,
) -> None:
    """Check that a backend has what it needs before any network call.

    Credential-based backends need an API key, local servers need a URL.

    Raises:
        ConfigurationError: Naming what is missing.
    """
    if descriptor.requires_credential:
        if not endpoint.api_key.strip():
            raise ConfigurationError(
                f"{descriptor.name} API key is not set. Please configure it in the settings.",
                backend=descriptor.id,
            )
    elif not endpoint.base_url.strip():
        raise ConfigurationError(
            f"{descriptor.name} URL is not set. Please configure it in the settings.",
            backend=descriptor.id,
        )

    if require_model and not endpoint.model.strip():
        raise ConfigurationError(
            f"{descriptor.name} model is not selected. Please select a model in the settings.",
            backend=descriptor.id,
        )
