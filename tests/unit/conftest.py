"""Shared fixtures for unit tests."""

from collections.abc import Callable

import pytest

from retitler.config import (
    BackendSettings,
    DocumentSettings,
    GenerationConfig,
    Settings,
    _default_backends,
)


def make_config(backend: str = "ollama", **overrides) -> GenerationConfig:
    """Build a GenerationConfig with a usable endpoint for every backend."""
    backends = _default_backends()
    for name in ("openai", "anthropic", "google"):
        backends[name] = backends[name].model_copy(update={"api_key": f"{name}-test-key"})
    backends.update(overrides.pop("backends", {}))
    return GenerationConfig(backend=backend, backends=backends, **overrides)


class FakeBackendClient:
    """Stands in for BackendClient, replaying scripted replies.

    Each reply is either a string/list to return or an exception to raise.
    """

    def __init__(self, generation=(), catalogue=()):
        self.generation = list(generation)
        self.catalogue = list(catalogue)
        self.prompts: list[str] = []
        self.catalogue_calls: list[str] = []

    async def send_generation_request(self, backend_id, prompt, config):
        self.prompts.append(prompt)
        reply = self.generation.pop(0) if len(self.generation) > 1 else self.generation[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def send_catalogue_request(self, backend_id, config):
        self.catalogue_calls.append(backend_id)
        reply = self.catalogue.pop(0) if len(self.catalogue) > 1 else self.catalogue[0]
        if isinstance(reply, Exception):
            raise reply
        return list(reply)


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def config_factory() -> Callable[..., GenerationConfig]:
    """Factory for GenerationConfig snapshots."""
    return make_config


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def unconfigured_openai() -> GenerationConfig:
    """Config whose active backend has no API key."""
    no_key = BackendSettings(base_url="https://api.openai.com/v1", model="gpt-4o-mini")
    return make_config("openai", backends={"openai": no_key})


@pytest.fixture
def make_client() -> type[FakeBackendClient]:
    """Factory for scripted backend clients."""
    return FakeBackendClient


@pytest.fixture
def settings(monkeypatch, tmp_path):
    """Settings isolated from the host environment, documents rooted at tmp_path."""
    for name in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY", "RETITLER_BACKEND"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return Settings(documents=DocumentSettings(root_dir=tmp_path))
