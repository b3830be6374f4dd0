"""Dependency injection for API handlers."""

from typing import Annotated

from fastapi import Depends, Request

from retitler.config import Settings, get_settings
from retitler.core.generator import TitleGenerator
from retitler.core.model_cache import ModelCache
from retitler.core.transport import BackendClient
from retitler.documents.retitle import Retitler


def get_settings_dependency(request: Request) -> Settings:
    """Get application settings.

    Prefers the settings the app was created with, so create_app(settings)
    and the handlers agree. Tests can still replace this via dependency
    override.
    """
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


def get_backend_client(request: Request) -> BackendClient:
    return request.app.state.backend_client


def get_title_generator(request: Request) -> TitleGenerator:
    return request.app.state.title_generator


def get_model_cache(request: Request) -> ModelCache:
    return request.app.state.model_cache


def get_retitler(request: Request) -> Retitler:
    return request.app.state.retitler


BackendClientDep = Annotated[BackendClient, Depends(get_backend_client)]
TitleGeneratorDep = Annotated[TitleGenerator, Depends(get_title_generator)]
ModelCacheDep = Annotated[ModelCache, Depends(get_model_cache)]
RetitlerDep = Annotated[Retitler, Depends(get_retitler)]
