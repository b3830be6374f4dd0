"""Model catalogue endpoint handlers."""

import logging

from fastapi import APIRouter, Response

from retitler.api.deps import ModelCacheDep, SettingsDep
from retitler.core.backends import BACKENDS, describe
from retitler.core.model_cache import ModelCache
from retitler.models.catalogue import BackendModels, CatalogueResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _backend_models(
    cache: ModelCache, backend_id: str, selected_model: str, models: list[str] | None = None
) -> BackendModels:
    descriptor = describe(backend_id)
    entry = cache.get_cached_info(backend_id)
    return BackendModels(
        backend=backend_id,
        name=descriptor.name,
        requires_credential=descriptor.requires_credential,
        selected_model=selected_model,
        models=models if models is not None else (entry.models if entry else []),
        last_updated=BackendModels.timestamp(entry.last_updated) if entry else None,
        error=entry.error if entry else None,
        loading=cache.is_loading(backend_id),
    )


@router.get("/models", response_model=CatalogueResponse)
async def list_catalogues(settings: SettingsDep, cache: ModelCacheDep) -> CatalogueResponse:
    """Cached catalogue state for every backend. Never queries the network."""
    config = settings.generation_config()
    return CatalogueResponse(
        active_backend=config.backend,
        backends=[
            _backend_models(cache, backend_id, config.endpoint(backend_id).model)
            for backend_id in BACKENDS
        ],
    )


@router.get("/models/{backend_id}", response_model=BackendModels)
async def get_models(backend_id: str, settings: SettingsDep, cache: ModelCacheDep) -> BackendModels:
    """Model names for a backend, served from cache while fresh."""
    models = await cache.get_models(backend_id)
    selected = settings.generation_config().endpoint(backend_id).model
    return _backend_models(cache, backend_id, selected, models)


@router.post("/models/{backend_id}/refresh", response_model=BackendModels)
async def refresh_models(
    backend_id: str, settings: SettingsDep, cache: ModelCacheDep
) -> BackendModels:
    """Query a backend's catalogue now, ignoring the cache."""
    models = await cache.refresh_models(backend_id)
    logger.debug(f"Refreshed {len(models)} models for {backend_id}")
    selected = settings.generation_config().endpoint(backend_id).model
    return _backend_models(cache, backend_id, selected, models)


@router.delete("/models/cache", status_code=204)
async def clear_cache(cache: ModelCacheDep, backend: str | None = None) -> Response:
    """Invalidate the cached catalogue of one backend, or all of them."""
    if backend is not None:
        describe(backend)
    cache.clear(backend)
    return Response(status_code=204)
