"""Model catalogue response models."""

from datetime import datetime, timezone

from pydantic import BaseModel


class BackendModels(BaseModel):
    """Catalogue state for one backend."""

    backend: str
    name: str
    requires_credential: bool
    selected_model: str
    models: list[str]
    last_updated: datetime | None = None
    error: str | None = None
    loading: bool = False

    @staticmethod
    def timestamp(value: float) -> datetime | None:
        """Convert a cache timestamp (0 means never) to a datetime."""
        if not value:
            return None
        return datetime.fromtimestamp(value, tz=timezone.utc)


class CatalogueResponse(BaseModel):
    """Response for the catalogue listing endpoint."""

    active_backend: str
    backends: list[BackendModels]
