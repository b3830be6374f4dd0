"""TTL cache of model catalogues, one entry per backend.

Successful queries replace the entry. Failed queries keep the previous
model list and timestamp and record the error, so a backend that was
reachable earlier keeps serving its last known list during an outage.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from retitler.config import GenerationConfig
from retitler.core.backends import describe
from retitler.core.transport import BackendClient
from retitler.utils.errors import truncate_error, wrap_exception

DEFAULT_TTL_SECONDS = 60 * 60


@dataclass
class CacheEntry:
    """Cached catalogue for one backend."""

    models: list[str] = field(default_factory=list)
    last_updated: float = 0.0
    error: str | None = None

    def is_fresh(self, now: float, ttl: float) -> bool:
        """Fresh iff younger than the TTL and non-empty."""
        return bool(self.models) and now - self.last_updated < ttl


class ModelCache:
    """Memoizes model catalogues per backend, including failures.

    Not safe for overlapping refreshes of the same backend; callers check
    is_loading() before triggering one.
    """

    def __init__(
        self,
        client: BackendClient,
        get_config: Callable[[], GenerationConfig],
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ):
        self.client = client
        self.get_config = get_config
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self._entries: dict[str, CacheEntry] = {}
        self._loading: dict[str, bool] = {}

    async def get_models(self, backend_id: str) -> list[str]:
        """Return the catalogue, querying only when the cached one is stale.

        On failure the previous list is returned (empty if there was none).

        Raises:
            UnsupportedBackendError: Unknown backend id.
        """
        describe(backend_id)
        entry = self._entries.get(backend_id)
        if entry is not None and entry.is_fresh(self.clock(), self.ttl_seconds):
            return list(entry.models)

        return await self._query(backend_id)

    async def refresh_models(self, backend_id: str) -> list[str]:
        """Query the catalogue regardless of freshness.

        Raises:
            UnsupportedBackendError: Unknown backend id.
        """
        describe(backend_id)
        self._loading[backend_id] = True
        try:
            return await self._query(backend_id)
        finally:
            self._loading[backend_id] = False

    def clear(self, backend_id: str | None = None) -> None:
        """Drop the cached entry for one backend, or for all of them."""
        if backend_id is None:
            self._entries.clear()
        else:
            self._entries.pop(backend_id, None)

    def is_loading(self, backend_id: str) -> bool:
        return self._loading.get(backend_id, False)

    def get_cached_info(self, backend_id: str) -> CacheEntry | None:
        return self._entries.get(backend_id)

    async def _query(self, backend_id: str) -> list[str]:
        try:
            models = await self.client.send_catalogue_request(backend_id, self.get_config())
        except Exception as e:
            error = wrap_exception(e, backend=backend_id)
            message = truncate_error(error.user_message)
            previous = self._entries.get(backend_id, CacheEntry())
            self._entries[backend_id] = CacheEntry(
                models=list(previous.models),
                last_updated=previous.last_updated,
                error=message,
            )
            self.logger.warning(
                f"Failed to query models for {backend_id}: {error.message}",
                extra={"backend": backend_id, "error_code": error.code.value},
            )
            return list(previous.models)

        self._entries[backend_id] = CacheEntry(models=list(models), last_updated=self.clock())
        self.logger.info(
            f"Cached {len(models)} models for {backend_id}",
            extra={"backend": backend_id},
        )
        return list(models)
