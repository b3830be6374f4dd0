"""HTTP transport for backend requests.

BackendClient implements the two request functions the core depends on,
send_generation_request and send_catalogue_request, on top of httpx. All
wire details come from the backend descriptor; this module only sends the
request and converts failures into the error taxonomy.
"""

import logging
import time
from typing import Any

import httpx

from retitler.config import GenerationConfig
from retitler.core.backends import BackendDescriptor, BackendRequest, describe, validate_endpoint
from retitler.utils.errors import ApiError, NetworkError, truncate_error

logger = logging.getLogger(__name__)

DEFAULT_GENERATION_TIMEOUT = 60.0
DEFAULT_CATALOGUE_TIMEOUT = 10.0


class BackendClient:
    """Sends descriptor-built requests and returns parsed results.

    Every call is bounded by a timeout. Timeouts surface as NetworkError
    with code TIMEOUT, never as an empty result.
    """

    def __init__(
        self,
        generation_timeout: float = DEFAULT_GENERATION_TIMEOUT,
        catalogue_timeout: float = DEFAULT_CATALOGUE_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            generation_timeout: Seconds allowed for a generation call.
            catalogue_timeout: Seconds allowed for a catalogue query.
            transport: Optional httpx transport, used by tests to stub the network.
        """
        self.generation_timeout = generation_timeout
        self.catalogue_timeout = catalogue_timeout
        self._transport = transport

    async def send_generation_request(
        self, backend_id: str, prompt: str, config: GenerationConfig
    ) -> str:
        """Send a prompt to a backend and return the raw completion text.

        Raises:
            UnsupportedBackendError: Unknown backend id.
            NetworkError: Timeout or connection failure.
            ApiError: Non-2xx response or undecodable body.
        """
        descriptor = describe(backend_id)
        request = descriptor.build_generation_request(prompt, config)
        data = await self._send(descriptor, request, self.generation_timeout)

        text = descriptor.parse_generation_response(data)
        if not text:
            logger.warning(
                f"{descriptor.name} returned no text content",
                extra={"backend": descriptor.id},
            )
        return text

    async def send_catalogue_request(
        self, backend_id: str, config: GenerationConfig
    ) -> list[str]:
        """Query a backend's model catalogue.

        Backends without a catalogue endpoint return their static list.

        Raises:
            ConfigurationError: Missing credential or URL.
            NetworkError: Timeout or connection failure.
            ApiError: Non-2xx response or malformed catalogue.
        """
        descriptor = describe(backend_id)
        if descriptor.build_catalogue_request is None:
            return list(descriptor.static_models)

        validate_endpoint(descriptor, config.endpoint(backend_id), require_model=False)
        request = descriptor.build_catalogue_request(config)
        data = await self._send(descriptor, request, self.catalogue_timeout)

        try:
            return descriptor.parse_catalogue_response(data)
        except ValueError as e:
            raise ApiError(str(e), backend=descriptor.id, status_code=200) from e

    async def _send(
        self, descriptor: BackendDescriptor, request: BackendRequest, timeout: float
    ) -> Any:
        start_time = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.request(
                    request.method,
                    request.url,
                    headers=request.headers,
                    params=request.params or None,
                    json=request.json,
                )
        except httpx.TimeoutException as e:
            raise NetworkError(
                f"{descriptor.name} request timed out after {timeout:g}s",
                backend=descriptor.id,
                timeout=True,
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(
                truncate_error(f"Could not connect to {descriptor.name}: {e}"),
                backend=descriptor.id,
            ) from e

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        # request.url never carries the credential; Google's key lives in params
        logger.debug(
            f"{request.method} {request.url} -> {response.status_code}",
            extra={
                "backend": descriptor.id,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        if not response.is_success:
            raise ApiError(
                truncate_error(
                    f"{descriptor.name} API error ({response.status_code}): {response.text}"
                ),
                backend=descriptor.id,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"Invalid response format from {descriptor.name} API",
                backend=descriptor.id,
                status_code=response.status_code,
            ) from e
