"""
streambridge - HTTP Backend Adapter

Shared httpx plumbing for the concrete backend flavors: client setup,
auth headers, status checks and SSE streaming. Subclasses supply the
endpoint, payload and response/chunk parsing.
"""

from abc import abstractmethod
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from .base import (
    AbortSignal,
    AdapterConfig,
    AdapterResponse,
    BaseAdapter,
    ChunkStream,
    DeltaChunk,
)
from .sse import iter_sse_payloads
from ..core.classifier import normalize_headers
from ..core.errors import BackendConnectionError, HttpClientError
from ..core.models import ChatRequest
from ..observability.logging import get_logger


logger = get_logger(__name__)


def response_data(response: httpx.Response) -> Any:
    """Decoded JSON body, falling back to text."""
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpBackendAdapter(BaseAdapter):
    """Base for adapters talking to an AI Core deployment over HTTP."""

    DEFAULT_API_VERSION: Optional[str] = None

    @abstractmethod
    def _endpoint(self, config: AdapterConfig) -> str:
        pass

    @abstractmethod
    def _build_payload(
        self,
        config: AdapterConfig,
        request: ChatRequest,
        stream: bool
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    def _parse_response(self, data: Dict[str, Any]) -> AdapterResponse:
        pass

    @abstractmethod
    def _parse_chunk(self, payload: Dict[str, Any]) -> Optional[DeltaChunk]:
        pass

    # ============================================================
    # Contract
    # ============================================================

    async def generate(
        self,
        config: AdapterConfig,
        request: ChatRequest
    ) -> AdapterResponse:
        """Run a non-streaming completion."""
        url = self._endpoint(config)
        payload = self._build_payload(config, request, stream=False)

        async with self._client(config) as client:
            try:
                response = await client.post(
                    url,
                    json=payload,
                    headers=self._headers(config),
                    params=self._params(config),
                )
            except httpx.TransportError as e:
                raise BackendConnectionError.from_httpx(e) from None

            await self._raise_for_status(response)

            try:
                data = response.json()
            except ValueError:
                raise ValueError(
                    f"Could not parse JSON response body from {url}"
                ) from None

        result = self._parse_response(data)
        result.headers = normalize_headers(dict(response.headers))
        return result

    async def stream(
        self,
        config: AdapterConfig,
        request: ChatRequest,
        abort_signal: Optional[AbortSignal] = None
    ) -> ChunkStream:
        """Send the request, check its status, and return the chunk stream."""
        if abort_signal is not None:
            abort_signal.raise_if_aborted()

        url = self._endpoint(config)
        payload = self._build_payload(config, request, stream=True)
        client = self._client(config)

        try:
            http_request = client.build_request(
                "POST",
                url,
                json=payload,
                headers=self._headers(config),
                params=self._params(config),
            )
            response = await client.send(http_request, stream=True)
        except httpx.TransportError as e:
            await client.aclose()
            raise BackendConnectionError.from_httpx(e) from None
        except Exception:
            await client.aclose()
            raise

        if response.status_code >= 400:
            try:
                await self._raise_for_status(response)
            finally:
                await response.aclose()
                await client.aclose()

        logger.debug("Backend stream opened", url=url, status_code=response.status_code)

        async def close():
            try:
                await response.aclose()
            finally:
                await client.aclose()

        return ChunkStream(self._iter_chunks(response), abort_signal, on_close=close)

    # ============================================================
    # Private helper methods
    # ============================================================

    def _client(self, config: AdapterConfig) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=config.timeout, transport=config.transport)

    def _headers(self, config: AdapterConfig) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "AI-Resource-Group": config.resource_group,
        }
        if config.auth_token:
            headers["Authorization"] = f"Bearer {config.auth_token}"
        return headers

    def _params(self, config: AdapterConfig) -> Dict[str, str]:
        api_version = config.api_version or self.DEFAULT_API_VERSION
        return {"api-version": api_version} if api_version else {}

    def _deployment_url(self, config: AdapterConfig) -> str:
        if not config.deployment_id:
            raise ValueError(
                f"Failed to resolve deployment-id for model: {config.model_id or 'unknown'}"
            )
        base = config.base_url.rstrip("/")
        return f"{base}/v2/inference/deployments/{config.deployment_id}"

    async def _raise_for_status(self, response: httpx.Response):
        if response.status_code < 400:
            return

        await response.aread()
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise HttpClientError.from_status(
                response.status_code,
                data=response_data(response),
                headers=dict(response.headers),
                http_error=e,
            ) from None

    async def _iter_chunks(self, response: httpx.Response) -> AsyncIterator[DeltaChunk]:
        try:
            async for payload in iter_sse_payloads(response.aiter_lines()):
                chunk = self._parse_chunk(payload)
                if chunk is not None:
                    yield chunk
        except httpx.TransportError as e:
            raise BackendConnectionError.from_httpx(e) from None
