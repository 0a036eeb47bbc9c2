"""
HTTP transport for the package registry API.
"""

from typing import Any, Dict, Optional
import time

import httpx

from shared.config import DEFAULT_API_URL, DEFAULT_USER_AGENT
from shared.errors import DecodeError, NotFoundError, TransportError, UpstreamStatusError
from shared.logging import get_logger
from shared.metrics import MetricsCollector


class RegistryTransport:
    """Issues single requests against the registry and returns raw bodies.

    Status handling is the only interpretation done here: 404 becomes
    ``NotFoundError``, other non-2xx become ``UpstreamStatusError``, bodies
    httpx cannot decode become ``DecodeError`` and every other request
    failure becomes ``TransportError``.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        *,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.user_agent = user_agent
        self.metrics = metrics
        self.logger = get_logger("registry.transport")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": user_agent, "Accept": "application/json"},
        )

    async def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        crate_name: str,
        version: Optional[str] = None,
        endpoint: str = "unknown",
    ) -> bytes:
        """GET ``path`` relative to the registry base URL."""
        return await self.request("GET", path, params=params, crate_name=crate_name,
                                  version=version, endpoint=endpoint)

    async def post(
        self,
        path: str,
        json_body: Any,
        *,
        crate_name: str,
        endpoint: str = "unknown",
    ) -> bytes:
        """POST a JSON body to ``path`` relative to the registry base URL."""
        return await self.request("POST", path, json_body=json_body, crate_name=crate_name,
                                  endpoint=endpoint)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        crate_name: str,
        version: Optional[str] = None,
        endpoint: str = "unknown",
    ) -> bytes:
        url = f"{self.base_url}{path}"
        started = time.perf_counter()
        outcome = "error"
        try:
            try:
                response = await self._client.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    headers={"User-Agent": self.user_agent},
                    timeout=self.timeout,
                )
            except httpx.TimeoutException as exc:
                outcome = "timeout"
                self.logger.warning("Registry request timed out", url=url, error=str(exc))
                raise TransportError(
                    f"Request to {url} timed out",
                    details={"url": url, "timeout": self.timeout}
                ) from exc
            except httpx.TransportError as exc:
                self.logger.warning("Registry connection failed", url=url, error=str(exc))
                raise TransportError(
                    f"Connection to {url} failed: {exc}",
                    details={"url": url}
                ) from exc
            except httpx.DecodingError as exc:
                outcome = "decode_error"
                self.logger.warning("Registry response could not be decoded", url=url, error=str(exc))
                raise DecodeError(
                    f"Undecodable response from {url}: {exc}",
                    details={"url": url}
                ) from exc
            except httpx.RequestError as exc:
                self.logger.warning("Registry request failed", url=url, error=str(exc))
                raise TransportError(
                    f"Request to {url} failed: {exc}",
                    details={"url": url, "error_type": type(exc).__name__}
                ) from exc

            outcome = str(response.status_code)
            if response.is_success:
                self.logger.debug("Registry response received", url=url, status_code=response.status_code)
                return response.content

            if response.status_code == 404:
                self.logger.info("Registry resource not found", url=url)
                raise NotFoundError(crate_name, version, details={"url": url})

            self.logger.error(
                "Registry request failed",
                url=url,
                status_code=response.status_code,
                response=response.text[:200]
            )
            raise UpstreamStatusError(
                response.status_code,
                response.reason_phrase,
                details={"url": url}
            )
        finally:
            if self.metrics is not None:
                self.metrics.record_request(endpoint, outcome, time.perf_counter() - started)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
