"""
Registry client facade.

Every lookup goes cache -> retry policy -> (rate limiter -> transport ->
decoder) per attempt. Successful results are cached; failures never are.
Each public operation, composite ones included, runs under one deadline.
"""

import asyncio
import re
import time
from typing import Any, Awaitable, Callable, List, Optional

from shared.config import RegistryConfig
from shared.errors import InvalidRequestError, NotFoundError, OperationTimeoutError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, RetryPolicy, RetryState, RetryTransition

from registry_client.adapters import decoder
from registry_client.adapters.registry_transport import RegistryTransport
from registry_client.caching.ttl_cache import TTLCache
from registry_client.models import (
    CrateInfo,
    CrateStatus,
    DependencyInfo,
    DownloadStats,
    Endpoint,
    QueryKey,
    SearchResult,
    VersionDownload,
    VersionInfo,
)
from registry_client.ratelimit.limiter import RateLimiter


CRATE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
MAX_CRATE_NAME_LENGTH = 64
MAX_SEARCH_LIMIT = 100
TOP_VERSION_DOWNLOADS = 10

_UNSET: Any = object()


class RegistryClient:
    """Async client for package registry metadata."""

    def __init__(
        self,
        config: Optional[RegistryConfig] = None,
        *,
        transport: Optional[RegistryTransport] = None,
        cache: Optional[TTLCache] = _UNSET,
        limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or RegistryConfig()
        self.metrics = metrics
        self.logger = get_logger("registry.client")
        self._clock = clock

        self.transport = transport or RegistryTransport(
            self.config.api_url,
            timeout=self.config.request_timeout,
            user_agent=self.config.user_agent,
            metrics=metrics,
        )
        if cache is _UNSET:
            cache = TTLCache(
                max_entries=self.config.cache_max_entries,
                default_ttl=self.config.cache_ttl_seconds,
                clock=clock,
            ) if self.config.cache_enabled else None
        self.cache = cache
        self.limiter = limiter or RateLimiter(
            max_concurrent=self.config.max_concurrent,
            max_per_window=self.config.requests_per_minute,
            window_seconds=60.0,
        )
        self.retry_policy = retry_policy or RetryPolicy(RetryConfig(
            max_attempts=self.config.retry_attempts,
            base_delay=self.config.retry_base_delay,
            max_delay=self.config.retry_max_delay,
        ))

    async def __aenter__(self) -> "RegistryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.aclose()

    # Public operations

    def validate_crate_name(self, name: str) -> None:
        """Reject names the registry could never accept."""
        if not name:
            raise InvalidRequestError("Crate name cannot be empty", details={"crate": name})
        if len(name) > MAX_CRATE_NAME_LENGTH:
            raise InvalidRequestError(
                f"Crate name cannot be longer than {MAX_CRATE_NAME_LENGTH} characters",
                details={"crate": name}
            )
        if not CRATE_NAME_PATTERN.match(name):
            raise InvalidRequestError(
                f"Invalid crate name '{name}': must match {CRATE_NAME_PATTERN.pattern}",
                details={"crate": name}
            )

    async def exists(self, name: str, *, timeout: Optional[float] = None) -> bool:
        try:
            await self.info(name, timeout=timeout)
        except NotFoundError:
            self.logger.info("Crate not found", crate=name)
            return False
        return True

    async def info(self, name: str, *, timeout: Optional[float] = None) -> CrateInfo:
        self.validate_crate_name(name)
        return await self._with_deadline(self._info(name), timeout, Endpoint.CRATE, name)

    async def latest_version(self, name: str, *, timeout: Optional[float] = None) -> str:
        info = await self.info(name, timeout=timeout)
        return info.newest_version

    async def versions(self, name: str, *, timeout: Optional[float] = None) -> List[VersionInfo]:
        self.validate_crate_name(name)
        return await self._with_deadline(self._versions(name), timeout, Endpoint.VERSIONS, name)

    async def version_exists(self, name: str, version: str, *, timeout: Optional[float] = None) -> bool:
        versions = await self.versions(name, timeout=timeout)
        return any(v.number == version for v in versions)

    async def deps(self, name: str, version: Optional[str] = None, *,
                   timeout: Optional[float] = None) -> List[DependencyInfo]:
        """Dependencies of ``version``, or of the newest version when omitted.

        Resolving the newest version and fetching its dependencies share one
        deadline.
        """
        self.validate_crate_name(name)
        if version is not None and not version.strip():
            raise InvalidRequestError("Version cannot be empty", details={"crate": name})
        return await self._with_deadline(self._deps(name, version), timeout, Endpoint.DEPENDENCIES, name)

    async def search(self, query: str, limit: Optional[int] = None, *,
                     timeout: Optional[float] = None) -> SearchResult:
        if not query or not query.strip():
            raise InvalidRequestError("Search query cannot be empty")
        params = {"q": query}
        if limit is not None:
            if limit < 1:
                raise InvalidRequestError("Search limit must be positive", details={"limit": limit})
            params["per_page"] = min(limit, MAX_SEARCH_LIMIT)
        key = QueryKey.build(Endpoint.SEARCH, query, params=params)
        lookup = self._lookup(
            key,
            lambda: self.transport.get("/crates", params=params, crate_name=query, endpoint=key.endpoint.value),
            decoder.decode_search,
        )
        return await self._with_deadline(lookup, timeout, Endpoint.SEARCH, query)

    async def stats(self, name: str, *, timeout: Optional[float] = None) -> DownloadStats:
        self.validate_crate_name(name)
        stats = await self._with_deadline(self._stats(name), timeout, Endpoint.CRATE, name)
        self.logger.info(
            "Fetched download stats",
            crate=name,
            total=stats.total,
            versions=len(stats.versions)
        )
        return stats

    async def status(self, name: str, *, timeout: Optional[float] = None) -> CrateStatus:
        try:
            versions = await self.versions(name, timeout=timeout)
        except NotFoundError:
            return CrateStatus.NOT_FOUND
        if not versions:
            return CrateStatus.NOT_FOUND
        yanked = sum(1 for v in versions if v.yanked)
        if yanked == len(versions):
            return CrateStatus.YANKED
        if yanked:
            return CrateStatus.PARTIALLY_YANKED
        return CrateStatus.EXISTS

    # Operation bodies, run inside one deadline

    async def _info(self, name: str) -> CrateInfo:
        key = QueryKey.build(Endpoint.CRATE, name)
        return await self._lookup(
            key,
            lambda: self.transport.get(f"/crates/{name}", crate_name=name, endpoint=key.endpoint.value),
            decoder.decode_crate,
        )

    async def _versions(self, name: str) -> List[VersionInfo]:
        key = QueryKey.build(Endpoint.VERSIONS, name)
        result = await self._lookup(
            key,
            lambda: self.transport.get(f"/crates/{name}/versions", crate_name=name, endpoint=key.endpoint.value),
            decoder.decode_versions,
        )
        return list(result)

    async def _deps(self, name: str, version: Optional[str]) -> List[DependencyInfo]:
        if version is None:
            version = (await self._info(name)).newest_version
        key = QueryKey.build(Endpoint.DEPENDENCIES, name, version)
        result = await self._lookup(
            key,
            lambda: self.transport.get(
                f"/crates/{name}/{version}/dependencies",
                crate_name=name,
                version=version,
                endpoint=key.endpoint.value,
            ),
            decoder.decode_dependencies,
        )
        return list(result)

    async def _stats(self, name: str) -> DownloadStats:
        info = await self._info(name)
        versions = await self._versions(name)
        top = sorted(versions, key=lambda v: v.downloads, reverse=True)[:TOP_VERSION_DOWNLOADS]
        return DownloadStats(
            total=info.downloads,
            versions=[
                VersionDownload(version=v.number, downloads=v.downloads, date=v.published_at)
                for v in top
            ],
        )

    # Pipeline

    async def _with_deadline(self, operation: Awaitable[Any], timeout: Optional[float],
                             endpoint: Endpoint, name: str) -> Any:
        """Await ``operation`` under ``timeout`` or the configured operation timeout."""
        deadline = timeout if timeout is not None else self.config.operation_timeout
        if deadline is None:
            return await operation
        try:
            return await asyncio.wait_for(operation, deadline)
        except asyncio.TimeoutError:
            self.logger.warning("Registry operation timed out", endpoint=endpoint.value,
                                name=name, timeout=deadline)
            raise OperationTimeoutError(deadline, details={
                "endpoint": endpoint.value,
                "name": name,
            })

    async def _lookup(
        self,
        key: QueryKey,
        fetch: Callable[[], Awaitable[bytes]],
        decode: Callable[[bytes], Any],
    ) -> Any:
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                self.logger.debug("Cache hit", endpoint=key.endpoint.value, name=key.name, version=key.version)
                if self.metrics is not None:
                    self.metrics.record_cache("hit")
                return cached
            if self.metrics is not None:
                self.metrics.record_cache("miss")

        started = self._clock()
        value = await self._fetch(key, fetch, decode)

        if isinstance(value, list):
            value = tuple(value)
        if self.cache is not None:
            self.cache.put(key, value, fetched_at=started)
        return value

    async def _fetch(self, key: QueryKey, fetch: Callable[[], Awaitable[bytes]],
                     decode: Callable[[bytes], Any]) -> Any:
        async def attempt() -> Any:
            async with self.limiter.admit(self.config.rate_limit_timeout):
                raw = await fetch()
            return decode(raw)

        def on_transition(transition: RetryTransition) -> None:
            if transition.state is RetryState.BACKOFF and self.metrics is not None:
                self.metrics.increment_counter("registry_retries_total", endpoint=key.endpoint.value)

        return await self.retry_policy.execute(attempt, on_transition=on_transition)
