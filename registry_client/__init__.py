"""
Concurrent client for package registry metadata.

The client turns logical lookups into a bounded set of HTTP requests:
- Caching: TTL cache keyed by QueryKey, populated only on success
- Rate limiting: per-client concurrency and request-window budget
- Retries: bounded exponential backoff for transient failures
- Batching: ordered fan-out with per-item failure isolation

Structure:
- registry_client.client: RegistryClient facade.
- registry_client.adapters: HTTP transport and response decoding.
- registry_client.caching: TTL cache.
- registry_client.ratelimit: Rate limiter.
- registry_client.batch: Batch input normalisation and orchestration.
"""

from .client import RegistryClient
from .batch import BatchOptions, BatchOrchestrator, BatchResult

__all__ = [
    "RegistryClient",
    "BatchOptions",
    "BatchOrchestrator",
    "BatchResult",
]
