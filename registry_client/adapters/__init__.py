"""
Adapters for the upstream registry.

- registry_transport: single GET/POST calls with status-to-error mapping
- decoder: raw JSON bodies into typed models

Keep adapters thin; caching, retries and admission live in the client.
"""

from .registry_transport import RegistryTransport

__all__ = [
    "RegistryTransport",
]
