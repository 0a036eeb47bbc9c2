"""
Registry client caching package.

TTL is the correctness bound; eviction under capacity pressure is FIFO.
"""

from .ttl_cache import CacheEntry, TTLCache

__all__ = ["CacheEntry", "TTLCache"]
