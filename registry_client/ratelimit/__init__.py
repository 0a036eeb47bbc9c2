"""
Rate limiting package for outgoing registry requests.
"""

from .limiter import RateBudget, RateLimiter

__all__ = ["RateBudget", "RateLimiter"]
