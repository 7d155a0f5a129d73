"""Utility modules for ReelSynth."""

from reelsynth.utils.logging import LogContext, setup_logging
from reelsynth.utils.rate_limiter import RateLimitConfig, RateLimiter

__all__ = [
    "LogContext",
    "setup_logging",
    "RateLimiter",
    "RateLimitConfig",
]
