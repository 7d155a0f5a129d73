"""API routes."""

from reelsynth.api.router import api_router

__all__ = ["api_router"]
