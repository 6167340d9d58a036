"""API routers for all endpoints."""

from engagement.routers import dashboard, metrics

__all__ = [
    "dashboard",
    "metrics",
]
