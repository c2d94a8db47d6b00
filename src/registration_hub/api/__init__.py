"""API routers for the registration hub."""

from . import controllers, health

__all__ = ["controllers", "health"]
