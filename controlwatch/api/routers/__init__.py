"""API routers package."""

from .evaluation import router as evaluation_router

__all__ = ["evaluation_router"]
