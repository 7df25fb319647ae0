"""API routers for the content service."""

from marlowequill.app.api.generate import router as generate_router

__all__ = ["generate_router"]
