"""
mailmatch API Routes Package.

This package contains all FastAPI route handlers organized by domain.
Use this module to import routers for registration with the FastAPI app.

Example:
    from api.routes import resolve_router

    app.include_router(resolve_router)
"""

from api.routes.resolve import router as resolve_router
from api.routes.senders import router as senders_router


__all__ = [
    "resolve_router",
    "senders_router",
]
