"""
HTTP Layer Package.

FastAPI application factory, routers, response envelope and
exception handlers.
"""

from app.api.app import create_app

__all__ = ["create_app"]
