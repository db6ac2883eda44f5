"""FastAPI prune service."""

from bonsaicss.api.server import create_app

__all__ = ["create_app"]
