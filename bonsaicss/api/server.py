"""FastAPI server exposing the prune engine to build tools and editors."""

import logging
import threading
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bonsaicss import __version__
from bonsaicss.api.routers import prune_router, status_router
from bonsaicss.config import Settings
from bonsaicss.core.engine import BonsaiContext, create_bonsai_context

logger = logging.getLogger(__name__)


def create_app(settings: Settings, context: Optional[BonsaiContext] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings
        context: Prune context to serve; built from settings when omitted

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(title="BonsaiCSS", description="Unused CSS pruning service", version=__version__)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store settings and context in app state
    app.state.settings = settings
    app.state.context = context if context is not None else create_bonsai_context(settings.to_options())
    # Sync endpoints run in a thread pool; the context and its cache are not thread-safe.
    app.state.lock = threading.Lock()

    # Include routers
    app.include_router(status_router.router)
    app.include_router(prune_router.router)

    logger.info("Serving content globs %s from %s", app.state.context.options.content, app.state.context.options.cwd)
    return app
