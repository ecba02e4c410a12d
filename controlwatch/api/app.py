"""FastAPI application for the controlwatch REST API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .. import __version__
from ..config import AppConfig
from ..evaluation import EvaluationService
from ..logging_utils import setup_logging
from .routers import evaluation_router

logger = logging.getLogger(__name__)


def create_app(service: EvaluationService | None = None) -> FastAPI:
    """Build the API app.

    Without ``service`` the app builds one from ``AppConfig.from_env()`` on startup and
    shuts its scheduler down on exit.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = service is None
        if owned:
            cfg = AppConfig.from_env()
            setup_logging(cfg.logging.level, json=cfg.logging.json_output)
            app.state.service = EvaluationService(cfg)
            logger.info("Evaluation service started (orchestrator %s)", cfg.orchestrator.url)
        else:
            app.state.service = service
        try:
            yield
        finally:
            if owned:
                app.state.service.shutdown()

    app = FastAPI(
        title="controlwatch API",
        description=(
            "REST API of the controlwatch evaluation service.\n\n"
            "**Features:**\n"
            "- Periodic evaluation of cloud services against control catalogs.\n"
            "- Manual compliance results with an expiry date.\n"
            "- Filterable, paginated evaluation results.\n\n"
            "**Authentication:**\n"
            "Bearer tokens are expected to be authenticated by a gateway. With the `jwt` "
            "authorization strategy the token's target claim restricts access."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    if service is not None:
        app.state.service = service

    app.include_router(evaluation_router)

    @app.get("/", tags=["health"])
    def root():
        """Health check endpoint."""
        return {
            "service": "controlwatch API",
            "version": __version__,
            "status": "healthy",
            "endpoints": ["/v1/evaluation/evaluate", "/v1/evaluation/results", "/v1/evaluation/jobs"],
        }

    return app


app = create_app()
