"""Main FastAPI application."""

import logging
from typing import Dict, Optional

from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware

from ..config import load_config
from ..workflows import ALL_WORKFLOWS, Engine, Services, build_services
from .routes import events, webhooks


def create_app(
    cfg: Optional[Dict] = None,
    services: Optional[Services] = None,
    engine: Optional[Engine] = None,
) -> FastAPI:
    """Build the app; collaborators can be injected for tests."""
    cfg = cfg or load_config()
    logging.basicConfig(
        level=cfg.get("log_level", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if engine is None:
        services = services or build_services(cfg)
        engine = Engine(services.session_factory, services, ALL_WORKFLOWS, cfg=cfg)

    app = FastAPI(title="CodeSpecter Backend")
    app.state.cfg = cfg
    app.state.engine = engine

    # Setup CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_router = APIRouter(prefix="/api")

    api_router.include_router(events.router)
    api_router.include_router(webhooks.router)

    app.include_router(api_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
