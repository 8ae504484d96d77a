from __future__ import annotations  # FastAPI server exposing the interview conductor

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agents.flow_manager import FlowDeps, build_flow_deps
from api.routes import plans_router, router
from config import load_config, settings
from storage.migrate import migrate

logger = logging.getLogger(__name__)


def _default_deps() -> FlowDeps:
    path = Path(settings.LLM_CONFIG_PATH)
    if not path.exists():
        logger.warning("LLM config %s not found; using deterministic fallbacks", path)
        return build_flow_deps(None)
    return build_flow_deps(load_config(path))


def create_app(deps: Optional[FlowDeps] = None) -> FastAPI:
    """Build the API app; ``deps`` overrides the configured LLM routes."""
    migrate()
    app = FastAPI(title="Interview Conductor API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.flow_deps = deps or _default_deps()
    app.include_router(router)
    app.include_router(plans_router)
    return app
