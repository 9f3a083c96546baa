import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recap.api.deps import get_context, get_settings
from recap.app_shell.config import validate_ops_rules
from recap.rules.loader import load_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    logging.basicConfig(level=logging.INFO)
    settings = get_settings()

    # Load rules and validate on startup (fail-fast)
    try:
        rules = load_rules(settings.rules_path)
        validate_ops_rules(rules, settings.data_dir)
        get_context()
        logger.info("Rules loaded from %s", settings.rules_path)
    except Exception as e:
        logger.critical("Rules load failed: %s", e)
        sys.exit(1)

    yield
    # Shutdown cleanup if needed


app = FastAPI(
    title="Recap Engagement API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- Routers ---
from recap.api.routes import admin_engagement, watch  # noqa: E402

app.include_router(watch.router, prefix="/api/watch", tags=["Watch"])
app.include_router(
    admin_engagement.router, prefix="/api/admin/engagement", tags=["Admin Engagement"]
)


# CORS (Allow Frontend)
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "api"}
