"""
Land Registry gateway — FastAPI application entry point.

Creates the gateway on startup, closes its HTTP client on shutdown,
and exposes a health check so Docker knows we're alive.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.dependencies import close_gateway, init_gateway
from app.routers import land_registry

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Land Registry gateway...")
    gateway = init_gateway(app, settings)
    logger.info(f"Gateway ready → {gateway.base_url}")
    yield
    logger.info("Shutting down...")
    await close_gateway(app)


app = FastAPI(
    title="Land Registry Gateway",
    description="Read-through caching gateway for Land Registry ownership and price-paid lookups.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(land_registry.router, prefix="/api/land-registry", tags=["land-registry"])


# ── Health check ───────────────────────────────────────────────────────────
@app.get("/health", tags=["health"])
async def health() -> dict[str, Any]:
    gateway = getattr(app.state, "gateway", None)
    return {
        "status": "ok",
        "version": "0.1.0",
        "land_registry_configured": settings.land_registry_configured,
        "cache_entries": gateway.cache_stats().size if gateway else 0,
    }
