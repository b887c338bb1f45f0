"""FastAPI application for the kidsafe moderation service.

Provides REST API endpoints wrapping the kidsafe Python package for:
- Evaluating content on write paths (with Block/Flag records)
- Preview checks that record nothing
- Listing, reviewing and superseding moderation records
- Per-author moderation statistics
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the kidsafe package is importable by adding the project root to sys.path.
_project_root = str(Path(__file__).resolve().parents[3])
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kidsafe import __version__
from kidsafe.config import get_settings
from kidsafe.utils.logging import configure_logging
from web.backend.app.routers import moderation

configure_logging(get_settings().log_level)

app = FastAPI(
    title="kidsafe API",
    description=(
        "REST API for the kidsafe content moderation pipeline. "
        "Provides endpoints for content evaluation, moderation record "
        "review, and per-author statistics."
    ),
    version=__version__,
)

# ---------------------------------------------------------------------------
# CORS middleware (allow all origins for development)
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Include routers
# ---------------------------------------------------------------------------
app.include_router(moderation.router)


# ---------------------------------------------------------------------------
# Root and health-check endpoints
# ---------------------------------------------------------------------------


@app.get("/", tags=["meta"])
async def root():
    """Return basic API information."""
    return {
        "name": "kidsafe API",
        "version": __version__,
        "description": "Content safety and moderation REST API",
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


@app.get("/health", tags=["meta"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
