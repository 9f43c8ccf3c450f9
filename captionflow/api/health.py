"""
Health endpoints.

- /healthz: liveness, no dependencies
- /readyz: database connectivity + required tables
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from captionflow.core.database import Database, get_db

logger = logging.getLogger("captionflow")

root_router = APIRouter(tags=["health"])

REQUIRED_TABLES = [
    "users",
    "captions",
    "brand_voices",
    "social_connections",
    "billing_events",
    "waitlist",
    "beta_signups",
]


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz(db: Database = Depends(get_db)):
    """Readiness check: DB connectivity + required tables."""
    if not db.check_connection():
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    inspector = inspect(db.engine)
    missing = [t for t in REQUIRED_TABLES if not inspector.has_table(t)]
    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning(f"[readyz] {detail}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": detail})

    return {"status": "ok"}
