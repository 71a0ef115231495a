"""
Health and setup endpoints.

Lightweight operational checks without exposing secrets, plus the
idempotent ledger-table bootstrap used on fresh databases.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from mockupgen.api.deps import get_access_evaluator
from mockupgen.core.auth import get_current_user_id
from mockupgen.core.database import get_engine
from mockupgen.features.access.service import AccessEvaluator

logger = logging.getLogger("mockupgen")

router = APIRouter(tags=["health"])

REQUIRED_TABLES = ["feature_usage", "user_subscriptions"]


@router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Readiness check: DB connectivity + required tables."""
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")

        inspector = inspect(engine)
        missing = [t for t in REQUIRED_TABLES if not inspector.has_table(t)]
        if missing:
            detail = f"missing tables: {', '.join(missing)}"
            logger.warning(f"[readyz] {detail}")
            return JSONResponse(status_code=503, content={"status": "error", "detail": detail})

        return {"status": "ok"}
    except (SQLAlchemyError, ValueError) as e:
        logger.error(f"[readyz] readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})


@router.post("/api/setup/feature-usage")
def setup_feature_usage(
    user_id: str = Depends(get_current_user_id),
    evaluator: AccessEvaluator = Depends(get_access_evaluator),
):
    """Create the usage ledger table if it does not exist."""
    if not evaluator.ledger.ensure_schema():
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Failed to create feature_usage table"},
        )
    logger.info("[setup] feature_usage table ensured", extra={"user_id": user_id})
    return {"success": True, "message": "feature_usage table ready"}
