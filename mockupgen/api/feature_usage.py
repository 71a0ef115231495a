"""
Feature usage API routes.

- GET  /api/feature-usage/check-limit: Has the user hit the monthly cap?
- GET  /api/feature-usage/count: Units consumed since a timestamp
- GET  /api/feature-usage/remaining: Units left this month
- GET  /api/feature-usage/stats: Current-month counts per feature
- POST /api/feature-usage/track: Record usage (best effort)
- POST /api/feature-usage/consume: Check the cap and record in one call
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from mockupgen.api.deps import get_access_evaluator
from mockupgen.core.auth import get_current_user_id
from mockupgen.core.errors import InvalidRequestError, QuotaExceededError
from mockupgen.core.logging import log_event
from mockupgen.features.access.service import AccessEvaluator


router = APIRouter(prefix="/api/feature-usage", tags=["feature-usage"])

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class CheckLimitResponse(BaseModel):
    feature: str
    has_reached_limit: bool
    limit: Union[int, str]
    used: Optional[int] = None
    remaining: Union[int, str]


class CountResponse(BaseModel):
    feature: str
    count: int


class RemainingResponse(BaseModel):
    feature: str
    remaining: Union[int, str]
    limit: Union[int, str]


class StatsResponse(BaseModel):
    stats: Dict[str, int]


class TrackRequest(BaseModel):
    feature: str
    amount: int = Field(default=1, description="Units consumed")
    metadata: Optional[Dict[str, Any]] = None


class TrackResponse(BaseModel):
    success: bool


class ConsumeResponse(BaseModel):
    allowed: bool
    feature: str
    plan: str
    limit: Union[int, str]
    used: Optional[int] = None
    remaining: Union[int, str]
    accounted: bool
    ledger_degraded: bool
    recorded: Optional[bool] = None


def _parse_since(since: Optional[str]) -> datetime:
    if not since:
        return EPOCH
    try:
        # Accept the trailing Z JavaScript's toISOString() produces
        return datetime.fromisoformat(since.replace("Z", "+00:00"))
    except ValueError:
        raise InvalidRequestError(f"since must be an ISO 8601 timestamp, got {since!r}")


@router.get("/check-limit", response_model=CheckLimitResponse)
def check_limit(
    feature: str = Query(..., description="Feature key, e.g. mockupsPerMonth"),
    user_id: str = Depends(get_current_user_id),
    evaluator: AccessEvaluator = Depends(get_access_evaluator),
):
    """A user has reached the limit when one more unit would be denied."""
    decision = evaluator.evaluate(user_id, feature)
    body = decision.to_dict()
    return {
        "feature": feature,
        "has_reached_limit": not decision.allowed,
        "limit": body["limit"],
        "used": decision.used,
        "remaining": body["remaining"],
    }


@router.get("/count", response_model=CountResponse)
def usage_count(
    feature: str = Query(...),
    since: Optional[str] = Query(None, description="ISO 8601 lower bound (inclusive)"),
    user_id: str = Depends(get_current_user_id),
    evaluator: AccessEvaluator = Depends(get_access_evaluator),
):
    count = evaluator.ledger.total_since(user_id, feature, _parse_since(since))
    return {"feature": feature, "count": count}


@router.get("/remaining", response_model=RemainingResponse)
def usage_remaining(
    feature: str = Query(...),
    user_id: str = Depends(get_current_user_id),
    evaluator: AccessEvaluator = Depends(get_access_evaluator),
):
    body = evaluator.evaluate(user_id, feature).to_dict()
    return {"feature": feature, "remaining": body["remaining"], "limit": body["limit"]}


@router.get("/stats", response_model=StatsResponse)
def usage_stats(
    user_id: str = Depends(get_current_user_id),
    evaluator: AccessEvaluator = Depends(get_access_evaluator),
):
    return {"stats": evaluator.usage_summary(user_id)}


@router.post("/track", response_model=TrackResponse)
def track_usage(
    request: TrackRequest,
    user_id: str = Depends(get_current_user_id),
    evaluator: AccessEvaluator = Depends(get_access_evaluator),
):
    """Record usage without a limit check. Failure is reported, not raised."""
    recorded = evaluator.ledger.record(user_id, request.feature, request.amount, metadata=request.metadata)
    return {"success": recorded}


@router.post("/consume", response_model=ConsumeResponse)
def consume(
    request: TrackRequest,
    user_id: str = Depends(get_current_user_id),
    evaluator: AccessEvaluator = Depends(get_access_evaluator),
):
    """
    Check the monthly cap and record the usage when allowed.

    Errors:
        400: Invalid amount or feature
        403: Monthly limit reached (quota_exceeded)
    """
    decision = evaluator.check_and_consume(user_id, request.feature, request.amount, metadata=request.metadata)
    if not decision.allowed:
        log_event(
            "warning",
            "quota.exceeded",
            user_id=user_id,
            feature_key=request.feature,
            event_type="quota_exceeded",
            error_code=QuotaExceededError.code,
            extra={"plan": decision.plan.value, "limit": decision.limit.display(), "used": decision.used},
        )
        raise QuotaExceededError(
            f"You've reached your monthly limit of {decision.limit.display()} for {request.feature}. "
            "Upgrade your plan for more."
        )
    return decision.to_dict()
