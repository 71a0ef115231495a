"""
Usage summary API (dashboard / subscription-usage page).

- GET /api/usage/summary: plan, usage, limits, remaining and period
- GET /api/usage/activity: most recent usage records
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from mockupgen.api.deps import get_access_evaluator
from mockupgen.core.auth import get_current_user_id
from mockupgen.features.access.service import AccessEvaluator


router = APIRouter(prefix="/api/usage", tags=["usage"])


class UsagePeriod(BaseModel):
    start: datetime
    end: datetime
    days_remaining: int


class UsageSummaryResponse(BaseModel):
    plan: str
    usage: Dict[str, int]
    limits: Dict[str, Union[int, str]]
    remaining: Dict[str, Union[int, str]]
    status: Dict[str, str]
    period: UsagePeriod


class ActivityItem(BaseModel):
    feature: str
    count: int
    occurred_at: datetime
    metadata: Optional[Dict[str, Any]] = None


class ActivityResponse(BaseModel):
    items: List[ActivityItem]


@router.get("/summary", response_model=UsageSummaryResponse)
def usage_summary(
    user_id: str = Depends(get_current_user_id),
    evaluator: AccessEvaluator = Depends(get_access_evaluator),
):
    return evaluator.usage_report(user_id)


@router.get("/activity", response_model=ActivityResponse)
def usage_activity(
    limit: int = Query(10, ge=1, le=100),
    feature: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    evaluator: AccessEvaluator = Depends(get_access_evaluator),
):
    records = evaluator.ledger.list_records(user_id, feature_key=feature, limit=limit)
    return {
        "items": [
            {
                "feature": record.feature_key,
                "count": record.count,
                "occurred_at": record.occurred_at,
                "metadata": record.metadata,
            }
            for record in records
        ]
    }
