"""
Plan catalog API (pricing page).

- GET /api/plans: every plan in tier order
- GET /api/plans/{plan}: one plan; unknown ids read as free
- GET /api/plans/me/capabilities/{capability}: capability check for the caller
"""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from mockupgen.api.deps import get_access_evaluator
from mockupgen.core.auth import get_current_user_id
from mockupgen.features.access.service import AccessEvaluator
from mockupgen.models.plan import PlanDetails


router = APIRouter(prefix="/api/plans", tags=["plans"])


class PlansResponse(BaseModel):
    plans: List[PlanDetails]


class CapabilityResponse(BaseModel):
    plan: str
    capability: str
    enabled: bool


@router.get("", response_model=PlansResponse)
def list_plans(evaluator: AccessEvaluator = Depends(get_access_evaluator)):
    return {"plans": evaluator.catalog.all_plan_details()}


@router.get("/me/capabilities/{capability}", response_model=CapabilityResponse)
def my_capability(
    capability: str,
    user_id: str = Depends(get_current_user_id),
    evaluator: AccessEvaluator = Depends(get_access_evaluator),
):
    plan = evaluator.plan_for(user_id)
    return {
        "plan": plan.value,
        "capability": capability,
        "enabled": evaluator.catalog.has_capability(plan, capability),
    }


@router.get("/{plan}", response_model=PlanDetails)
def get_plan(plan: str, evaluator: AccessEvaluator = Depends(get_access_evaluator)):
    return evaluator.plan_details(plan)
