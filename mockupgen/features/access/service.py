"""
mockupgen/features/access/service.py

Feature access evaluation.

Handles:
- "May user U consume `amount` units of feature F right now?"
- Remaining-quota computation for display
- Check-then-record composition for request handlers
- Usage summaries and reports for the dashboard
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union
import logging

from mockupgen.core.config import settings
from mockupgen.features.plans.catalog import PlanCatalog, PlanLike, default_catalog
from mockupgen.features.subscriptions.service import SubscriptionService
from mockupgen.features.usage.ledger import UsageLedger, validate_usage_request
from mockupgen.features.usage.periods import days_remaining, month_window, normalize_now
from mockupgen.models.plan import UNLIMITED, Limited, LimitValue, PlanDetails, PlanTier, Unlimited


logger = logging.getLogger(__name__)

Remaining = Union[int, Unlimited]


def decide(limit: LimitValue, used: int, amount: int = 1) -> Tuple[bool, Remaining]:
    """Pure decision: (allowed, remaining before this invocation)."""
    if limit.is_unlimited:
        return True, UNLIMITED
    return used + amount <= limit.count, max(0, limit.count - used)


def _display(value: Union[LimitValue, Remaining, None]) -> Any:
    if isinstance(value, (Limited, Unlimited)):
        return value.display()
    return value


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    feature_key: str
    plan: PlanTier
    limit: LimitValue
    used: Optional[int]
    requested: int
    remaining: Remaining
    accounted: bool = True
    ledger_degraded: bool = False
    recorded: Optional[bool] = None

    @property
    def unlimited(self) -> bool:
        return self.limit.is_unlimited

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "feature": self.feature_key,
            "plan": self.plan.value,
            "limit": _display(self.limit),
            "used": self.used,
            "requested": self.requested,
            "remaining": _display(self.remaining),
            "accounted": self.accounted,
            "ledger_degraded": self.ledger_degraded,
            "recorded": self.recorded,
        }


class AccessEvaluator:
    """Single decision point for gated features.

    Takes its catalog, ledger and plan resolver at construction so tests and
    alternate deployments can swap any of them.
    """

    def __init__(
        self,
        catalog: PlanCatalog,
        ledger: UsageLedger,
        plan_resolver=None,
        *,
        warning_ratio: Optional[float] = None,
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.plan_resolver = plan_resolver or SubscriptionService()
        self.warning_ratio = warning_ratio if warning_ratio is not None else settings.USAGE_WARNING_RATIO

    def plan_for(self, user_id: str, now: Optional[datetime] = None) -> PlanTier:
        return self.plan_resolver.resolve_plan(user_id, now)

    def evaluate(
        self,
        user_id: str,
        feature_key: str,
        amount: int = 1,
        now: Optional[datetime] = None,
    ) -> AccessDecision:
        """Decide without recording anything.

        Raises:
            InvalidRequestError: Non-positive amount or missing feature_key
        """
        validate_usage_request(feature_key, amount)
        normalized_now = normalize_now(now)
        plan = self.plan_for(user_id, normalized_now)

        if not self.catalog.knows_feature(feature_key):
            logger.warning(
                "[access] configuration gap, allowing unaccounted feature",
                extra={"user_id": user_id, "feature_key": feature_key, "plan": plan.value},
            )
            return AccessDecision(
                allowed=True,
                feature_key=feature_key,
                plan=plan,
                limit=UNLIMITED,
                used=None,
                requested=amount,
                remaining=UNLIMITED,
                accounted=False,
            )

        limit = self.catalog.limit_of(plan, feature_key)
        # Read even when unlimited; callers display the count
        reading = self.ledger.read_current_month(user_id, feature_key, normalized_now)
        allowed, remaining = decide(limit, reading.used, amount)
        if limit.is_unlimited:
            return AccessDecision(
                allowed=True,
                feature_key=feature_key,
                plan=plan,
                limit=limit,
                used=reading.used,
                requested=amount,
                remaining=remaining,
                ledger_degraded=reading.degraded,
            )

        log_fn = logger.info if allowed else logger.warning
        log_fn(
            "[access] ALLOW" if allowed else "[access] DENY",
            extra={
                "user_id": user_id,
                "plan": plan.value,
                "feature_key": feature_key,
                "limit": limit.count,
                "used": reading.used,
                "requested": amount,
                "remaining": remaining,
                "ledger_degraded": reading.degraded,
            },
        )
        return AccessDecision(
            allowed=allowed,
            feature_key=feature_key,
            plan=plan,
            limit=limit,
            used=reading.used,
            requested=amount,
            remaining=remaining,
            ledger_degraded=reading.degraded,
        )

    def check_and_consume(
        self,
        user_id: str,
        feature_key: str,
        amount: int = 1,
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> AccessDecision:
        """Evaluate, and when allowed, record `amount` units.

        Concurrent callers can both pass the check before either records, so
        the cap is soft by up to (racers - 1) units.
        """
        decision = self.evaluate(user_id, feature_key, amount, now)
        if not decision.allowed or not decision.accounted:
            return decision

        recorded = self.ledger.record(user_id, feature_key, amount, metadata=metadata, now=now)
        remaining = decision.remaining
        if recorded and isinstance(decision.limit, Limited):
            remaining = max(0, decision.limit.count - decision.used - amount)
        return replace(decision, recorded=recorded, remaining=remaining)

    def usage_summary(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, int]:
        return self.ledger.usage_by_feature(user_id, now)

    def plan_details(self, plan: PlanLike) -> PlanDetails:
        return self.catalog.plan_details(plan)

    def has_capability(self, user_id: str, capability: str, now: Optional[datetime] = None) -> bool:
        return self.catalog.has_capability(self.plan_for(user_id, now), capability)

    def _status(self, limit: LimitValue, used: int) -> str:
        if limit.is_unlimited:
            return "ok"
        if used >= limit.count:
            return "at_limit"
        if used >= limit.count * self.warning_ratio:
            return "approaching_limit"
        return "ok"

    def usage_report(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Dashboard view of the current period.

        Returns:
            {
                "plan": "free",
                "usage": {"mockupsPerMonth": 3},
                "limits": {"mockupsPerMonth": 5, ...},
                "remaining": {"mockupsPerMonth": 2, ...},
                "status": {"mockupsPerMonth": "ok", ...},
                "period": {"start": datetime, "end": datetime, "days_remaining": int}
            }
        """
        normalized_now = normalize_now(now)
        plan = self.plan_for(user_id, normalized_now)
        usage = self.ledger.usage_by_feature(user_id, normalized_now)
        start, end = month_window(normalized_now)

        limits: Dict[str, Any] = {}
        remaining: Dict[str, Any] = {}
        status: Dict[str, str] = {}
        for feature_key, limit in self.catalog.features_of(plan).items():
            used = usage.get(feature_key, 0)
            _, left = decide(limit, used)
            limits[feature_key] = _display(limit)
            remaining[feature_key] = _display(left)
            status[feature_key] = self._status(limit, used)

        return {
            "plan": plan.value,
            "usage": usage,
            "limits": limits,
            "remaining": remaining,
            "status": status,
            "period": {
                "start": start,
                "end": end,
                "days_remaining": days_remaining(normalized_now),
            },
        }


def build_access_evaluator(
    catalog: Optional[PlanCatalog] = None,
    ledger: Optional[UsageLedger] = None,
    plan_resolver=None,
) -> AccessEvaluator:
    return AccessEvaluator(
        catalog=catalog or default_catalog(),
        ledger=ledger or UsageLedger(),
        plan_resolver=plan_resolver or SubscriptionService(),
    )
