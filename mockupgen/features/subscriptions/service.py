"""
mockupgen/features/subscriptions/service.py

Subscription lookup.

The billing provider writes user_subscriptions; this service only reads it
to answer "which plan is this user on right now?". No active subscription,
a lapsed one, or an unreachable store all resolve to the free plan.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, and_, or_
from sqlalchemy.exc import SQLAlchemyError

from mockupgen.core.database import get_db_session, user_subscriptions
from mockupgen.features.plans.catalog import resolve_plan
from mockupgen.features.usage.periods import as_utc, normalize_now
from mockupgen.models.plan import PlanTier
from mockupgen.models.subscription import Subscription


logger = logging.getLogger(__name__)


def _row_to_subscription(row) -> Subscription:
    data = dict(row._mapping)
    for key in ("current_period_start", "current_period_end", "created_at", "updated_at"):
        if data.get(key) is not None:
            data[key] = as_utc(data[key])
    data["is_annual"] = bool(data.get("is_annual"))
    return Subscription(**data)


class SubscriptionService:
    def get_active_subscription(self, user_id: str, now: Optional[datetime] = None) -> Optional[Subscription]:
        """
        Newest active subscription whose period has not ended.

        A lapsed row never hides an older row that is still within its period.

        Raises:
            SQLAlchemyError: If the subscription store is unavailable
        """
        normalized_now = normalize_now(now)
        with get_db_session() as session:
            row = session.execute(
                select(user_subscriptions)
                .where(
                    and_(
                        user_subscriptions.c.user_id == user_id,
                        user_subscriptions.c.status == "active",
                        or_(
                            user_subscriptions.c.current_period_end.is_(None),
                            user_subscriptions.c.current_period_end >= normalized_now,
                        ),
                    )
                )
                .order_by(user_subscriptions.c.created_at.desc())
                .limit(1)
            ).first()

        if not row:
            return None
        return _row_to_subscription(row)

    def resolve_plan(self, user_id: str, now: Optional[datetime] = None) -> PlanTier:
        try:
            subscription = self.get_active_subscription(user_id, now)
        except SQLAlchemyError as exc:
            logger.warning(
                "[subscriptions] lookup failed, falling back to free plan",
                extra={"user_id": user_id, "error": str(exc)},
            )
            return PlanTier.FREE

        if not subscription:
            return PlanTier.FREE
        return resolve_plan(subscription.plan)
