"""
Subscription lookup tests.

The plan resolves from the newest active, unexpired subscription and falls
back to free for everything else, including an unreachable store.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from mockupgen.core.database import get_db_session, get_engine, user_subscriptions
from mockupgen.features.subscriptions.service import SubscriptionService
from mockupgen.models.plan import PlanTier


@pytest.fixture
def service():
    return SubscriptionService()


class TestResolvePlan:
    def test_no_subscription_is_free(self, service):
        assert service.resolve_plan("user_nosub") == PlanTier.FREE
        assert service.get_active_subscription("user_nosub") is None

    @pytest.mark.parametrize(
        "plan_id,expected",
        [
            ("pro_monthly", PlanTier.PRO),
            ("pro_annual", PlanTier.PRO),
            ("team_monthly", PlanTier.TEAM),
            ("team_annual", PlanTier.TEAM),
            ("enterprise", PlanTier.FREE),
        ],
    )
    def test_active_subscription_plan_ids(self, service, subscribe, plan_id, expected):
        subscribe("user_sub", plan_id)
        assert service.resolve_plan("user_sub") == expected

    def test_canceled_subscription_is_free(self, service, subscribe):
        subscribe("user_canceled", "pro_monthly", status="canceled")
        assert service.resolve_plan("user_canceled") == PlanTier.FREE

    def test_newest_active_subscription_wins(self, service, subscribe):
        now = datetime.now(timezone.utc)
        subscribe("user_upgrade", "pro_monthly", created_at=now - timedelta(days=10))
        subscribe("user_upgrade", "team_monthly", created_at=now - timedelta(days=1))

        subscription = service.get_active_subscription("user_upgrade")
        assert subscription.plan == "team_monthly"
        assert service.resolve_plan("user_upgrade") == PlanTier.TEAM

    def test_annual_flag_is_mirrored(self, service, subscribe):
        subscribe("user_annual", "pro_annual")
        assert service.get_active_subscription("user_annual").is_annual is True


class TestLapsedSubscriptions:
    def test_lapsed_active_subscription_is_free(self, service, subscribe):
        now = datetime.now(timezone.utc)
        subscribe("user_lapsed", "pro_monthly", period_end=now - timedelta(days=2))

        assert service.get_active_subscription("user_lapsed", now) is None
        assert service.resolve_plan("user_lapsed", now) == PlanTier.FREE

    def test_lapsed_subscription_row_is_left_untouched(self, service, subscribe):
        now = datetime.now(timezone.utc)
        subscription_id = subscribe("user_lapsed", "pro_monthly", period_end=now - timedelta(days=2))

        service.resolve_plan("user_lapsed", now)

        with get_db_session() as session:
            status = session.execute(
                select(user_subscriptions.c.status).where(user_subscriptions.c.id == subscription_id)
            ).scalar()
        assert status == "active"

    def test_newer_lapsed_row_does_not_hide_older_valid_row(self, service, subscribe):
        now = datetime.now(timezone.utc)
        subscribe(
            "user_mixed",
            "team_monthly",
            created_at=now - timedelta(days=20),
            period_end=now + timedelta(days=10),
        )
        subscribe(
            "user_mixed",
            "pro_monthly",
            created_at=now - timedelta(days=1),
            period_end=now - timedelta(hours=1),
        )

        subscription = service.get_active_subscription("user_mixed", now)
        assert subscription.plan == "team_monthly"
        assert service.resolve_plan("user_mixed", now) == PlanTier.TEAM

    def test_subscription_valid_until_period_end(self, service, subscribe):
        period_end = datetime(2026, 6, 30, tzinfo=timezone.utc)
        subscribe("user_edge", "team_monthly", period_end=period_end)

        assert service.resolve_plan("user_edge", period_end - timedelta(seconds=1)) == PlanTier.TEAM
        assert service.resolve_plan("user_edge", period_end + timedelta(seconds=1)) == PlanTier.FREE


class TestStoreFailures:
    def test_unreachable_store_resolves_free(self, service, subscribe):
        subscribe("user_down", "team_monthly")
        user_subscriptions.drop(bind=get_engine())

        assert service.resolve_plan("user_down") == PlanTier.FREE

    def test_lookup_propagates_store_errors(self, service):
        user_subscriptions.drop(bind=get_engine())

        with pytest.raises(SQLAlchemyError):
            service.get_active_subscription("user_down")
