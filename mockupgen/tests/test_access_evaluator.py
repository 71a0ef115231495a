"""
Access evaluation tests.

Boundary behaviour (used + amount <= limit), unlimited and unknown features,
degraded ledgers, check-then-record and the dashboard report.
"""
import logging
from datetime import datetime, timezone

import pytest

from mockupgen.core.errors import InvalidRequestError
from mockupgen.features.access.service import AccessEvaluator, decide
from mockupgen.features.plans.catalog import default_catalog
from mockupgen.features.usage.ledger import UsageLedger
from mockupgen.models.plan import UNLIMITED, Limited, PlanTier
from mockupgen.tests.mocks import FailingUsageStore, FixedPlanResolver

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def make_evaluator(plan=PlanTier.FREE, store=None):
    return AccessEvaluator(
        catalog=default_catalog(),
        ledger=UsageLedger(store=store),
        plan_resolver=FixedPlanResolver(plan),
        warning_ratio=0.8,
    )


class TestDecide:
    def test_boundary(self):
        assert decide(Limited(5), 4, 1) == (True, 1)
        assert decide(Limited(5), 5, 1) == (False, 0)
        assert decide(Limited(5), 3, 3) == (False, 2)

    def test_over_limit_remaining_is_zero(self):
        assert decide(Limited(5), 9, 1) == (False, 0)

    def test_zero_limit_denies(self):
        assert decide(Limited(0), 0, 1) == (False, 0)

    def test_unlimited(self):
        assert decide(UNLIMITED, 10_000, 50) == (True, UNLIMITED)


class TestEvaluate:
    def test_one_below_limit_is_allowed(self):
        evaluator = make_evaluator()
        evaluator.ledger.record("user_free", "mockupsPerMonth", 4, now=NOW)

        decision = evaluator.evaluate("user_free", "mockupsPerMonth", now=NOW)
        assert decision.allowed is True
        assert decision.used == 4
        assert decision.remaining == 1
        assert decision.limit == Limited(5)

    def test_at_limit_is_denied(self):
        evaluator = make_evaluator()
        evaluator.ledger.record("user_free", "mockupsPerMonth", 5, now=NOW)

        decision = evaluator.evaluate("user_free", "mockupsPerMonth", now=NOW)
        assert decision.allowed is False
        assert decision.remaining == 0

    def test_amount_larger_than_remaining_is_denied(self):
        evaluator = make_evaluator()
        evaluator.ledger.record("user_free", "bulkGeneration", 1, now=NOW)

        assert evaluator.evaluate("user_free", "bulkGeneration", amount=2, now=NOW).allowed is True
        assert evaluator.evaluate("user_free", "bulkGeneration", amount=3, now=NOW).allowed is False

    def test_evaluate_does_not_record(self):
        evaluator = make_evaluator()
        evaluator.evaluate("user_free", "mockupsPerMonth", now=NOW)
        evaluator.evaluate("user_free", "mockupsPerMonth", now=NOW)
        assert evaluator.ledger.total_for_current_month("user_free", "mockupsPerMonth", NOW) == 0

    def test_unlimited_plan_allows_any_usage(self):
        evaluator = make_evaluator(PlanTier.PRO)
        evaluator.ledger.record("user_pro", "mockupsPerMonth", 10_000, now=NOW)

        decision = evaluator.evaluate("user_pro", "mockupsPerMonth", now=NOW)
        assert decision.allowed is True
        assert decision.unlimited is True
        assert decision.used == 10_000
        assert decision.remaining is UNLIMITED
        assert decision.to_dict()["limit"] == "unlimited"
        assert decision.to_dict()["remaining"] == "unlimited"

    def test_pro_plan_capped_feature(self):
        evaluator = make_evaluator(PlanTier.PRO)
        evaluator.ledger.record("user_pro", "bulkGeneration", 10, now=NOW)

        decision = evaluator.evaluate("user_pro", "bulkGeneration", now=NOW)
        assert decision.allowed is False
        assert decision.plan == PlanTier.PRO

    def test_unknown_feature_is_allowed_and_unaccounted(self, caplog):
        evaluator = make_evaluator()
        with caplog.at_level(logging.WARNING):
            decision = evaluator.evaluate("user_free", "videoExports", now=NOW)

        assert decision.allowed is True
        assert decision.accounted is False
        assert decision.used is None
        assert "configuration gap" in caplog.text

    @pytest.mark.parametrize("amount", [0, -3, 2.5])
    def test_invalid_amount_raises(self, amount):
        with pytest.raises(InvalidRequestError):
            make_evaluator().evaluate("user_free", "mockupsPerMonth", amount=amount, now=NOW)

    def test_degraded_ledger_fails_open(self):
        evaluator = make_evaluator(store=FailingUsageStore())

        decision = evaluator.evaluate("user_free", "mockupsPerMonth", now=NOW)
        assert decision.allowed is True
        assert decision.ledger_degraded is True
        assert decision.used == 0

    def test_evaluation_and_report_agree_for_past_month(self):
        evaluator = make_evaluator()
        february = datetime(2026, 2, 10, tzinfo=timezone.utc)
        evaluator.ledger.record("user_free", "mockupsPerMonth", 1, now=february)
        evaluator.ledger.record("user_free", "mockupsPerMonth", 4, now=NOW)

        decision = evaluator.evaluate("user_free", "mockupsPerMonth", now=february)
        report = evaluator.usage_report("user_free", february)
        assert decision.used == report["usage"]["mockupsPerMonth"] == 1
        assert decision.remaining == report["remaining"]["mockupsPerMonth"] == 4

    def test_month_rollover_restores_quota(self):
        evaluator = make_evaluator()
        evaluator.ledger.record("user_free", "mockupsPerMonth", 5, now=datetime(2026, 2, 27, tzinfo=timezone.utc))

        assert evaluator.evaluate("user_free", "mockupsPerMonth", now=NOW).remaining == 5


class TestCheckAndConsume:
    def test_consume_last_unit_reports_zero_remaining(self):
        evaluator = make_evaluator()
        evaluator.ledger.record("user_free", "mockupsPerMonth", 4, now=NOW)

        decision = evaluator.check_and_consume("user_free", "mockupsPerMonth", now=NOW)
        assert decision.allowed is True
        assert decision.recorded is True
        assert decision.remaining == 0
        assert evaluator.ledger.total_for_current_month("user_free", "mockupsPerMonth", NOW) == 5

    def test_denied_consume_records_nothing(self):
        evaluator = make_evaluator()
        evaluator.ledger.record("user_free", "mockupsPerMonth", 5, now=NOW)

        decision = evaluator.check_and_consume("user_free", "mockupsPerMonth", now=NOW)
        assert decision.allowed is False
        assert decision.recorded is None
        assert evaluator.ledger.total_for_current_month("user_free", "mockupsPerMonth", NOW) == 5

    def test_free_user_gets_exactly_five_mockups(self):
        evaluator = make_evaluator()
        results = [evaluator.check_and_consume("user_free", "mockupsPerMonth", now=NOW).allowed for _ in range(6)]
        assert results == [True, True, True, True, True, False]

    def test_unlimited_usage_is_still_recorded(self):
        evaluator = make_evaluator(PlanTier.TEAM)

        decision = evaluator.check_and_consume("user_team", "mockupsPerMonth", metadata={"mockup_id": "m1"}, now=NOW)
        assert decision.recorded is True
        assert decision.remaining is UNLIMITED
        assert evaluator.ledger.total_for_current_month("user_team", "mockupsPerMonth", NOW) == 1

    def test_unknown_feature_is_not_recorded(self):
        evaluator = make_evaluator()
        decision = evaluator.check_and_consume("user_free", "videoExports", now=NOW)

        assert decision.allowed is True
        assert decision.recorded is None
        assert evaluator.ledger.list_records("user_free") == []

    def test_failed_record_keeps_pre_consumption_remaining(self):
        evaluator = make_evaluator(store=FailingUsageStore())

        decision = evaluator.check_and_consume("user_free", "mockupsPerMonth", now=NOW)
        assert decision.allowed is True
        assert decision.recorded is False
        assert decision.remaining == 5


class TestUsageReport:
    def test_report_statuses(self):
        evaluator = make_evaluator()
        evaluator.ledger.record("user_report", "mockupsPerMonth", 4, now=NOW)
        evaluator.ledger.record("user_report", "bulkGeneration", 3, now=NOW)

        report = evaluator.usage_report("user_report", NOW)
        assert report["plan"] == "free"
        assert report["usage"] == {"mockupsPerMonth": 4, "bulkGeneration": 3}
        assert report["limits"]["mockupsPerMonth"] == 5
        assert report["remaining"]["mockupsPerMonth"] == 1
        assert report["remaining"]["gemini_image_generation"] == 5
        assert report["status"]["mockupsPerMonth"] == "approaching_limit"
        assert report["status"]["bulkGeneration"] == "at_limit"
        assert report["status"]["gpt_image_generation"] == "ok"

    def test_report_for_unlimited_plan(self):
        evaluator = make_evaluator(PlanTier.PRO)
        evaluator.ledger.record("user_report", "mockupsPerMonth", 500, now=NOW)

        report = evaluator.usage_report("user_report", NOW)
        assert report["limits"]["mockupsPerMonth"] == "unlimited"
        assert report["remaining"]["mockupsPerMonth"] == "unlimited"
        assert report["status"]["mockupsPerMonth"] == "ok"
        assert report["usage"]["mockupsPerMonth"] == 500

    def test_report_period(self):
        report = make_evaluator().usage_report("user_report", NOW)
        assert report["period"]["start"] == datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert report["period"]["end"] == datetime(2026, 4, 1, tzinfo=timezone.utc)
        assert report["period"]["days_remaining"] == 17


class TestPlanResolution:
    def test_subscription_drives_limits(self, evaluator, subscribe):
        subscribe("user_paid", "pro_monthly")
        evaluator.ledger.record("user_paid", "mockupsPerMonth", 50)

        assert evaluator.plan_for("user_paid") == PlanTier.PRO
        assert evaluator.evaluate("user_paid", "mockupsPerMonth").allowed is True

    def test_capability_follows_plan(self, evaluator, subscribe):
        subscribe("user_team", "team_annual")
        assert evaluator.has_capability("user_team", "apiAccess") is True
        assert evaluator.has_capability("user_free", "apiAccess") is False
