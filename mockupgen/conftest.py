# mockupgen/conftest.py
import os
import uuid
from datetime import datetime, timedelta, timezone

# In-memory SQLite unless the runner points at a real database
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import insert

from mockupgen.core.database import get_db_session, reset_database, user_subscriptions
from mockupgen.features.access.service import build_access_evaluator


@pytest.fixture(scope="function", autouse=True)
def clean_db():
    """Every test starts with empty ledger and subscription tables."""
    reset_database()
    yield


@pytest.fixture
def evaluator():
    return build_access_evaluator()


@pytest.fixture
def client(evaluator):
    from mockupgen.main import create_app

    return TestClient(create_app(evaluator))


@pytest.fixture
def subscribe():
    """
    Insert a subscription row the way the billing webhook would.

    Returns the subscription id.
    """

    def _subscribe(
        user_id: str,
        plan: str,
        *,
        status: str = "active",
        period_end=None,
        created_at=None,
    ) -> str:
        now = datetime.now(timezone.utc)
        subscription_id = f"sub_{uuid.uuid4().hex[:12]}"
        with get_db_session() as session:
            session.execute(
                insert(user_subscriptions).values(
                    id=subscription_id,
                    user_id=user_id,
                    plan=plan,
                    status=status,
                    payment_reference=f"pay_{subscription_id}",
                    is_annual=plan.endswith("_annual"),
                    current_period_start=now - timedelta(days=1),
                    current_period_end=period_end if period_end is not None else now + timedelta(days=30),
                    created_at=created_at or now,
                    updated_at=created_at or now,
                )
            )
        return subscription_id

    return _subscribe
