"""
mockupgen/features/usage/ledger.py

Usage ledger.

Handles:
- Append-only usage recording (one row per record call, never updated)
- Aggregate reads per user/feature since a point in time
- Current-month convenience reads and per-feature stats

Reads never fail: if the store errors (including a missing table) the ledger
returns zero and flags the reading as degraded. Writes report success as a
bool so callers decide whether a lost record matters.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, insert, func
from sqlalchemy.exc import SQLAlchemyError

from mockupgen.core.config import settings
from mockupgen.core.database import get_db_session, feature_usage, get_engine
from mockupgen.core.errors import InvalidRequestError
from mockupgen.features.usage.periods import as_utc, month_start, month_window, normalize_now
from mockupgen.models.usage_record import UsageRecord, UsageReading


logger = logging.getLogger(__name__)


def validate_usage_request(feature_key: Optional[str], amount: Any) -> None:
    """Reject caller errors before anything touches the store."""
    if not feature_key or not isinstance(feature_key, str) or not feature_key.strip():
        raise InvalidRequestError("feature_key is required")
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidRequestError(f"amount must be an integer, got {amount!r}")
    if amount <= 0:
        raise InvalidRequestError(f"amount must be positive, got {amount}")


def _is_missing_relation(exc: SQLAlchemyError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == "42P01":
        return True
    text = str(exc).lower()
    return "does not exist" in text or "no such table" in text


class SqlUsageStore:
    """feature_usage table access. Raises SQLAlchemyError on store failure."""

    def append(self, record: UsageRecord) -> None:
        with get_db_session() as session:
            session.execute(
                insert(feature_usage).values(
                    user_id=record.user_id,
                    feature=record.feature_key,
                    count=record.count,
                    period_start=record.period_start,
                    occurred_at=record.occurred_at,
                    metadata=record.metadata,
                )
            )

    def sum_since(self, user_id: str, feature_key: str, since: datetime, until: Optional[datetime] = None) -> int:
        query = (
            select(func.coalesce(func.sum(feature_usage.c.count), 0))
            .where(feature_usage.c.user_id == user_id)
            .where(feature_usage.c.feature == feature_key)
            .where(feature_usage.c.occurred_at >= since)
        )
        if until is not None:
            query = query.where(feature_usage.c.occurred_at < until)

        with get_db_session() as session:
            total = session.execute(query).scalar()
        return int(total or 0)

    def sums_by_feature(self, user_id: str, since: datetime, until: Optional[datetime] = None) -> Dict[str, int]:
        query = (
            select(feature_usage.c.feature, func.sum(feature_usage.c.count))
            .where(feature_usage.c.user_id == user_id)
            .where(feature_usage.c.occurred_at >= since)
        )
        if until is not None:
            query = query.where(feature_usage.c.occurred_at < until)

        with get_db_session() as session:
            rows = session.execute(query.group_by(feature_usage.c.feature)).all()
        return {feature: int(total) for feature, total in rows if total}

    def list_records(
        self,
        user_id: str,
        feature_key: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[UsageRecord]:
        query = select(feature_usage).where(feature_usage.c.user_id == user_id)
        if feature_key:
            query = query.where(feature_usage.c.feature == feature_key)
        if since is not None:
            query = query.where(feature_usage.c.occurred_at >= since)
        if until is not None:
            query = query.where(feature_usage.c.occurred_at < until)
        query = query.order_by(feature_usage.c.occurred_at.desc(), feature_usage.c.id.desc())
        if limit:
            query = query.limit(limit)

        with get_db_session() as session:
            rows = session.execute(query).all()

        return [
            UsageRecord(
                user_id=row._mapping["user_id"],
                feature_key=row._mapping["feature"],
                period_start=as_utc(row._mapping["period_start"]),
                count=row._mapping["count"],
                occurred_at=as_utc(row._mapping["occurred_at"]),
                metadata=row._mapping["metadata"],
            )
            for row in rows
        ]

    def ensure_schema(self) -> None:
        feature_usage.create(bind=get_engine(), checkfirst=True)


class UsageLedger:
    def __init__(self, store=None, *, auto_create_schema: Optional[bool] = None):
        self.store = store or SqlUsageStore()
        if auto_create_schema is None:
            auto_create_schema = settings.USAGE_AUTO_CREATE_SCHEMA
        self.auto_create_schema = auto_create_schema

    def record(
        self,
        user_id: str,
        feature_key: str,
        amount: int = 1,
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Append one accounting entry of `amount` units.

        Args:
            user_id: User consuming the feature
            feature_key: Feature being consumed (mockupsPerMonth, ...)
            amount: Positive number of units
            metadata: Optional context (mockup_id, provider, ...)
            now: Timestamp of the consumption (defaults to now, UTC)

        Returns:
            True if the entry was stored, False if the store failed

        Raises:
            InvalidRequestError: Non-positive amount or missing feature_key
        """
        validate_usage_request(feature_key, amount)
        occurred_at = normalize_now(now)
        record = UsageRecord(
            user_id=user_id,
            feature_key=feature_key,
            period_start=month_start(occurred_at),
            count=amount,
            occurred_at=occurred_at,
            metadata=metadata or {},
        )

        try:
            self.store.append(record)
            return True
        except SQLAlchemyError as exc:
            if self.auto_create_schema and _is_missing_relation(exc):
                logger.warning("[usage] ledger table missing, creating it", extra={"feature_key": feature_key})
                try:
                    self.store.ensure_schema()
                    self.store.append(record)
                    return True
                except SQLAlchemyError as retry_exc:
                    exc = retry_exc
            logger.error(
                "[usage] record failed",
                extra={
                    "user_id": user_id,
                    "feature_key": feature_key,
                    "amount": amount,
                    "error": str(exc),
                },
            )
            return False

    def read_total(
        self,
        user_id: str,
        feature_key: str,
        period_start: datetime,
        period_end: Optional[datetime] = None,
    ) -> UsageReading:
        """Sum of counts in [period_start, period_end), with a degraded flag on store failure."""
        try:
            used = self.store.sum_since(
                user_id,
                feature_key,
                as_utc(period_start),
                as_utc(period_end) if period_end else None,
            )
            return UsageReading(used=used, degraded=False)
        except SQLAlchemyError as exc:
            logger.warning(
                "[usage] read failed, reporting zero usage",
                extra={"user_id": user_id, "feature_key": feature_key, "error": str(exc)},
            )
            return UsageReading(used=0, degraded=True)

    def total_since(self, user_id: str, feature_key: str, period_start: datetime) -> int:
        return self.read_total(user_id, feature_key, period_start).used

    def read_current_month(self, user_id: str, feature_key: str, now: Optional[datetime] = None) -> UsageReading:
        start, end = month_window(now)
        return self.read_total(user_id, feature_key, start, end)

    def total_for_current_month(self, user_id: str, feature_key: str, now: Optional[datetime] = None) -> int:
        return self.read_current_month(user_id, feature_key, now).used

    def usage_by_feature(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, int]:
        """Current-month counts per feature. Features with no usage are absent."""
        start, end = month_window(now)
        try:
            return self.store.sums_by_feature(user_id, start, end)
        except SQLAlchemyError as exc:
            logger.warning(
                "[usage] stats read failed, reporting no usage",
                extra={"user_id": user_id, "error": str(exc)},
            )
            return {}

    def list_records(
        self,
        user_id: str,
        feature_key: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[UsageRecord]:
        try:
            return self.store.list_records(
                user_id,
                feature_key=feature_key,
                since=as_utc(since) if since else None,
                until=as_utc(until) if until else None,
                limit=limit,
            )
        except SQLAlchemyError as exc:
            logger.warning(
                "[usage] activity read failed",
                extra={"user_id": user_id, "error": str(exc)},
            )
            return []

    def ensure_schema(self) -> bool:
        try:
            self.store.ensure_schema()
            return True
        except SQLAlchemyError as exc:
            logger.error("[usage] could not create ledger table", extra={"error": str(exc)})
            return False
