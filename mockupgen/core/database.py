"""
Database access for the usage ledger and the subscription mirror.

SQLAlchemy Core tables on one MetaData, a lazily created engine and a
session context manager. Server databases get a QueuePool; SQLite (tests,
local dev) shares one connection so an in-memory database lives as long as
the engine does.
"""
from typing import Any, Dict, Optional
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Boolean, JSON, Text, Index, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func
import logging
import os

from mockupgen.core.config import settings


logger = logging.getLogger("mockupgen")

metadata = MetaData()

POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # seconds

_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """TEST_DATABASE_URL wins over DATABASE_URL."""
    return os.getenv("TEST_DATABASE_URL") or settings.TEST_DATABASE_URL or settings.DATABASE_URL


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        "poolclass": QueuePool,
        "pool_size": POOL_SIZE,
        "max_overflow": MAX_OVERFLOW,
        "pool_timeout": POOL_TIMEOUT,
        "pool_recycle": POOL_RECYCLE,
        "pool_pre_ping": True,
    }


def init_engine(database_url: Optional[str] = None):
    """
    Create the engine and session factory.

    Raises:
        ValueError: No database URL configured
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()
    if not url:
        raise ValueError("DATABASE_URL is not configured. Set DATABASE_URL in environment or .env file.")

    _engine = create_engine(url, echo=False, **_engine_options(url))
    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    logger.info("[db] engine initialised", extra={"dialect": _engine.dialect.name})
    return _engine


def dispose_engine() -> None:
    """Close pooled connections; the next access re-initialises from config."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def get_engine():
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Session scope: commit on clean exit, roll back and re-raise otherwise.

        with get_db_session() as session:
            session.execute(...)
    """
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """Idempotent; existing tables are left alone."""
    metadata.create_all(bind=get_engine())


def drop_all_tables():
    """Destructive. Tests and local development only."""
    metadata.drop_all(bind=get_engine())


def reset_database():
    """Drop and recreate every table. Tests only."""
    drop_all_tables()
    create_all_tables()


def check_connection() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, ValueError) as e:
        logger.warning(f"[db] connection check failed: {e}")
        return False


# Usage ledger: one additive row per recorded consumption, never updated
feature_usage = Table(
    'feature_usage',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False),
    Column('feature', String(100), nullable=False),
    Column('count', Integer, nullable=False, server_default='1'),
    Column('period_start', DateTime(timezone=True), nullable=False),
    Column('occurred_at', DateTime(timezone=True), nullable=False),
    Column('metadata', JSON, nullable=True),
    Index('idx_feature_usage_user_feature_occurred', 'user_id', 'feature', 'occurred_at'),
    Index('idx_feature_usage_user_period', 'user_id', 'period_start'),
)

# Subscriptions are written by the billing webhook; this service only reads them
user_subscriptions = Table(
    'user_subscriptions',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('user_id', String(100), nullable=False),
    Column('plan', String(50), nullable=False),
    Column('status', String(50), nullable=False),  # active, canceled, expired, past_due
    Column('payment_reference', Text, nullable=True),
    Column('is_annual', Boolean, nullable=False, default=False, server_default='0'),
    Column('current_period_start', DateTime(timezone=True), nullable=True),
    Column('current_period_end', DateTime(timezone=True), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    Index('idx_user_subscriptions_user_status', 'user_id', 'status'),
)
