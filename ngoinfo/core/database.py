"""
Database engine, sessions and table definitions.

Postgres gets a connection pool; SQLite (tests, local runs) shares one
connection and lets SQLAlchemy issue BEGIN so nested SAVEPOINTs work.

Tables:
- user_plan_state: one row per user, the quota/trial/subscription state
- usage_logs: append-only record of consumed generations
- proposals: generated proposal documents
- organization_profiles: profile wizard document per user
"""
import logging
import os
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy import JSON, Column, DateTime, Index, Integer, MetaData, String, Table, Text, create_engine, event, inspect, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.sql import func

from ngoinfo.core.config import settings

logger = logging.getLogger("ngoinfo")

metadata = MetaData()

POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600

_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """TEST_DATABASE_URL wins over DATABASE_URL."""
    return os.getenv("TEST_DATABASE_URL") or os.getenv("DATABASE_URL") or settings.DATABASE_URL


def init_engine(database_url: Optional[str] = None):
    global _engine, _SessionLocal

    url = database_url or get_database_url()
    if not url:
        raise ValueError("DATABASE_URL is not configured. Set it in the environment or .env file.")

    if url.startswith("sqlite"):
        _engine = create_engine(url, poolclass=StaticPool, connect_args={"check_same_thread": False})
        _enable_sqlite_savepoints(_engine)
    else:
        _engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
        )

    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    logger.info(f"[database] engine ready ({_engine.dialect.name})")
    return _engine


def _enable_sqlite_savepoints(engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


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
    Transactional session scope.

    Commits on clean exit; rolls back and re-raises on error.

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


def create_all_tables() -> None:
    """Idempotent; existing tables are left alone."""
    metadata.create_all(bind=get_engine())


def drop_all_tables() -> None:
    metadata.drop_all(bind=get_engine())


def reset_database() -> None:
    """Drop and recreate every table. Tests only."""
    drop_all_tables()
    create_all_tables()


def check_connection() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(select(1))
        return True
    except Exception as e:
        logger.warning(f"[database] connection check failed: {e}")
        return False


def missing_tables() -> List[str]:
    """Names of required tables absent from the connected database."""
    existing = set(inspect(get_engine()).get_table_names())
    return sorted(name for name in metadata.tables if name not in existing)



# One row per user. The primary key is the uniqueness guarantee trial
# initialization relies on.
user_plan_state = Table(
    'user_plan_state',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('plan_id', String(50), nullable=False),
    Column('quota_used', Integer, nullable=False, default=0),
    Column('monthly_quota', Integer, nullable=False),
    Column('trial_expires_at', DateTime(timezone=True), nullable=True),
    Column('subscription_status', String(20), nullable=False),  # trial | active | cancelled | past_due
    Column('stripe_customer_id', String(255), nullable=True),
    Column('stripe_subscription_id', String(255), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_user_plan_state_customer', 'stripe_customer_id'),
)

# Append-only audit trail of consumed generations
usage_logs = Table(
    'usage_logs',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('proposal_id', String(100), nullable=True),
    Column('action', String(50), nullable=False),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_usage_logs_user_created', 'user_id', 'created_at'),
)

proposals = Table(
    'proposals',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('opportunity_id', String(100), nullable=True),
    Column('title', Text, nullable=False),
    Column('organization_name', Text, nullable=False),
    Column('status', String(20), nullable=False, default='draft'),
    Column('content', JSON, nullable=False),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_proposals_user_created', 'user_id', 'created_at'),
)

# Organization profile wizard state, one document per user
organization_profiles = Table(
    'organization_profiles',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('data', JSON, nullable=False),
    Column('completed_at', DateTime(timezone=True), nullable=True),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)
