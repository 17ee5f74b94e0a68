"""
Database engine and session factory with SQLAlchemy.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the configured database.

    Postgres gets a sized connection pool. SQLite (local runs and tests) is
    opened for use across threads; an in-memory SQLite database shares one
    connection so every session sees the same data.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


REQUIRED_TABLES = ("users", "companies", "rfqs", "orders")


def init_schema(engine: Engine, create_missing: bool = False) -> bool:
    """
    Verify the schema exists. Returns False when it does not.

    Schema is managed by Alembic migrations (``alembic upgrade head``).
    Missing tables are only created here for local SQLite runs and DEBUG.
    """
    from sqlalchemy import inspect
    from jobwork.core.logging import get_logger
    from jobwork.db import models  # noqa - register models on the metadata

    logger = get_logger(__name__)
    existing = set(inspect(engine).get_table_names())
    missing = [t for t in REQUIRED_TABLES if t not in existing]
    if not missing:
        logger.info(f"Database schema verified: {len(existing)} tables found")
        return True

    if not create_missing:
        logger.error(f"Missing required tables {missing}; run 'alembic upgrade head'")
        return False

    logger.warning("Auto-creating tables (not for production)")
    Base.metadata.create_all(bind=engine)
    return True
