"""
src/db/database.py
===================
SQLAlchemy engine, session factory and declarative base.

DATABASE_URL defaults to a local SQLite file. SQLite engines are created
with ``check_same_thread=False`` because the upload handler runs the
pipeline in a worker thread; in-memory SQLite additionally uses a
StaticPool so every session sees the same database.
"""

import logging
import os
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger("legalintake.db")

DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./legal_intake.db")


def create_db_engine(url: str) -> Engine:
    """Create an engine with settings suited to the backend in ``url``."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


engine = create_db_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding one session per request.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create all tables. Schema migrations are out of scope."""
    from src.db import models  # noqa: F401  (registers tables on Base)

    target = bind or engine
    logger.info("Initializing database tables on %s", target.url.render_as_string(hide_password=True))
    Base.metadata.create_all(bind=target)
