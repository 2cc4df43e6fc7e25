# giftscart/database.py
import logging

from flask import g
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, declarative_base

from giftscart.config import Config

logger = logging.getLogger(__name__)

engine_kwargs = {
    "echo": Config.SQL_ECHO,
    "future": True,
    "pool_pre_ping": True,
}

if Config.DATABASE_URL.startswith("sqlite"):
    # Flask's dev server and test client hand requests to other threads
    engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    engine_kwargs["pool_size"] = Config.DB_POOL_SIZE
    engine_kwargs["max_overflow"] = Config.DB_MAX_OVERFLOW

engine = create_engine(Config.DATABASE_URL, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)

Base = declarative_base()


def init_database() -> None:
    """Create any missing tables."""
    # Registers every model on Base.metadata
    import giftscart.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized")


def get_db():
    if 'db' not in g:
        g.db = SessionLocal()
    return g.db


def close_db(e=None):
    try:
        db = g.pop('db', None)
        if db is not None:
            if e is not None:
                db.rollback()
            db.close()
    except RuntimeError:
        # Outside of an application context (test teardown)
        pass


def is_unique_violation(exc: Exception) -> bool:
    """True when ``exc`` is a unique/primary key conflict raised by the driver."""
    if not isinstance(exc, IntegrityError):
        return False
    message = str(getattr(exc, "orig", exc)).lower()
    return "unique" in message or "duplicate" in message
