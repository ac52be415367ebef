"""Database module."""

import logging
import os
from functools import lru_cache

from dotenv import load_dotenv
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

load_dotenv()

logger = logging.getLogger("database")


class Base(DeclarativeBase):
    pass


@lru_cache()
def get_engine() -> Engine:
    """Create the engine for ``DATABASE_URL`` on first use."""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set in your .env file!")
    return create_engine(database_url)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@lru_cache()
def get_session_factory() -> sessionmaker[Session]:
    return create_session_factory(get_engine())


def check_connection(engine: Engine) -> bool:
    """Run ``SELECT 1`` against the database and log the result."""
    try:
        with engine.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            logger.info("Database connection successful: %s", result.scalar())
            return True
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        return False
