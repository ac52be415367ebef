"""Shared fixtures for the Square connection tests."""

from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from square_connect.core.database import Base, create_session_factory
from square_connect.core.models import SquarePendingToken
from square_connect.core.settings import SquareSettings
from square_connect.core.store import ConnectionStore


@pytest.fixture
def settings() -> SquareSettings:
    """Fully configured sandbox settings."""
    return SquareSettings(
        square_app_id="sq0idp-test",
        square_app_secret="sq0csp-test",
        redirect_uri="http://localhost:3000/api/square/callback",
        square_environment="sandbox",
    )


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory: sessionmaker[Session]) -> ConnectionStore:
    return ConnectionStore(session_factory)


@pytest.fixture
def pending_state(session_factory: sessionmaker[Session]) -> str:
    """A pending authorization with state ``abc123``."""
    with session_factory() as db:
        db.add(SquarePendingToken(state="abc123"))
        db.commit()
    return "abc123"
