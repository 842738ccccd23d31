# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# The app builds its own broker on startup; keep it off the filesystem.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from inbox_broker.api.v1.dependencies import get_broker
from inbox_broker.core.settings import Settings
from inbox_broker.db.session import Base, build_engine, build_session_factory, create_tables
from inbox_broker.main import app as fastapi_app
from inbox_broker.schemas import InboxCreated
from inbox_broker.services.broker import InboxBroker
from inbox_broker.services.fanout import FanoutHub

TEST_DB_URL = "sqlite://"
TEST_QUEUE_SIZE = 8


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = build_engine(TEST_DB_URL, poolclass=StaticPool)
    create_tables(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Iterator[sessionmaker[Session]]:
    yield build_session_factory(engine)

    # Ensure each test sees a clean database even though the broker commits.
    with engine.begin() as cleanup_conn:
        for table in reversed(Base.metadata.sorted_tables):
            cleanup_conn.execute(table.delete())


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Provide a Settings instance aligned with runtime configuration."""
    return Settings()


@pytest.fixture()
def hub() -> Iterator[FanoutHub]:
    hub = FanoutHub(queue_size=TEST_QUEUE_SIZE)
    try:
        yield hub
    finally:
        hub.close()


@pytest.fixture()
def broker(
    session_factory: sessionmaker[Session],
    hub: FanoutHub,
    test_settings: Settings,
) -> InboxBroker:
    return InboxBroker(session_factory, hub, config=test_settings)


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_broker_dependency(app: FastAPI, broker: InboxBroker) -> Iterator[None]:
    app.dependency_overrides[get_broker] = lambda: broker
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_broker, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def inbox(broker: InboxBroker) -> InboxCreated:
    """Create an inbox and return its full record, secrets included."""
    return broker.create_inbox("test inbox")


@pytest.fixture()
def other_inbox(broker: InboxBroker) -> InboxCreated:
    """Create a second, unrelated inbox."""
    return broker.create_inbox("other inbox")


@pytest.fixture()
def sender_headers(inbox: InboxCreated) -> dict[str, str]:
    """Return ingestion headers carrying the inbox public key."""
    return {"x-inbox-key": inbox.public_key}


@pytest.fixture()
def owner_headers(inbox: InboxCreated) -> dict[str, str]:
    """Return authorization headers carrying the inbox private secret."""
    return {"Authorization": f"Bearer {inbox.private_secret}"}
