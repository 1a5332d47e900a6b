# tests/conftest.py
import os

# Settings are read at import time, so the environment is prepared first.
os.environ["ENV"] = "local"
os.environ["DATABASE_URL_LOCAL"] = "sqlite://"
os.environ["REDIS_URL_LOCAL"] = "redis://localhost:6379/15"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["TRUST_SERVICE_URL"] = ""
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.testclient import TestClient
from unittest.mock import MagicMock

from buildapp.core.limiter import limiter
from buildapp.main import app
from buildapp.db.base_class import Base
from buildapp.db.session import get_db
from buildapp.services.event_notifier import EventNotifier, get_notifier
from buildapp.services.trust_metrics import TrustMetricsReader, get_trust_metrics_reader
from buildapp.utils.ttl_cache import BoundedTTLCache
import buildapp.models  # noqa: F401


# --- In-memory test database ---
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# pysqlite opens transactions lazily and breaks SAVEPOINT; take over BEGIN.
@event.listens_for(engine, "connect")
def _disable_pysqlite_transactions(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeNotifier(EventNotifier):
    """Records events instead of publishing them."""

    def __init__(self):
        super().__init__(client=MagicMock())
        self.events = []

    def emit(self, event, data, channels):
        channels = list(dict.fromkeys(channels))
        self.events.append((event, data, channels))
        return channels

    def of(self, event):
        return [e for e in self.events if e[0] == event]

    def names(self):
        return [e[0] for e in self.events]


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(db_session):
    """Factory for background tasks, handing them the test session."""
    return lambda: db_session


@pytest.fixture(scope="function")
def notifier():
    return FakeNotifier()


@pytest.fixture(scope="function")
def trust_reader():
    return TrustMetricsReader(cache=BoundedTTLCache(maxsize=10, ttl_seconds=60))


@pytest.fixture(scope="function")
def test_client(db_session, notifier, trust_reader):
    """TestClient backed by the in-memory database with a recording notifier."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_trust_metrics_reader] = lambda: trust_reader
    limiter.reset()

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
