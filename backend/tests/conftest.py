import os
import tempfile

# Must be set before app.config is imported anywhere
_DB_DIR = tempfile.mkdtemp(prefix="notifications-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["PUSH_ON_CREATE"] = "false"
os.environ["EXPO_ACCESS_TOKEN"] = ""

import pytest
from fastapi.testclient import TestClient

import app.models  # noqa: F401  (register tables on Base.metadata)
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.main import app as fastapi_app
from app.services import push as push_service
from tests.factories import FakeGateway


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(fastapi_app)


@pytest.fixture
def gateway(monkeypatch):
    fake = FakeGateway()
    monkeypatch.setattr(push_service, "_gateway_client", fake.client)
    return fake
