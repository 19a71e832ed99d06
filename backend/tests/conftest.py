import os

# Must be set before config.py is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "true"
os.environ["JWT_SECRET"] = "pytest-secret-key-0123456789-abcdefghijklmnopqrstuvwxyz"

import pytest
from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine
from services.clock import FixedClock, get_clock
from tests.helpers import TODAY, auth_headers


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(clock):
    from main import app as fastapi_app, auth_rate_limiter

    auth_rate_limiter.reset()
    fastapi_app.dependency_overrides[get_clock] = lambda: clock
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()
    auth_rate_limiter.reset()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def headers(client):
    return auth_headers(client, "alice")


@pytest.fixture
def anyio_backend():
    return "asyncio"
