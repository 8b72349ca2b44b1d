import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="stickyboard-tests-")
_DB_PATH = os.path.join(_DB_DIR, "test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import httpx
import pytest
from fastapi.testclient import TestClient
from stickyboard.database import engine, async_session, Base
from stickyboard.main import app
from stickyboard.client.api import ApiClient


def _reset_database_file():
    if os.path.exists(_DB_PATH):
        os.remove(_DB_PATH)


@pytest.fixture
def client():
    """REST + websocket test client over a fresh database."""
    _reset_database_file()
    with TestClient(app) as c:
        yield c


@pytest.fixture
async def tables():
    _reset_database_file()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
async def db(tables):
    async with async_session() as session:
        yield session


@pytest.fixture
async def api_factory(tables):
    """Build ApiClients that talk to the app in-process."""
    clients = []

    def make():
        api = ApiClient("http://testserver", transport=httpx.ASGITransport(app=app))
        clients.append(api)
        return api

    yield make
    for api in clients:
        await api.aclose()


def register_and_login(client: TestClient, username: str, password: str = "secret1") -> dict:
    response = client.post("/register", json={"username": username, "password": password})
    assert response.status_code == 201, response.text
    response = client.post("/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
