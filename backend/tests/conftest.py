"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database. API calls go through an
httpx AsyncClient pointed at the FastAPI ASGI app, with the database, the LLM
client and PDF storage swapped out through dependency overrides.
"""

import os

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("OPENAI_API_KEY", "")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from litreview.main import app
from litreview.core.database import Base, enable_sqlite_foreign_keys, get_db
from litreview.core.errors import LLMError
from litreview.core.rate_limit import login_throttle
from litreview.services.llm import LLMService, get_llm_service
from litreview.services.storage import StorageService, get_storage


class FakeLLM(LLMService):
    """Returns queued replies instead of calling a provider."""

    def __init__(self):
        super().__init__()
        self.replies: list[str | Exception] = []
        self.prompts: list[list[dict[str, str]]] = []
        self.enabled = True

    @property
    def available(self) -> bool:
        return self.enabled

    async def complete(self, messages, *, temperature=0.3, max_tokens=1500):
        self.prompts.append(messages)
        if not self.enabled:
            raise LLMError("OPENAI_API_KEY is not configured")
        if not self.replies:
            raise LLMError("No reply queued")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def storage(tmp_path):
    return StorageService(upload_dir=str(tmp_path / "uploads"))


@pytest_asyncio.fixture
async def client(session_maker, fake_llm, storage):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_llm_service] = lambda: fake_llm
    app.dependency_overrides[get_storage] = lambda: storage
    login_throttle.by_ip._attempts.clear()
    login_throttle.by_user._attempts.clear()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


async def register_and_login(client, email="reader@example.com", password="secret123"):
    response = await client.post(
        "/api/v1/auth/register", json={"email": email, "password": password, "name": "Reader"}
    )
    assert response.status_code == 201
    response = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['accessToken']}"}


@pytest_asyncio.fixture
async def auth_headers(client):
    return await register_and_login(client)


@pytest_asyncio.fixture
async def other_headers(client):
    return await register_and_login(client, email="other@example.com")


async def create_paper(client, headers, **fields):
    payload = {"title": "Untitled"}
    payload.update(fields)
    response = await client.post("/api/v1/papers", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def cite(client, headers, citing_id, cited_id, **fields):
    payload = {"citingPaperId": citing_id, "citedPaperId": cited_id}
    payload.update(fields)
    response = await client.post("/api/v1/citations", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()
