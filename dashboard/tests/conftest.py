"""Shared test fixtures: in-memory database, stubbed GitHub API and an app client."""

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dashboard.src.config import Settings, get_settings
from dashboard.src.db.database import Base, get_db
from dashboard.src.main import app
from dashboard.src.models import pipeline  # noqa: F401
from dashboard.src.routes.webhooks import get_github_client
from dashboard.src.services.github import GitHubClient, sign_payload

WEBHOOK_SECRET = "test-webhook-secret"
GITHUB_TOKEN = "test-token"
GITHUB_API = "https://api.github.test"

class FakeGitHub:
    """Stands in for the GitHub jobs endpoint via httpx.MockTransport."""

    def __init__(self):
        self.jobs: List[Dict[str, Any]] = []
        self.status_code = 200
        self.body: Optional[bytes] = None
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.body is not None:
            return httpx.Response(self.status_code, content=self.body)
        return httpx.Response(
            self.status_code,
            json={"total_count": len(self.jobs), "jobs": self.jobs},
        )

    def client(self, token: str = GITHUB_TOKEN) -> GitHubClient:
        return GitHubClient(
            token=token,
            base_url=GITHUB_API,
            transport=httpx.MockTransport(self.handler),
        )

def workflow_run_payload(
    run_id: int = 1001,
    status: str = "in_progress",
    conclusion: Optional[str] = None,
    head_sha: str = "abc123",
    created_at: str = "2024-05-01T10:00:00Z",
    updated_at: str = "2024-05-01T10:01:35Z",
) -> Dict[str, Any]:
    return {
        "action": "in_progress",
        "workflow": {"name": "CI"},
        "repository": {"name": "widgets", "owner": {"login": "octo-org"}},
        "sender": {"login": "octocat"},
        "workflow_run": {
            "id": run_id,
            "name": "CI",
            "head_branch": "main",
            "head_sha": head_sha,
            "status": status,
            "conclusion": conclusion,
            "created_at": created_at,
            "updated_at": updated_at,
            "run_number": 7,
            "head_commit": {
                "id": head_sha,
                "message": "Fix flaky test",
                "timestamp": "2024-05-01T09:58:00Z",
                "author": {"name": "Octo Cat", "email": "octocat@example.com"},
            },
        },
    }

def signed_headers(body: bytes, secret: str = WEBHOOK_SECRET, event: str = "workflow_run") -> Dict[str, str]:
    return {
        "Content-Type": "application/json",
        "X-Hub-Signature-256": sign_payload(secret, body),
        "X-GitHub-Event": event,
    }

def encode(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload).encode()

@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()

@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session

@pytest.fixture
def fake_github():
    return FakeGitHub()

@pytest.fixture
def test_settings():
    return Settings(
        github_webhook_secret=WEBHOOK_SECRET,
        github_token=GITHUB_TOKEN,
        github_api_url=GITHUB_API,
    )

@pytest_asyncio.fixture
async def client(session_factory, fake_github, test_settings):
    """HTTP client against the app with database, settings and GitHub overridden."""
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_github_client] = lambda: fake_github.client()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
