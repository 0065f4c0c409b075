"""Shared pytest fixtures for DebtLens tests.

- Database fixtures: a throwaway SQLite file per test
- Fakes: GitHub source and model adapter stand-ins (no network)
- API fixtures: an ASGI client with a logged-in user
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from debtlens.adapters.base import BaseModelAdapter
from debtlens.adapters.github import GitHubError, TreeItem
from debtlens.config import Settings
from debtlens.main import create_app
from debtlens.services.analyzer import AnalysisService
from debtlens.services.scanner import ScannerService
from debtlens.services.storage import Storage
from debtlens.utils.db import build_engine, build_session_factory, create_tables


# =============================================================================
# Fakes
# =============================================================================


class FakeSource:
    """In-memory stand-in for GitHubClient."""

    def __init__(self, files: Optional[Dict[str, str]] = None, tree_error: Optional[str] = None):
        self.files = files or {}
        self.tree_error = tree_error
        self.content_errors: Dict[str, str] = {}
        self.tree_calls: List[tuple] = []
        self.gate: Optional[asyncio.Event] = None

    async def fetch_repo_tree(self, owner: str, repo: str, branch: str = "main") -> List[TreeItem]:
        self.tree_calls.append((owner, repo, branch))
        if self.gate is not None:
            await self.gate.wait()
        if self.tree_error:
            raise GitHubError(self.tree_error)
        return [
            TreeItem(path=path, type="blob", sha=f"sha-{i}", url=f"blob://{path}")
            for i, path in enumerate(self.files)
        ]

    async def fetch_file_content(self, url: str) -> str:
        path = url.replace("blob://", "")
        if path in self.content_errors:
            raise GitHubError(self.content_errors[path])
        return self.files[path]

    async def aclose(self) -> None:
        pass


class FakeAdapter(BaseModelAdapter):
    """Returns canned replies keyed by a marker found in the prompt."""

    def __init__(self, replies: Optional[Dict[str, str]] = None, default: Optional[str] = None):
        self.replies = replies or {}
        self.default = default
        self.prompts: List[str] = []
        self.kwargs: List[Dict[str, Any]] = []

    async def generate(self, prompt: str, system_prompt: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        self.prompts.append(prompt)
        self.kwargs.append(kwargs)
        for marker, reply in self.replies.items():
            if marker in prompt:
                return {"response": reply, "model": "fake", "provider": "fake", "tokens_used": 0}
        if self.default is None:
            raise RuntimeError("no canned reply")
        return {"response": self.default, "model": "fake", "provider": "fake", "tokens_used": 0}


def scores_reply(debt: int, security: int, doc: int, issues: Optional[list] = None) -> str:
    return json.dumps({
        "technicalDebtScore": debt,
        "securityScore": security,
        "documentationScore": doc,
        "issues": issues or [],
        "refactoredCode": "// refactored",
    })


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        GROQ_API_KEY="test-key",
        SCAN_MAX_FILES=5,
        SCAN_CONCURRENCY=2,
        LOG_LEVEL="WARNING",
        _env_file=None,
    )


@pytest_asyncio.fixture
async def session_factory(settings: Settings):
    engine = build_engine(settings.DATABASE_URL)
    await create_tables(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def storage(session_factory) -> Storage:
    return Storage(session_factory)


# =============================================================================
# Scanner Fixtures
# =============================================================================


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter(default=scores_reply(50, 50, 50))


@pytest.fixture
def scanner(storage: Storage, fake_source: FakeSource, fake_adapter: FakeAdapter) -> ScannerService:
    return ScannerService(
        storage=storage,
        source=fake_source,
        analyzer=AnalysisService(fake_adapter),
        max_files=5,
        concurrency=2,
    )


# =============================================================================
# API Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(settings: Settings, session_factory, scanner: ScannerService):
    app = create_app(settings, session_factory=session_factory, scanner=scanner)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    await scanner.drain()


async def register(client: httpx.AsyncClient, email: str = "dev@example.com", password: str = "secret123") -> Dict[str, Any]:
    resp = await client.post("/api/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest_asyncio.fixture
async def auth_client(client: httpx.AsyncClient) -> httpx.AsyncClient:
    """Client whose cookie jar holds a live session."""
    await register(client)
    return client
