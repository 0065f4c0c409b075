"""HTTP surface tests through httpx.ASGITransport."""

import asyncio

import httpx
import pytest

from conftest import FakeSource, register, scores_reply

REPO_URL = "https://github.com/octo/demo"


async def create_repo(client: httpx.AsyncClient, url: str = REPO_URL) -> dict:
    resp = await client.post("/api/repos", json={"url": url})
    assert resp.status_code == 201, resp.text
    return resp.json()


async def wait_for_terminal(client: httpx.AsyncClient, scan_id: int) -> dict:
    for _ in range(200):
        resp = await client.get(f"/api/scans/{scan_id}")
        body = resp.json()
        if body["scan"]["status"] not in ("pending", "processing"):
            return body
        await asyncio.sleep(0.01)
    raise AssertionError("scan never reached a terminal state")


class TestAuth:
    @pytest.mark.asyncio
    async def test_register_login_logout(self, client: httpx.AsyncClient) -> None:
        user = await register(client, "a@example.com", "hunter22")
        assert user["email"] == "a@example.com"
        assert "passwordHash" not in user

        assert (await client.get("/api/auth/user")).json()["id"] == user["id"]

        assert (await client.post("/api/auth/logout")).status_code == 200
        client.cookies.clear()
        assert (await client.get("/api/auth/user")).status_code == 401

        bad = await client.post("/api/auth/login", json={"email": "a@example.com", "password": "nope-nope"})
        assert bad.status_code == 401

        good = await client.post("/api/auth/login", json={"email": "a@example.com", "password": "hunter22"})
        assert good.status_code == 200
        assert (await client.get("/api/auth/user")).status_code == 200

    @pytest.mark.asyncio
    async def test_register_validation(self, client: httpx.AsyncClient) -> None:
        assert (await client.post("/api/auth/register", json={"email": "a@example.com"})).status_code == 400
        short = await client.post("/api/auth/register", json={"email": "a@example.com", "password": "123"})
        assert short.status_code == 400

        await register(client, "a@example.com")
        dup = await client.post("/api/auth/register", json={"email": "a@example.com", "password": "secret123"})
        assert dup.status_code == 409

    @pytest.mark.asyncio
    async def test_protected_routes_need_session(self, client: httpx.AsyncClient) -> None:
        assert (await client.get("/api/repos")).status_code == 401
        assert (await client.post("/api/repos", json={"url": REPO_URL})).status_code == 401
        assert (await client.get("/api/stats")).status_code == 401


class TestRepos:
    @pytest.mark.asyncio
    async def test_create_list_get(self, auth_client: httpx.AsyncClient) -> None:
        repo = await create_repo(auth_client)
        assert repo["owner"] == "octo"
        assert repo["name"] == "demo"
        assert repo["defaultBranch"] == "main"
        assert repo["lastScannedAt"] is None

        listed = (await auth_client.get("/api/repos")).json()
        assert [r["id"] for r in listed] == [repo["id"]]

        assert (await auth_client.get(f"/api/repos/{repo['id']}")).json()["url"] == REPO_URL
        assert (await auth_client.get("/api/repos/9999")).status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url",
        ["https://gitlab.com/octo/demo", "https://github.com/octo", "not a url", "https://github.com/octo/demo/tree/main"],
    )
    async def test_invalid_url_is_400(self, auth_client: httpx.AsyncClient, url: str) -> None:
        resp = await auth_client.post("/api/repos", json={"url": url})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Must be a valid GitHub repository URL"

    @pytest.mark.asyncio
    async def test_delete_requires_owner(self, client: httpx.AsyncClient) -> None:
        await register(client, "owner@example.com")
        repo = await create_repo(client)

        client.cookies.clear()
        await register(client, "other@example.com")
        assert (await client.delete(f"/api/repos/{repo['id']}")).status_code == 401
        assert (await client.get(f"/api/repos/{repo['id']}")).status_code == 404

        client.cookies.clear()
        await client.post("/api/auth/login", json={"email": "owner@example.com", "password": "secret123"})
        assert (await client.delete(f"/api/repos/{repo['id']}")).status_code == 204
        assert (await client.get(f"/api/repos/{repo['id']}")).status_code == 404


class TestScans:
    @pytest.mark.asyncio
    async def test_scan_lifecycle(self, auth_client: httpx.AsyncClient, fake_source: FakeSource, fake_adapter) -> None:
        fake_source.files = {"src/app.ts": "const a = 1;", "src/util.ts": "export {}"}
        fake_adapter.replies = {'"src/app.ts"': scores_reply(40, 80, 60), '"src/util.ts"': scores_reply(90, 90, 90)}
        repo = await create_repo(auth_client)

        started = await auth_client.post(f"/api/repos/{repo['id']}/scan")
        assert started.status_code == 201
        assert started.json()["status"] == "processing"
        assert started.json()["repoId"] == repo["id"]

        body = await wait_for_terminal(auth_client, started.json()["id"])
        assert body["scan"]["status"] == "completed"
        assert body["scan"]["technicalDebtScore"] == 65
        assert body["scan"]["overallScore"] == round((65 + 85 + 75) / 3)
        assert [f["filePath"] for f in body["files"]] == ["src/util.ts", "src/app.ts"]
        assert body["files"][0]["refactoredCode"] == "// refactored"

        scans = (await auth_client.get(f"/api/repos/{repo['id']}/scans")).json()
        assert [s["id"] for s in scans] == [started.json()["id"]]
        assert (await auth_client.get(f"/api/repos/{repo['id']}")).json()["lastScannedAt"] is not None

    @pytest.mark.asyncio
    async def test_second_scan_conflicts(self, auth_client: httpx.AsyncClient, fake_source: FakeSource) -> None:
        fake_source.files = {"a.py": "x"}
        fake_source.gate = asyncio.Event()
        repo = await create_repo(auth_client)

        assert (await auth_client.post(f"/api/repos/{repo['id']}/scan")).status_code == 201
        assert (await auth_client.post(f"/api/repos/{repo['id']}/scan")).status_code == 409
        assert len((await auth_client.get(f"/api/repos/{repo['id']}/scans")).json()) == 1

        fake_source.gate.set()

    @pytest.mark.asyncio
    async def test_scan_missing_repo_is_404(self, auth_client: httpx.AsyncClient) -> None:
        assert (await auth_client.post("/api/repos/4242/scan")).status_code == 404
        assert (await auth_client.get("/api/scans/4242")).status_code == 404

    @pytest.mark.asyncio
    async def test_empty_repo_scan_fails(self, auth_client: httpx.AsyncClient) -> None:
        repo = await create_repo(auth_client)
        started = await auth_client.post(f"/api/repos/{repo['id']}/scan")

        body = await wait_for_terminal(auth_client, started.json()["id"])
        assert body["scan"]["status"] == "failed"
        assert body["scan"]["summary"] == "No relevant code files found."
        assert body["files"] == []

    @pytest.mark.asyncio
    async def test_export_is_html_attachment(self, auth_client: httpx.AsyncClient, fake_source: FakeSource) -> None:
        fake_source.files = {"main.go": "package main"}
        repo = await create_repo(auth_client)
        started = await auth_client.post(f"/api/repos/{repo['id']}/scan")
        await wait_for_terminal(auth_client, started.json()["id"])

        resp = await auth_client.get(f"/api/scans/{started.json()['id']}/export")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        assert resp.headers["content-disposition"] == (
            f'attachment; filename="debtlens-report-octo-demo-scan-{started.json()["id"]}.html"'
        )
        assert "main.go" in resp.text
        assert "<!DOCTYPE html>" in resp.text


class TestStats:
    @pytest.mark.asyncio
    async def test_stats_cover_completed_scans(self, auth_client: httpx.AsyncClient, fake_source: FakeSource) -> None:
        empty = (await auth_client.get("/api/stats")).json()
        assert empty["totalRepos"] == 0
        assert empty["averageOverallScore"] is None

        fake_source.files = {"a.py": "x", "b.py": "y"}
        repo = await create_repo(auth_client)
        started = await auth_client.post(f"/api/repos/{repo['id']}/scan")
        await wait_for_terminal(auth_client, started.json()["id"])

        stats = (await auth_client.get("/api/stats")).json()
        assert stats["totalRepos"] == 1
        assert stats["totalScans"] == 1
        assert stats["completedScans"] == 1
        assert stats["failedScans"] == 0
        assert stats["filesAnalyzed"] == 2
        assert stats["averageOverallScore"] == 50
        assert stats["averageSecurityScore"] == 50
