"""
GitHub REST client for public repositories.

Resolves branch → commit tree → recursive listing, and fetches blob
contents. One instance is shared by every scan; nothing is cached.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from debtlens.config import CODE_EXTENSIONS, IGNORE_PATTERNS

logger = logging.getLogger("github")

GITHUB_API_BASE = "https://api.github.com"
USER_AGENT = "DebtLens-Code-Intelligence"


class GitHubError(Exception):
    """An upstream GitHub call failed. The message names the failed stage."""


@dataclass
class TreeItem:
    path: str
    type: str
    sha: str
    url: str
    size: Optional[int] = None

    @property
    def language(self) -> str:
        return self.path.rsplit(".", 1)[-1] if "." in self.path else ""


def parse_repo_url(url: str) -> Tuple[str, str]:
    """https://github.com/owner/name[.git] → (owner, name)."""
    parts = url.rstrip("/").replace("https://github.com/", "").split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ValueError("Invalid GitHub URL")
    name = parts[1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return parts[0], name


def is_code_file(
    path: str,
    extensions: Sequence[str] = CODE_EXTENSIONS,
    ignore_patterns: Sequence[str] = IGNORE_PATTERNS,
) -> bool:
    if any(p in path for p in ignore_patterns):
        return False
    return path.endswith(tuple(extensions))


class GitHubClient:
    def __init__(
        self,
        http: Optional[httpx.AsyncClient] = None,
        base_url: str = GITHUB_API_BASE,
        token: Optional[str] = None,
        timeout: float = 30.0,
        extensions: Sequence[str] = CODE_EXTENSIONS,
        ignore_patterns: Sequence[str] = IGNORE_PATTERNS,
    ):
        self.http = http or httpx.AsyncClient(timeout=timeout)
        self.base_url = base_url.rstrip("/")
        self.extensions = tuple(extensions)
        self.ignore_patterns = tuple(ignore_patterns)
        self.headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/vnd.github+json",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    async def aclose(self) -> None:
        await self.http.aclose()

    async def fetch_repo_tree(self, owner: str, repo: str, branch: str = "main") -> List[TreeItem]:
        """
        Return the blobs of `branch` that look like source code, in tree order.
        A missing "main" falls back to "master" once.
        """
        try:
            branch_data = await self._get_json(
                f"{self.base_url}/repos/{owner}/{repo}/branches/{branch}",
                stage=f"Failed to fetch branch {branch}",
            )
        except GitHubError:
            if branch == "main":
                logger.info(f"{owner}/{repo}: branch 'main' not found, retrying with 'master'")
                return await self.fetch_repo_tree(owner, repo, "master")
            raise

        try:
            tree_sha = branch_data["commit"]["commit"]["tree"]["sha"]
        except (KeyError, TypeError):
            raise GitHubError(f"Failed to fetch branch {branch}: response has no tree sha")

        tree_data = await self._get_json(
            f"{self.base_url}/repos/{owner}/{repo}/git/trees/{tree_sha}",
            stage="Failed to fetch tree",
            params={"recursive": "1"},
        )

        items = [
            TreeItem(
                path=entry["path"],
                type=entry.get("type", ""),
                sha=entry.get("sha", ""),
                url=entry.get("url", ""),
                size=entry.get("size"),
            )
            for entry in tree_data.get("tree", [])
        ]
        files = [
            item for item in items
            if item.type == "blob" and is_code_file(item.path, self.extensions, self.ignore_patterns)
        ]
        logger.info(f"{owner}/{repo}@{branch}: {len(files)} of {len(items)} tree entries are code files")
        return files

    async def fetch_file_content(self, url: str) -> str:
        """Fetch a blob by its API URL and return the decoded text."""
        data = await self._get_json(url, stage="Failed to fetch file content")
        content = data.get("content") or ""
        if data.get("encoding") == "base64":
            try:
                return base64.b64decode(content).decode("utf-8", errors="replace")
            except ValueError as e:
                raise GitHubError(f"Failed to fetch file content: invalid base64 ({e})")
        return content

    async def _get_json(self, url: str, stage: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        try:
            resp = await self.http.get(url, headers=self.headers, params=params)
        except httpx.HTTPError as e:
            raise GitHubError(f"{stage}: {e}") from e

        if resp.status_code >= 400:
            raise GitHubError(f"{stage}: {resp.status_code} {resp.reason_phrase}")
        return resp.json()
