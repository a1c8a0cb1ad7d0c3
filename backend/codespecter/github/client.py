"""Minimal GitHub REST client used by the workflows."""

from __future__ import annotations

import base64
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from ..errors import GitHubError

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


class GitHubClient:
    """Token-authenticated access to the repository, pull and issue endpoints."""

    def __init__(
        self,
        token: str,
        api_base: str = "https://api.github.com",
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = path if path.startswith("http") else f"{self.api_base}{path}"
        try:
            response = self.session.request(
                method, url, headers=self.headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise GitHubError(None, f"{method} {url} failed: {e}") from e
        if response.status_code >= 400:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise GitHubError(response.status_code, f"{method} {path}: {message}")
        return response

    def _get_json(self, path: str, **params) -> Any:
        return self._request("GET", path, params=params or None).json()

    def _get_paginated(self, path: str, per_page: int = 100) -> List[Dict]:
        items: List[Dict] = []
        url: Optional[str] = path
        params: Optional[Dict] = {"per_page": per_page}
        while url:
            response = self._request("GET", url, params=params)
            items.extend(response.json())
            url = response.links.get("next", {}).get("url")
            # The next link already carries the query string
            params = None
        return items

    # ------------------------------------------------------------------
    # Repository content
    # ------------------------------------------------------------------

    def get_default_branch(self, owner: str, repo: str) -> str:
        return self._get_json(f"/repos/{owner}/{repo}")["default_branch"]

    def get_repo_file_paths(self, owner: str, repo: str, ref: Optional[str] = None) -> List[str]:
        """All blob paths of the tree at ref (default branch when omitted)."""
        ref = ref or self.get_default_branch(owner, repo)
        data = self._get_json(f"/repos/{owner}/{repo}/git/trees/{ref}", recursive="1")
        if data.get("truncated"):
            logger.warning(f"Tree listing for {owner}/{repo}@{ref} was truncated by GitHub")
        return sorted(item["path"] for item in data.get("tree", []) if item.get("type") == "blob")

    def get_contents(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> Any:
        """Raw contents API response: a dict for files, a list for directories."""
        params = {"ref": ref} if ref else {}
        return self._get_json(f"/repos/{owner}/{repo}/contents/{quote(path)}", **params)

    def get_file_content(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> str:
        data = self.get_contents(owner, repo, path, ref=ref)
        if isinstance(data, list) or "content" not in data:
            raise GitHubError(None, f"{path} is not a file")
        return base64.b64decode(data["content"]).decode("utf-8", errors="replace")

    def fetch_file_content_batch(
        self,
        owner: str,
        repo: str,
        paths: List[str],
        ref: Optional[str] = None,
        max_workers: int = 10,
    ) -> List[Dict[str, str]]:
        """Fetch files in parallel, skipping any that cannot be read."""

        def fetch(path: str) -> Optional[Dict[str, str]]:
            try:
                return {"path": path, "content": self.get_file_content(owner, repo, path, ref=ref)}
            except GitHubError as e:
                logger.warning(f"Skipping unreadable file {path}: {e}")
                return None

        if not paths:
            return []
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(paths)))) as pool:
            results = list(pool.map(fetch, paths))
        return [r for r in results if r is not None]

    # ------------------------------------------------------------------
    # Pull requests and comments
    # ------------------------------------------------------------------

    def get_pull(self, owner: str, repo: str, number: int) -> Dict:
        return self._get_json(f"/repos/{owner}/{repo}/pulls/{number}")

    def list_pull_files(self, owner: str, repo: str, number: int) -> List[Dict]:
        return self._get_paginated(f"/repos/{owner}/{repo}/pulls/{number}/files")

    def get_review_comment(self, owner: str, repo: str, comment_id: int) -> Dict:
        return self._get_json(f"/repos/{owner}/{repo}/pulls/comments/{comment_id}")

    def list_issue_comments(self, owner: str, repo: str, number: int) -> List[Dict]:
        return self._get_paginated(f"/repos/{owner}/{repo}/issues/{number}/comments")

    def list_review_comments(self, owner: str, repo: str, number: int) -> List[Dict]:
        return self._get_paginated(f"/repos/{owner}/{repo}/pulls/{number}/comments")

    def create_issue_comment(self, owner: str, repo: str, number: int, body: str) -> Dict:
        return self._request(
            "POST", f"/repos/{owner}/{repo}/issues/{number}/comments", json={"body": body}
        ).json()

    def create_review_comment_reply(
        self, owner: str, repo: str, number: int, comment_id: int, body: str
    ) -> Dict:
        return self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{number}/comments/{comment_id}/replies",
            json={"body": body},
        ).json()
