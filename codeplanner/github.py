"""GitHub REST client for repository trees, file contents and commits."""
from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote
import base64
import logging

import httpx

from codeplanner.errors import UpstreamFetchError
from codeplanner.pipeline.types import ChangedFile, CommitDetail, TreeEntry

logger = logging.getLogger(__name__)

_TREE_TYPES = {"blob": "file", "tree": "dir"}


class GitHubClient:
    """Read-only view of one repository.

    Every method raises UpstreamFetchError on a non-success status. The
    upstream error body is logged but never put into the exception message.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str | None = None,
        api_base: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None, what: str = "fetch") -> Any:
        url = f"{self.api_base}/repos/{self.owner}/{self.repo}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(url, params=params, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.error("GitHub request failed for %s: %s", url, exc)
            raise UpstreamFetchError(f"GitHub request failed: Failed to {what}") from exc
        if resp.status_code != 200:
            logger.error("GitHub API error (%s) for %s: %s", resp.status_code, url, resp.text[:500])
            raise UpstreamFetchError(f"GitHub error {resp.status_code}: Failed to {what}")
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamFetchError(f"GitHub returned invalid JSON: Failed to {what}") from exc

    async def get_file(self, path: str, ref: str) -> str:
        data = await self._get_json(
            f"/contents/{quote(path, safe='/')}", params={"ref": ref}, what="fetch file"
        )
        if not isinstance(data, dict):
            raise UpstreamFetchError("GitHub error: Failed to fetch file (not a file)")
        content = data.get("content") or ""
        if data.get("encoding") == "base64":
            raw = base64.b64decode(content.replace("\n", ""))
            return raw.decode("utf-8", errors="replace")
        return str(content)

    async def get_tree(self, ref: str) -> List[TreeEntry]:
        data = await self._get_json(
            f"/git/trees/{quote(ref, safe='')}", params={"recursive": "1"}, what="fetch repository tree"
        )
        entries: List[TreeEntry] = []
        for item in (data or {}).get("tree") or []:
            path = item.get("path")
            if not isinstance(path, str):
                continue
            kind = _TREE_TYPES.get(str(item.get("type")), str(item.get("type")))
            entries.append(TreeEntry(path=path, type=kind, id=str(item.get("sha") or "")))
        return entries

    async def list_commits(self, ref: str, count: int) -> List[str]:
        data = await self._get_json(
            "/commits", params={"sha": ref, "per_page": count}, what="list commits"
        )
        if not isinstance(data, list):
            return []
        return [str(item["sha"]) for item in data if isinstance(item, dict) and item.get("sha")]

    async def get_commit_detail(self, sha: str) -> CommitDetail:
        data = await self._get_json(f"/commits/{quote(sha, safe='')}", what="fetch commit")
        changed: List[ChangedFile] = []
        for item in (data or {}).get("files") or []:
            filename = item.get("filename")
            if isinstance(filename, str) and filename:
                changed.append(ChangedFile(path=filename, status=str(item.get("status") or "")))
        return CommitDetail(id=sha, changed_files=tuple(changed))
