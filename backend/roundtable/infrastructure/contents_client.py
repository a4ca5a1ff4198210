"""Content Store Client: conditional GET, CAS PUT/DELETE and listing over the Contents API.

Invariants:
    - 304: cached entry reused untouched; 404: absent (None / []), never an error
    - 409/422 on PUT/DELETE: VersionConflictError (caller decides on the retry)
    - 403/429: RateLimitedError (drives sync backoff); 401: AuthFailureError
    - Anything else non-2xx, or a transport failure: StoreAPIError
    - A path that resolves to anything but a file: MalformedRecordError
    - Cached reads (read, list_dir) refresh the ETag cache on 200;
      successful writes and deletes invalidate the written path

Design Decisions:
    - Wrapper over raw httpx client: isolates status classification from the
      sync engine and write coordinator
    - fetch() is unconditional and uncached: CAS writes need the freshest sha,
      not whatever the poll loop last saw
    - No retries here: retry policy belongs to the write coordinator (one CAS
      retry) and the sync engine (backoff between cycles)
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from roundtable.core.errors import (
    AuthFailureError,
    ErrorContext,
    MalformedRecordError,
    RateLimitedError,
    ResourceNotFoundError,
    StoreAPIError,
    VersionConflictError,
)
from roundtable.core.record_codec import from_b64, to_b64
from roundtable.infrastructure.etag_cache import EtagCache

logger = logging.getLogger(__name__)

_RATE_LIMIT_STATUSES = (403, 429)
_CONFLICT_STATUSES = (409, 422)


@dataclass(frozen=True)
class StoredObject:
    """Fresh, unconditional read of one object."""
    path: str
    sha: str
    size: int
    text: str


@dataclass(frozen=True)
class ReadResult:
    """Conditional read outcome. `changed` is False when served from the cache."""
    path: str
    sha: str | None
    value: Any
    changed: bool


@dataclass(frozen=True)
class DirEntry:
    name: str
    path: str
    type: str
    sha: str


def _identity(text: str) -> Any:
    return text


class ContentsClient:
    """Typed wrapper around one repository branch of a Contents-API store."""

    def __init__(
        self,
        *,
        owner: str,
        repo: str,
        branch: str,
        token: str,
        cache: EtagCache,
        api_url: str = "https://api.github.com",
        committer_name: str = "Round Table App",
        committer_email: str = "roundtable@example.com",
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Accept": "application/vnd.github+json"}
        if token:
            headers["Authorization"] = f"token {token}"
        self.client = httpx.AsyncClient(
            base_url=api_url,
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )
        self.cache = cache
        self.owner = owner
        self.repo = repo
        self.branch = branch
        self.committer = {"name": committer_name, "email": committer_email}

    async def aclose(self) -> None:
        await self.client.aclose()

    # -- Reads -------------------------------------------------------------------

    async def read(
        self, path: str, parse: Callable[[str], Any] = _identity,
    ) -> ReadResult | None:
        """Conditional read of a file, parsed once per new version."""
        prev = self.cache.get(path)
        response = await self._get(path, etag=prev.etag if prev else None)
        if response.status_code == 404:
            return None
        if response.status_code == 304 and prev is not None:
            return ReadResult(path=path, sha=prev.sha, value=prev.value, changed=False)
        self._raise_for_status(response, path)
        data = self._file_payload(response, path)
        text = self._decode_content(data)
        entry = self.cache.put(
            path, response.headers.get("ETag"), data.get("sha"), parse(text),
        )
        return ReadResult(path=path, sha=entry.sha, value=entry.value, changed=True)

    async def fetch(self, path: str) -> StoredObject | None:
        """Unconditional read of the current version and body."""
        response = await self._get(path)
        if response.status_code == 404:
            return None
        self._raise_for_status(response, path)
        data = self._file_payload(response, path)
        return StoredObject(
            path=data.get("path", path),
            sha=data["sha"],
            size=int(data.get("size") or 0),
            text=self._decode_content(data),
        )

    async def list_dir(self, directory: str, suffix: str) -> list[DirEntry]:
        """List files in `directory` whose name ends with `suffix` (case-insensitive)."""
        path = directory.strip("/")
        prev = self.cache.get(path)
        response = await self._get(path, etag=prev.etag if prev else None)
        if response.status_code == 404:
            return []
        if response.status_code == 304 and prev is not None:
            items = prev.value
        else:
            self._raise_for_status(response, path)
            data = response.json()
            items = data if isinstance(data, list) else []
            self.cache.put(path, response.headers.get("ETag"), None, items)
        return [
            DirEntry(
                name=it.get("name", ""),
                path=it.get("path", ""),
                type=it.get("type", ""),
                sha=it.get("sha", ""),
            )
            for it in items
            if isinstance(it, dict)
            and it.get("type") == "file"
            and str(it.get("name", "")).lower().endswith(suffix.lower())
        ]

    # -- Writes ------------------------------------------------------------------

    async def write(
        self, path: str, text: str, sha: str | None, message: str,
    ) -> str:
        """CAS write. `sha` None means create; returns the new version sha."""
        body: dict[str, Any] = {
            "message": message,
            "content": to_b64(text),
            "branch": self.branch,
            "committer": self.committer,
        }
        if sha:
            body["sha"] = sha
        response = await self._send("PUT", path, json=body)
        self._raise_for_status(response, path, mutating=True)
        self.cache.invalidate(path)
        new_sha = (response.json().get("content") or {}).get("sha", "")
        logger.info("Wrote object", extra={"path": path})
        return new_sha

    async def delete(self, path: str, sha: str, message: str) -> None:
        body = {
            "message": message,
            "sha": sha,
            "branch": self.branch,
            "committer": self.committer,
        }
        response = await self._send("DELETE", path, json=body)
        if response.status_code == 404:
            raise ResourceNotFoundError(
                "Object", path, context=ErrorContext(path=path, status_code=404),
            )
        self._raise_for_status(response, path, mutating=True)
        self.cache.invalidate(path)
        logger.info("Deleted object", extra={"path": path})

    # -- Internals ---------------------------------------------------------------

    def _contents_url(self, path: str) -> str:
        encoded = quote(path.strip("/"), safe="/")
        base = f"/repos/{self.owner}/{self.repo}/contents"
        return f"{base}/{encoded}" if encoded else base

    async def _get(self, path: str, etag: str | None = None) -> httpx.Response:
        headers = {"If-None-Match": etag} if etag else None
        return await self._send(
            "GET", path, params={"ref": self.branch}, headers=headers,
        )

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self.client.request(method, self._contents_url(path), **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"Transport error on {method} {path}: {e}")
            raise StoreAPIError(
                f"{method} {path} failed: {e}", context=ErrorContext(path=path),
            ) from e

    def _raise_for_status(
        self, response: httpx.Response, path: str, mutating: bool = False,
    ) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        ctx = ErrorContext(path=path, status_code=status)
        if status == 401:
            raise AuthFailureError(status, context=ctx)
        if status in _RATE_LIMIT_STATUSES:
            retry_after_ms = self._extract_retry_after(response)
            logger.warning(
                f"Content API throttled ({status}) on {path}",
                extra={"path": path},
            )
            raise RateLimitedError(status, retry_after_ms, context=ctx)
        if mutating and status in _CONFLICT_STATUSES:
            raise VersionConflictError(path, context=ctx)
        raise StoreAPIError(
            f"{response.request.method} {path} returned {status}",
            status_code=status,
            context=ctx,
        )

    @staticmethod
    def _file_payload(response: httpx.Response, path: str) -> dict:
        data = response.json()
        is_file = isinstance(data, dict) and data.get("type", "file") == "file"
        if not is_file or not data.get("sha"):
            raise MalformedRecordError(path, "not a file object")
        return data

    @staticmethod
    def _decode_content(data: dict) -> str:
        if data.get("encoding") == "base64" and data.get("content"):
            return from_b64(data["content"])
        return ""

    @staticmethod
    def _extract_retry_after(response: httpx.Response) -> int | None:
        """Retry-After header in milliseconds, if present and numeric."""
        val = response.headers.get("retry-after")
        if val and val.strip().isdigit():
            return int(val) * 1000
        return None

