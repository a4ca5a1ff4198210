"""Root conftest: in-memory Contents API fake and shared fixtures.

Invariants:
    - FakeContentsAPI honours If-None-Match (304), CAS sha checks (409/422) and 404s
    - Every test gets a fresh fake, a fresh ETag cache and a fresh in-memory SQLite
    - No test reaches the network (httpx.MockTransport)

Design Decisions:
    - The fake speaks HTTP, so ContentsClient status classification is exercised
      end-to-end instead of being mocked away
    - fail_next() scripts throttling/conflicts; before_write simulates a concurrent
      writer landing between a client's fetch and its write
"""

import base64
import hashlib
import json
import os
from collections import deque
from urllib.parse import unquote

import httpx
import pytest

from roundtable.config import Settings
from roundtable.infrastructure.contents_client import ContentsClient
from roundtable.infrastructure.database import DatabaseSessionManager
from roundtable.infrastructure.etag_cache import EtagCache
from roundtable.services.local_state import SqlLocalStateRepository

# Ensure tests don't accidentally use a real token
os.environ.setdefault("RT_STORE_TOKEN", "test-token")

OWNER = "acme"
REPO = "board"
PREFIX = f"/repos/{OWNER}/{REPO}/contents"


def b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


class FakeContentsAPI:
    """Minimal GitHub-Contents-shaped server over a dict of path -> (sha, text)."""

    def __init__(self):
        self.files: dict[str, tuple[str, str]] = {}
        self.requests: list[tuple[str, str, int]] = []
        self._failures: deque[tuple[str, int, dict]] = deque()
        self._version = 0
        self.before_write = None

    # -- Test helpers ------------------------------------------------------------

    def put_file(self, path: str, text: str) -> str:
        self._version += 1
        sha = hashlib.sha1(f"{path}:{self._version}:{text}".encode()).hexdigest()
        self.files[path] = (sha, text)
        return sha

    def text(self, path: str) -> str | None:
        entry = self.files.get(path)
        return entry[1] if entry else None

    def sha(self, path: str) -> str | None:
        entry = self.files.get(path)
        return entry[0] if entry else None

    def fail_next(
        self, method: str, status: int, times: int = 1, headers: dict | None = None,
    ) -> None:
        for _ in range(times):
            self._failures.append((method, status, headers or {}))

    def count(self, method: str, path: str | None = None, status: int | None = None) -> int:
        return sum(
            1 for m, p, s in self.requests
            if m == method
            and (path is None or p == path)
            and (status is None or s == status)
        )

    # -- HTTP --------------------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = unquote(request.url.path)
        assert path.startswith(PREFIX), path
        path = path[len(PREFIX):].strip("/")
        response = self._dispatch(request, path)
        self.requests.append((request.method, path, response.status_code))
        return response

    def _dispatch(self, request: httpx.Request, path: str) -> httpx.Response:
        if self._failures and self._failures[0][0] == request.method:
            _, status, headers = self._failures.popleft()
            return httpx.Response(
                status, headers=headers, json={"message": "scripted failure"},
            )
        if request.method == "GET":
            return self._get(request, path)
        body = json.loads(request.content or b"{}")
        if request.method == "PUT":
            if self.before_write is not None:
                hook, self.before_write = self.before_write, None
                hook(path)
            return self._put(path, body)
        if request.method == "DELETE":
            return self._delete(path, body)
        return httpx.Response(405)

    def _get(self, request: httpx.Request, path: str) -> httpx.Response:
        if path in self.files:
            sha, text = self.files[path]
            etag = f'"{sha}"'
            if request.headers.get("If-None-Match") == etag:
                return httpx.Response(304, headers={"ETag": etag})
            return httpx.Response(200, headers={"ETag": etag}, json={
                "type": "file",
                "name": path.rsplit("/", 1)[-1],
                "path": path,
                "sha": sha,
                "size": len(text.encode("utf-8")),
                "encoding": "base64",
                "content": b64(text),
            })
        listing = self._listing(path)
        if listing is None:
            return httpx.Response(404, json={"message": "Not Found"})
        etag = '"' + hashlib.sha1(json.dumps(listing).encode()).hexdigest() + '"'
        if request.headers.get("If-None-Match") == etag:
            return httpx.Response(304, headers={"ETag": etag})
        return httpx.Response(200, headers={"ETag": etag}, json=listing)

    def _listing(self, directory: str) -> list[dict] | None:
        prefix = f"{directory}/" if directory else ""
        entries: dict[str, dict] = {}
        for full, (sha, _) in sorted(self.files.items()):
            if not full.startswith(prefix):
                continue
            rest = full[len(prefix):]
            head, sep, _tail = rest.partition("/")
            if sep:
                entries.setdefault(head, {
                    "name": head, "path": prefix + head, "type": "dir", "sha": "",
                })
            else:
                entries[head] = {"name": head, "path": full, "type": "file", "sha": sha}
        if not entries:
            return None
        return list(entries.values())

    def _put(self, path: str, body: dict) -> httpx.Response:
        current = self.files.get(path)
        presented = body.get("sha")
        if current is None and presented:
            return httpx.Response(409, json={"message": "sha does not match"})
        if current is not None and not presented:
            return httpx.Response(422, json={"message": '"sha" wasn\'t supplied.'})
        if current is not None and presented != current[0]:
            return httpx.Response(409, json={"message": "sha does not match"})
        text = base64.b64decode(body["content"]).decode("utf-8")
        sha = self.put_file(path, text)
        status = 201 if current is None else 200
        return httpx.Response(status, json={"content": {"path": path, "sha": sha}})

    def _delete(self, path: str, body: dict) -> httpx.Response:
        current = self.files.get(path)
        if current is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if body.get("sha") != current[0]:
            return httpx.Response(409, json={"message": "sha does not match"})
        del self.files[path]
        return httpx.Response(200, json={"commit": {}})


@pytest.fixture
def fake_api():
    return FakeContentsAPI()


@pytest.fixture
def transport(fake_api):
    return httpx.MockTransport(fake_api.handler)


@pytest.fixture
def cache():
    return EtagCache()


@pytest.fixture
async def store(fake_api, transport, cache):
    client = ContentsClient(
        owner=OWNER, repo=REPO, branch="main", token="test-token",
        cache=cache, api_url="https://api.test", transport=transport,
    )
    yield client
    await client.aclose()


@pytest.fixture
async def db_manager():
    manager = DatabaseSessionManager("sqlite+aiosqlite:///:memory:")
    await manager.create_all()
    yield manager
    await manager.dispose()


@pytest.fixture
async def local_state(db_manager):
    return SqlLocalStateRepository(db_manager)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        store_api_url="https://api.test",
        store_owner=OWNER,
        store_repo=REPO,
        store_branch="main",
        store_dir="roundtable",
        store_token="test-token",
        team_name="Alpha",
        database_url="sqlite+aiosqlite:///:memory:",
        reaction_debounce_ms=10,
        resync_delay_ms=0,
    )
