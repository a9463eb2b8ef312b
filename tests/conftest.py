"""
Shared test configuration and fixtures.

Provides an in-process fake of the StudyGlade REST API (aiohttp.web served by
aiohttp.test_utils.TestServer). The fake answers in the API's own shapes:
``_id``, camelCase field names, Title Case statuses and response envelopes,
so the normalization boundary is exercised on every remote call.

Failure injection:
- ``fail_with = 503`` makes every collection call fail
- ``fail_with = 401`` makes every call (login included) answer 401
"""

from __future__ import annotations

import logging
import tempfile
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from studyglade_sync import StudySession, SyncConfig

logger = logging.getLogger(__name__)

_WIRE_NAMES = {"owner_key": "ownerKey", "created_at": "createdAt", "updated_at": "updatedAt"}


def to_wire(data: dict[str, Any]) -> dict[str, Any]:
    """Rename canonical fields the way the API spells them."""
    wire: dict[str, Any] = {}
    for key, value in data.items():
        if key == "id":
            continue
        wire[_WIRE_NAMES.get(key, key)] = value
    if isinstance(wire.get("status"), str):
        wire["status"] = wire["status"].replace("_", " ").title()
    return wire


class FakeApi:
    """Minimal stand-in for the StudyGlade API."""

    def __init__(self) -> None:
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self.tokens: set[str] = {"preissued-token"}
        self.fail_with: int | None = None
        self.ignore_owner_filter = False
        self.wrap_lists = True
        self.requests: list[tuple[str, str]] = []
        self.uploads: dict[str, bytes] = {}
        self.base_url = ""
        self._next_id = 100

    def seed(self, collection: str, **fields: Any) -> dict[str, Any]:
        """Insert a record in wire form and return it."""
        doc = {"_id": str(self._next_id), "status": "Pending", **fields}
        self._next_id += 1
        self.collections.setdefault(collection, []).append(doc)
        return doc

    def find(self, collection: str, record_id: str) -> dict[str, Any] | None:
        for doc in self.collections.get(collection, []):
            if doc["_id"] == record_id:
                return doc
        return None

    def build_app(self) -> web.Application:
        @web.middleware
        async def gatekeeper(request: web.Request, handler: Any) -> web.StreamResponse:
            self.requests.append((request.method, request.path))
            if self.fail_with is not None:
                return web.json_response({"message": "injected failure"}, status=self.fail_with)
            if request.path != "/auth/session":
                auth = request.headers.get("Authorization", "")
                if auth.removeprefix("Bearer ") not in self.tokens:
                    return web.json_response({"message": "Not authorized"}, status=401)
            return await handler(request)

        app = web.Application(middlewares=[gatekeeper])
        app.add_routes(
            [
                web.post("/auth/session", self.login),
                web.get("/{collection}", self.list_records),
                web.post("/{collection}", self.create_record),
                web.put("/{collection}/{id}", self.update_record),
                web.post("/{collection}/{id}/upload", self.upload),
                web.post("/{collection}/{id}/increment", self.increment),
            ]
        )
        return app

    async def login(self, request: web.Request) -> web.Response:
        body = await request.json()
        owner = body["owner_key"]
        token = f"token-{owner}"
        self.tokens.add(token)
        return web.json_response({"token": token, "owner_key": owner, "display_name": owner.title()})

    async def list_records(self, request: web.Request) -> web.Response:
        collection = request.match_info["collection"]
        docs = list(self.collections.get(collection, []))
        for key, value in request.query.items():
            if key == "owner_key":
                if not self.ignore_owner_filter:
                    docs = [d for d in docs if d.get("ownerKey") == value]
            elif key == "search":
                docs = [d for d in docs if value.lower() in str(d.get("title", "")).lower()]
            elif key == "status":
                docs = [d for d in docs if d["status"].lower().replace(" ", "_") == value]
            else:
                docs = [d for d in docs if str(d.get(key)) == value]
        if self.wrap_lists:
            return web.json_response({collection: docs})
        return web.json_response(docs)

    async def create_record(self, request: web.Request) -> web.Response:
        collection = request.match_info["collection"]
        doc = {"_id": str(self._next_id), **to_wire(await request.json()), "__v": 0}
        self._next_id += 1
        self.collections.setdefault(collection, []).append(doc)
        return web.json_response({"record": doc}, status=201)

    async def update_record(self, request: web.Request) -> web.Response:
        doc = self.find(request.match_info["collection"], request.match_info["id"])
        if doc is None:
            return web.json_response({"message": "Not found"}, status=404)
        doc.update(to_wire(await request.json()))
        return web.json_response({"updated": doc})

    async def upload(self, request: web.Request) -> web.Response:
        collection = request.match_info["collection"]
        record_id = request.match_info["id"]
        if self.find(collection, record_id) is None:
            return web.json_response({"message": "Not found"}, status=404)
        form = await request.post()
        file = form["file"]
        url = f"https://files.example.test/{collection}/{record_id}/{file.filename}"
        self.uploads[url] = file.file.read()
        return web.json_response(
            {"attachment": {"name": file.filename, "url": url, "mimeType": file.content_type}}
        )

    async def increment(self, request: web.Request) -> web.Response:
        doc = self.find(request.match_info["collection"], request.match_info["id"])
        if doc is None:
            return web.json_response({"message": "Not found"}, status=404)
        field = (await request.json())["field"]
        doc[field] = int(doc.get(field) or 0) + 1
        return web.json_response(doc)


@pytest.fixture
async def temp_dir() -> AsyncIterator[Path]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
async def fake_api() -> AsyncIterator[FakeApi]:
    """Start the fake API on a free local port."""
    api = FakeApi()
    server = TestServer(api.build_app())
    await server.start_server()
    api.base_url = str(server.make_url("/")).rstrip("/")
    yield api
    await server.close()


@pytest.fixture
def local_config(temp_dir: Path) -> SyncConfig:
    return SyncConfig(local_path=temp_dir)


@pytest.fixture
def remote_config(fake_api: FakeApi, temp_dir: Path) -> SyncConfig:
    return SyncConfig(api_base_url=fake_api.base_url, use_backend=True, local_path=temp_dir)


@pytest.fixture
async def local_session(local_config: SyncConfig) -> AsyncIterator[StudySession]:
    """A local-only session acting as alice."""
    session = await StudySession.create(local_config, "alice")
    yield session
    await session.close()


@pytest.fixture
async def remote_session(remote_config: SyncConfig) -> AsyncIterator[StudySession]:
    """A remote session logged in as alice."""
    session = await StudySession.create(remote_config, "alice")
    yield session
    await session.close()
