"""Shared fixtures: an in-memory directory API behind ``httpx.MockTransport``."""

import asyncio
import itertools
import json
from typing import Any, Callable

import httpx
import pytest

from reflex_directory_grid.api import DirectoryApiClient
from reflex_directory_grid.config import DirectorySettings

BASE_URL = "http://directory.test"
AUTH = "Bearer test-token"

_CONTROL_PARAMS = {"page", "limit", "sortBy", "sortType"}
_ENUM_FIELDS = {"relationshipType", "type", "method", "duration"}


def _json(status: int, body: Any) -> httpx.Response:
    return httpx.Response(status, json=body)


class FakeDirectoryApi:
    """Minimal stand-in for the directory REST API.

    Persons are listed as ``{results, totalCount}`` and interactions as
    ``{data, meta: {total}}``, the two page shapes the real API uses.
    """

    def __init__(self) -> None:
        self.records: dict[str, list[dict[str, Any]]] = {"person": [], "interaction": []}
        self.requests: list[httpx.Request] = []
        self._ids = itertools.count(1)

        self.list_delay: float = 0.0
        self.fail_list_with: int | None = None
        self.fail_mutations_with: int | None = None
        self.fail_create: Callable[[dict[str, Any]], bool] = lambda payload: False
        self.create_delay: Callable[[dict[str, Any]], float] = lambda payload: 0.0
        self.upload_response: dict[str, Any] = {"status": "processing"}
        self.upload_status: int = 200

    # -- seeding ------------------------------------------------------------

    def add_person(self, name: str, **fields: Any) -> dict[str, Any]:
        record = {"id": next(self._ids), "name": name, "isDeleted": False, **fields}
        self.records["person"].append(record)
        return record

    def add_interaction(self, name: str, **fields: Any) -> dict[str, Any]:
        record = {"id": next(self._ids), "name": name, "isDeleted": False, **fields}
        self.records["interaction"].append(record)
        return record

    # -- introspection ------------------------------------------------------

    @property
    def list_requests(self) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == "GET" and r.url.path.strip("/") in self.records
        ]

    def requests_for(self, method: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method]

    # -- transport ----------------------------------------------------------

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.strip("/").split("/")

        if parts == ["excel", "upload"] and request.method == "POST":
            return _json(self.upload_status, self.upload_response)

        collection = parts[0]
        if collection not in self.records:
            return _json(404, {"message": "not found"})

        if request.method == "GET" and len(parts) == 1:
            return await self._list(collection, request)
        if request.method == "GET" and parts[1:] == ["export", "csv"]:
            return self._export(collection)
        if request.method == "POST" and len(parts) == 1:
            return await self._create(collection, json.loads(request.content))

        if self.fail_mutations_with is not None:
            return _json(self.fail_mutations_with, {"message": "mutation rejected"})
        record = self._find(collection, parts[1])
        if record is None:
            return _json(404, {"message": f"{collection} {parts[1]} not found"})
        if request.method == "PATCH":
            record.update(json.loads(request.content))
            return _json(200, record)
        if request.method == "PUT" and parts[2:] == ["restore"]:
            record["isDeleted"] = False
            return _json(200, record)
        if request.method == "PUT":
            record["isDeleted"] = True
            return _json(200, record)
        return _json(405, {"message": "method not allowed"})

    # -- handlers -----------------------------------------------------------

    def _find(self, collection: str, record_id: str) -> dict[str, Any] | None:
        for record in self.records[collection]:
            if str(record["id"]) == record_id:
                return record
        return None

    @staticmethod
    def _matches(record: dict[str, Any], key: str, values: list[str]) -> bool:
        cell = str(record.get(key) or "")
        if len(values) > 1 or key in _ENUM_FIELDS:
            return cell in values
        if key == "date":
            return cell.startswith(values[0])
        return values[0].casefold() in cell.casefold()

    async def _list(self, collection: str, request: httpx.Request) -> httpx.Response:
        if self.list_delay:
            await asyncio.sleep(self.list_delay)
        if self.fail_list_with is not None:
            return _json(self.fail_list_with, {"message": "list failed"})

        params = request.url.params
        rows = list(self.records[collection])
        for key in {k for k in params.keys() if k not in _CONTROL_PARAMS}:
            values = params.get_list(key)
            rows = [r for r in rows if self._matches(r, key, values)]
        if "sortBy" in params:
            rows.sort(
                key=lambda r: str(r.get(params["sortBy"]) or ""),
                reverse=params.get("sortType") == "desc",
            )
        page = int(params.get("page", 1))
        limit = int(params.get("limit", 10))
        chunk = rows[(page - 1) * limit: page * limit]
        if collection == "person":
            return _json(200, {"results": chunk, "totalCount": len(rows)})
        return _json(200, {"data": chunk, "meta": {"total": len(rows)}})

    def _export(self, collection: str) -> httpx.Response:
        lines = ["id,name"] + [f"{r['id']},{r['name']}" for r in self.records[collection]]
        return httpx.Response(
            200,
            content="\n".join(lines).encode(),
            headers={"Content-Type": "text/csv"},
        )

    async def _create(self, collection: str, payload: dict[str, Any]) -> httpx.Response:
        delay = self.create_delay(payload)
        if delay:
            await asyncio.sleep(delay)
        if self.fail_mutations_with is not None:
            return _json(self.fail_mutations_with, {"message": "mutation rejected"})
        if self.fail_create(payload):
            return _json(500, {"message": f"could not store {payload.get('name')}"})
        email = payload.get("email")
        if email and any(r.get("email") == email for r in self.records[collection]):
            return _json(409, {"code": "DUPLICATE_RECORD", "message": f"{email} already exists"})
        record = {"id": next(self._ids), "isDeleted": False, **payload}
        self.records[collection].append(record)
        return _json(201, record)


@pytest.fixture
def api() -> FakeDirectoryApi:
    return FakeDirectoryApi()


@pytest.fixture
def settings() -> DirectorySettings:
    """Settings with a short debounce so tests stay fast."""
    return DirectorySettings(
        api_url=BASE_URL,
        auth_header=AUTH,
        debounce_seconds=0.02,
        import_idle_timeout=0.2,
    )


@pytest.fixture
def client(api: FakeDirectoryApi, settings: DirectorySettings) -> DirectoryApiClient:
    return DirectoryApiClient.from_settings(settings, transport=httpx.MockTransport(api.handle))
