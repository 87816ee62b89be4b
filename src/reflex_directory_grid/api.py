"""Async client for the directory REST API.

Only the request/response shapes matter here; transport details belong to
httpx.  The ``Authorization`` header handed in by the session layer is
forwarded verbatim on every request and never inspected.

Consumed surface::

    GET    /{resource}?page&limit&sortBy&sortType&<field>=<value>...
    PATCH  /{resource}/{id}            edit
    PUT    /{resource}/{id}            soft delete
    PUT    /{resource}/{id}/restore    restore
    POST   /{resource}                 create one record
    GET    /{resource}/export/csv      CSV download
    POST   /excel/upload               multipart spreadsheet upload
"""

import logging
import time
from pathlib import Path
from typing import Any, Iterable

import httpx
from pydantic import ValidationError

from reflex_directory_grid.config import DirectorySettings, get_settings
from reflex_directory_grid.errors import (
    ApiError,
    DirectoryConnectionError,
    DuplicateRecordError,
    FetchError,
    MutationError,
)
from reflex_directory_grid.query import FetchRequest, PageResult
from reflex_directory_grid.resources import Resource
from reflex_directory_grid.spreadsheet import SourceFile

logger = logging.getLogger(__name__)

_DEFAULT_DUPLICATE_CODES: tuple[str, ...] = ("DUPLICATE_RECORD", "duplicate")


def _decode_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def parse_page_payload(resource: Resource, payload: Any) -> PageResult:
    """Turn a list response into a :class:`PageResult` of parsed records.

    Accepts both payload shapes the API has used::

        {"results": [...], "totalCount": 23}
        {"data": [...], "meta": {"total": 23}}
    """
    if not isinstance(payload, dict):
        raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
    rows = payload.get("results")
    if rows is None:
        rows = payload.get("data") or []
    total = payload.get("totalCount")
    if total is None:
        total = (payload.get("meta") or {}).get("total")
    if total is None:
        total = len(rows)
    records = [resource.record_model.model_validate(row) for row in rows]
    return PageResult(rows=records, total_count=int(total))


class DirectoryApiClient:
    """Thin async wrapper over :class:`httpx.AsyncClient`.

    Args:
        base_url: API root, e.g. ``https://crm.example.org/api``.
        auth_header: Value for the ``Authorization`` header, if any.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
        duplicate_codes: Server-declared error ``code`` values that mark a
            rejected create as a duplicate.
    """

    def __init__(
        self,
        base_url: str,
        *,
        auth_header: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        duplicate_codes: Iterable[str] = _DEFAULT_DUPLICATE_CODES,
    ) -> None:
        headers = {"Accept": "application/json"}
        if auth_header:
            headers["Authorization"] = auth_header
        self.base_url = base_url.rstrip("/")
        self.duplicate_codes = frozenset(str(c) for c in duplicate_codes)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: DirectorySettings | None = None,
        **overrides: Any,
    ) -> "DirectoryApiClient":
        settings = settings or get_settings()
        kwargs: dict[str, Any] = {
            "auth_header": settings.auth_header,
            "timeout": settings.request_timeout,
            "duplicate_codes": settings.duplicate_codes,
        }
        kwargs.update(overrides)
        return cls(settings.api_url, **kwargs)

    async def __aenter__(self) -> "DirectoryApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_records(self, resource: Resource, request: FetchRequest) -> PageResult:
        """Fetch one page of *resource* for the given request parameters."""
        response = await self._send(
            "GET", f"/{resource.path}", FetchError, params=list(request.params)
        )
        try:
            return parse_page_payload(resource, _decode_json(response))
        except (ValueError, TypeError, ValidationError) as exc:
            raise FetchError(
                f"Malformed {resource.name} page: {exc}",
                status_code=response.status_code,
            ) from exc

    async def export_csv(self, resource: Resource, dest: Path | None = None) -> Path:
        """Stream ``/{resource}/export/csv`` into *dest* and return its path.

        The body is written to a ``.part`` sibling and renamed into place once
        complete; an interrupted download leaves *dest* untouched.
        """
        dest = Path(dest) if dest is not None else Path(resource.export_filename)
        partial = dest.with_name(dest.name + ".part")
        url = f"/{resource.path}/export/csv"
        t0 = time.perf_counter()
        try:
            async with self._client.stream("GET", url) as response:
                if response.is_error:
                    await response.aread()
                    raise self._error_from_response(response, FetchError)
                with partial.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
            partial.replace(dest)
        except httpx.TransportError as exc:
            raise DirectoryConnectionError(f"GET {url} failed: {exc}") from exc
        finally:
            partial.unlink(missing_ok=True)
        logger.info(
            "exported %s to %s (%d bytes, %.1fms)",
            resource.name,
            dest,
            dest.stat().st_size,
            (time.perf_counter() - t0) * 1000,
        )
        return dest

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_record(self, resource: Resource, fields: dict[str, Any]) -> dict[str, Any]:
        """Create one record.

        Raises:
            DuplicateRecordError: The server declared the record a duplicate.
            MutationError: Any other rejection.
        """
        response = await self._send("POST", f"/{resource.path}", MutationError, json=fields)
        body = _decode_json(response)
        return body if isinstance(body, dict) else {}

    async def edit_record(
        self,
        resource: Resource,
        record_id: int | str,
        fields: dict[str, Any],
    ) -> None:
        await self._send("PATCH", f"/{resource.path}/{record_id}", MutationError, json=fields)

    async def soft_delete_record(self, resource: Resource, record_id: int | str) -> None:
        await self._send("PUT", f"/{resource.path}/{record_id}", MutationError)

    async def restore_record(self, resource: Resource, record_id: int | str) -> None:
        await self._send("PUT", f"/{resource.path}/{record_id}/restore", MutationError)

    async def upload_spreadsheet(
        self,
        source: SourceFile,
        session_token: str | None = None,
    ) -> dict[str, Any]:
        """Upload a raw spreadsheet for server-side import.

        The optional *session_token* ties the upload to the push channel
        the server reports progress on.
        """
        files = {"excel": (source.name, source.content, source.effective_type)}
        data = {"sessionId": session_token} if session_token else None
        response = await self._send("POST", "/excel/upload", MutationError, files=files, data=data)
        body = _decode_json(response)
        return body if isinstance(body, dict) else {}

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        url: str,
        error_cls: type[ApiError],
        **kwargs: Any,
    ) -> httpx.Response:
        t0 = time.perf_counter()
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise DirectoryConnectionError(f"{method} {url} failed: {exc}") from exc
        logger.debug(
            "%s %s -> %d (%.1fms)",
            method,
            response.url,
            response.status_code,
            (time.perf_counter() - t0) * 1000,
        )
        if response.is_error:
            raise self._error_from_response(response, error_cls)
        return response

    def _is_duplicate(self, status_code: int, code: Any) -> bool:
        return status_code == 409 or (code is not None and str(code) in self.duplicate_codes)

    def _error_from_response(
        self,
        response: httpx.Response,
        error_cls: type[ApiError],
    ) -> ApiError:
        payload = _decode_json(response)
        code: Any = None
        request = response.request
        message = f"{request.method} {request.url.path} failed with HTTP {response.status_code}"
        if isinstance(payload, dict):
            code = payload.get("code")
            message = payload.get("message") or payload.get("error") or message
        if issubclass(error_cls, MutationError) and self._is_duplicate(response.status_code, code):
            error_cls = DuplicateRecordError
        return error_cls(
            str(message),
            status_code=response.status_code,
            code=code,
            payload=payload,
        )
