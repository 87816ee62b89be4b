"""Tests for the HTTP client, payload parsing and record schemas."""

import httpx
import pytest

from reflex_directory_grid.api import DirectoryApiClient, parse_page_payload
from reflex_directory_grid.errors import (
    DirectoryConnectionError,
    DuplicateRecordError,
    FetchError,
    MutationError,
)
from reflex_directory_grid.models import InteractionRecord, PersonRecord
from reflex_directory_grid.query import FetchRequest, QueryState
from reflex_directory_grid.resources import INTERACTION, PERSON
from reflex_directory_grid.spreadsheet import SourceFile

from conftest import AUTH, BASE_URL


def _client(handler) -> DirectoryApiClient:
    return DirectoryApiClient(BASE_URL, auth_header=AUTH, transport=httpx.MockTransport(handler))


class TestPagePayloads:
    """Both page shapes the API uses parse into the same result."""

    def test_results_and_total_count(self):
        page = parse_page_payload(PERSON, {"results": [{"id": 1, "name": "Ann"}], "totalCount": 41})
        assert page.total_count == 41
        assert page.rows[0].name == "Ann"

    def test_data_and_meta_total(self):
        payload = {"data": [{"id": 7, "name": "Call", "date": "2024-02-01T09:00:00Z"}], "meta": {"total": 3}}
        page = parse_page_payload(INTERACTION, payload)
        assert page.total_count == 3
        assert isinstance(page.rows[0], InteractionRecord)
        assert page.rows[0].date.isoformat() == "2024-02-01"

    def test_missing_total_falls_back_to_row_count(self):
        page = parse_page_payload(PERSON, {"results": [{"id": 1}, {"id": 2}]})
        assert page.total_count == 2

    def test_malformed_payload_rejected(self):
        with pytest.raises(ValueError):
            parse_page_payload(PERSON, ["not", "a", "page"])


class TestRecords:

    def test_alternate_field_names_are_canonicalised(self):
        record = PersonRecord.model_validate(
            {"id": 3, "title": "Ann", "relationship_type": "Donor", "is_deleted": None, "zip": 78701}
        )
        row = record.to_row()
        assert row["name"] == "Ann"
        assert row["relationshipType"] == "Donor"
        assert row["isDeleted"] is False
        assert row["zip"] == "78701"
        assert "relationship_type" not in row

    def test_unknown_fields_survive(self):
        record = PersonRecord.model_validate({"id": 1, "name": "Ann", "account": "ACME"})
        assert record.to_row()["account"] == "ACME"

    def test_interaction_person_id_alias(self):
        record = InteractionRecord.model_validate({"person_id": 9, "date": None})
        assert record.to_row()["personId"] == 9
        assert record.date is None


class TestClient:

    @pytest.mark.asyncio
    async def test_list_sends_params_and_auth(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"results": [], "totalCount": 0})

        request = FetchRequest.from_state(QueryState().set_filter("type", {"B", "A"}))
        async with _client(handler) as client:
            await client.list_records(PERSON, request)

        assert seen[0].headers["Authorization"] == AUTH
        assert seen[0].url.path == "/person"
        assert seen[0].url.params.get_list("type") == ["A", "B"]

    @pytest.mark.asyncio
    async def test_list_error_is_fetch_error(self):
        async with _client(lambda r: httpx.Response(500, json={"message": "db down"})) as client:
            with pytest.raises(FetchError) as excinfo:
                await client.list_records(PERSON, FetchRequest.from_state(QueryState()))
        assert excinfo.value.message == "db down"
        assert excinfo.value.status_code == 500

    @pytest.mark.asyncio
    async def test_non_json_list_body_is_fetch_error(self):
        async with _client(lambda r: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(FetchError):
                await client.list_records(PERSON, FetchRequest.from_state(QueryState()))

    @pytest.mark.asyncio
    async def test_non_numeric_total_is_fetch_error(self):
        body = {"results": [], "totalCount": {"value": 3}}
        async with _client(lambda r: httpx.Response(200, json=body)) as client:
            with pytest.raises(FetchError):
                await client.list_records(PERSON, FetchRequest.from_state(QueryState()))

    @pytest.mark.asyncio
    async def test_transport_failure_is_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(DirectoryConnectionError):
                await client.soft_delete_record(PERSON, 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,body",
        [
            (409, {"message": "exists"}),
            (400, {"code": "DUPLICATE_RECORD", "message": "exists"}),
        ],
    )
    async def test_duplicate_classification(self, status, body):
        async with _client(lambda r: httpx.Response(status, json=body)) as client:
            with pytest.raises(DuplicateRecordError):
                await client.create_record(PERSON, {"name": "Ann"})

    @pytest.mark.asyncio
    async def test_other_rejections_are_plain_mutation_errors(self):
        body = {"code": "VALIDATION", "message": "email invalid"}
        async with _client(lambda r: httpx.Response(422, json=body)) as client:
            with pytest.raises(MutationError) as excinfo:
                await client.create_record(PERSON, {"name": "Ann"})
        assert not isinstance(excinfo.value, DuplicateRecordError)
        assert excinfo.value.code == "VALIDATION"

    @pytest.mark.asyncio
    async def test_mutation_verbs_and_paths(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json={})

        async with _client(handler) as client:
            await client.edit_record(PERSON, 4, {"city": "Austin"})
            await client.soft_delete_record(PERSON, 4)
            await client.restore_record(PERSON, 4)

        assert seen == [
            ("PATCH", "/person/4"),
            ("PUT", "/person/4"),
            ("PUT", "/person/4/restore"),
        ]

    @pytest.mark.asyncio
    async def test_export_csv_streams_to_file(self, api, client, tmp_path):
        api.add_person("Ann")
        api.add_person("Bob")
        path = await client.export_csv(PERSON, tmp_path / "out.csv")
        assert path.read_text().splitlines() == ["id,name", "1,Ann", "2,Bob"]
        assert api.requests[-1].url.path == "/person/export/csv"

    @pytest.mark.asyncio
    async def test_export_error(self, tmp_path):
        async with _client(lambda r: httpx.Response(403, json={"message": "forbidden"})) as client:
            with pytest.raises(FetchError):
                await client.export_csv(PERSON, tmp_path / "out.csv")

    @pytest.mark.asyncio
    async def test_interrupted_export_leaves_destination_untouched(self, tmp_path):
        async def body():
            yield b"id,name\n1,Ann\n"
            raise httpx.ReadError("connection reset")

        dest = tmp_path / "out.csv"
        dest.write_text("previous export\n")
        async with _client(lambda r: httpx.Response(200, content=body())) as client:
            with pytest.raises(DirectoryConnectionError):
                await client.export_csv(PERSON, dest)

        assert dest.read_text() == "previous export\n"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["out.csv"]

    @pytest.mark.asyncio
    async def test_upload_is_multipart_excel_field(self, api, client):
        source = SourceFile("people.csv", b"Name\nAnn\n")
        await client.upload_spreadsheet(source, "session-1")
        body = api.requests[-1].content
        assert api.requests[-1].url.path == "/excel/upload"
        assert b'name="excel"; filename="people.csv"' in body
        assert b'name="sessionId"' in body
        assert b"session-1" in body
