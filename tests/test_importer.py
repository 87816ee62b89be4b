"""Tests for the client-driven, row-by-row bulk import."""

import json

import pytest

from reflex_directory_grid.errors import ImportStateError, ImportValidationError
from reflex_directory_grid.importer import ImportJob, ImportProgress, ImportStatus, RowOutcome, RowStatus
from reflex_directory_grid.spreadsheet import MAX_IMPORT_BYTES, SourceFile


def _csv(*rows: str, header: str = "Name,Email,City") -> SourceFile:
    return SourceFile("people.csv", "\n".join((header, *rows)).encode() + b"\n")


@pytest.fixture
def five_rows() -> SourceFile:
    """Five data rows, the third without a name."""
    return _csv(
        "Ann,ann@example.org,Austin",
        "Bob,bob@example.org,Boston",
        ",nobody@example.org,Nowhere",
        "Cy,cy@example.org,Chicago",
        "Di,di@example.org,Denver",
    )


def _created_names(api) -> list[str]:
    return [json.loads(r.content)["name"] for r in api.requests_for("POST")]


class TestProgress:

    def test_duplicate_counts_as_failure_and_duplicate(self):
        progress = ImportProgress(total=2).record(RowOutcome(1, RowStatus.DUPLICATE))
        assert progress.processed == 1
        assert progress.failed == 1
        assert progress.duplicates == 1
        assert progress.percent == 50

    def test_from_payload_tolerates_missing_keys(self):
        progress = ImportProgress.from_payload({"processed": "3", "total": 10, "failed": None})
        assert progress == ImportProgress(processed=3, total=10)


class TestImportJob:

    @pytest.mark.asyncio
    async def test_nameless_rows_dropped_before_total(self, api, client, five_rows):
        job = ImportJob(client, five_rows)
        assert job.prepare() == 4
        assert job.skipped_rows == [3]

        progress = await job.run()

        assert job.status is ImportStatus.COMPLETED
        assert progress == ImportProgress(processed=4, total=4, succeeded=4)
        assert _created_names(api) == ["Ann", "Bob", "Cy", "Di"]

    @pytest.mark.asyncio
    async def test_mapped_payload_has_every_person_field(self, api, client):
        await ImportJob(client, _csv("Ann,ann@example.org,Austin")).run()
        payload = json.loads(api.requests_for("POST")[0].content)
        assert payload == {
            "name": "Ann",
            "phone": "",
            "email": "ann@example.org",
            "street": "",
            "city": "Austin",
            "state": "",
            "zip": "",
            "relationshipType": "",
        }

    @pytest.mark.asyncio
    async def test_duplicate_row_does_not_stop_batch(self, api, client, five_rows):
        api.add_person("Existing Bob", email="bob@example.org")
        job = ImportJob(client, five_rows)
        await job.run()

        assert job.status is ImportStatus.COMPLETED
        assert job.progress.processed == 4
        assert job.progress.succeeded == 3
        assert job.progress.duplicates == 1
        assert job.progress.failed == 1
        assert [o.row_index for o in job.outcomes_with(RowStatus.DUPLICATE)] == [2]
        assert [o.status for o in job.outcomes] == [
            RowStatus.SUCCESS,
            RowStatus.DUPLICATE,
            RowStatus.SUCCESS,
            RowStatus.SUCCESS,
        ]

    @pytest.mark.asyncio
    async def test_failed_rows_still_complete(self, api, client, five_rows):
        api.fail_create = lambda payload: True
        job = ImportJob(client, five_rows)
        await job.run()
        assert job.status is ImportStatus.COMPLETED
        assert job.progress.failed == 4
        assert job.progress.succeeded == 0
        assert all(o.message for o in job.outcomes)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "source",
        [
            SourceFile("big.xlsx", b"\0" * (MAX_IMPORT_BYTES + 1024 * 1024)),
            SourceFile("notes.txt", b"Name\nAnn\n"),
        ],
    )
    async def test_invalid_file_makes_no_requests(self, api, client, source):
        job = ImportJob(client, source)
        with pytest.raises(ImportValidationError):
            await job.run()
        assert api.requests == []
        assert job.status is ImportStatus.IDLE

    @pytest.mark.asyncio
    async def test_progress_reported_after_every_row(self, client, five_rows):
        seen: list[int] = []
        job = ImportJob(client, five_rows, on_progress=lambda p: seen.append(p.processed))
        await job.run()
        assert seen == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_async_progress_callback(self, client, five_rows):
        seen: list[ImportProgress] = []

        async def on_progress(progress):
            seen.append(progress)

        await ImportJob(client, five_rows, on_progress=on_progress).run()
        assert seen[-1].done

    @pytest.mark.asyncio
    async def test_concurrent_rows_keep_source_order(self, api, client, five_rows):
        delays = {"Ann": 0.05, "Bob": 0.0, "Cy": 0.03, "Di": 0.0}
        api.create_delay = lambda payload: delays.get(payload["name"], 0.0)
        job = ImportJob(client, five_rows, concurrency=3)
        await job.run()

        assert [o.row_index for o in job.outcomes] == [1, 2, 4, 5]
        assert job.progress.succeeded == 4

    def test_rejects_non_positive_concurrency(self, client, five_rows):
        with pytest.raises(ValueError):
            ImportJob(client, five_rows, concurrency=0)

    @pytest.mark.asyncio
    async def test_job_runs_only_once(self, client, five_rows):
        job = ImportJob(client, five_rows)
        await job.run()
        with pytest.raises(ImportStateError):
            await job.run()

    @pytest.mark.asyncio
    async def test_abort_stops_new_rows(self, api, client, five_rows):
        job = ImportJob(client, five_rows)

        def on_progress(progress):
            if progress.processed == 1:
                job.abort("user cancelled")

        job.on_progress = on_progress
        await job.run()

        assert job.status is ImportStatus.ABORTED
        assert job.abort_reason == "user cancelled"
        assert job.progress.processed == 1
        assert _created_names(api) == ["Ann"]

    @pytest.mark.asyncio
    async def test_stream_yields_snapshots(self, client, five_rows):
        job = ImportJob(client, five_rows)
        snapshots = [p.processed async for p in job.stream()]
        assert snapshots == [1, 2, 3, 4]
