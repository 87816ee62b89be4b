"""Bulk import, client-driven: one create call per spreadsheet row.

An :class:`ImportJob` is created for one selected file and runs once::

    IDLE --run()/stream()--> RUNNING --> COMPLETED
                                    \\--> ABORTED  (abort() or interruption)

Rows that fail the required-field check are dropped while the job is
prepared, *before* ``total`` is computed: a sheet of 5 rows with one
nameless row reports ``total == 4``.  Every remaining row is attempted;
a failed or duplicate row never stops the batch, and the job completes
once the input is exhausted regardless of how many rows succeeded.

Rows are submitted one at a time by default.  ``concurrency > 1`` keeps a
sliding window of in-flight creates while still appending outcomes in
source-row order.
"""

import asyncio
import inspect
import logging
import time
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping

from reflex_directory_grid.api import DirectoryApiClient
from reflex_directory_grid.errors import DirectoryError, DuplicateRecordError, ImportStateError
from reflex_directory_grid.resources import PERSON, Resource
from reflex_directory_grid.spreadsheet import (
    MAX_IMPORT_BYTES,
    PERSON_FIELD_MAPPING,
    FieldMapping,
    SourceFile,
    iter_source_rows,
    read_spreadsheet,
    validate_source_file,
)

logger = logging.getLogger(__name__)


class ImportStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def terminal(self) -> bool:
        return self in (ImportStatus.COMPLETED, ImportStatus.ABORTED)


class RowStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class RowOutcome:
    """Result of one row; ``row_index`` is the 1-based data row of the sheet."""

    row_index: int
    status: RowStatus
    message: str | None = None


@dataclass(frozen=True)
class ImportProgress:
    """Snapshot of a job's counters.

    ``failed`` counts every unsuccessful row; ``duplicates`` is the subset
    the server declared duplicates.
    """

    processed: int = 0
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    duplicates: int = 0

    @property
    def done(self) -> bool:
        return self.processed >= self.total

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100
        return int(self.processed * 100 / self.total)

    def record(self, outcome: RowOutcome) -> "ImportProgress":
        """Return the snapshot after one more row."""
        if outcome.status is RowStatus.SUCCESS:
            return replace(self, processed=self.processed + 1, succeeded=self.succeeded + 1)
        if outcome.status is RowStatus.DUPLICATE:
            return replace(
                self,
                processed=self.processed + 1,
                failed=self.failed + 1,
                duplicates=self.duplicates + 1,
            )
        return replace(self, processed=self.processed + 1, failed=self.failed + 1)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ImportProgress":
        """Build a snapshot from a server progress message (missing keys -> 0)."""
        def _int(key: str) -> int:
            try:
                return int(payload.get(key) or 0)
            except (TypeError, ValueError):
                return 0

        return cls(
            processed=_int("processed"),
            total=_int("total"),
            succeeded=_int("succeeded"),
            failed=_int("failed"),
            duplicates=_int("duplicates"),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "duplicates": self.duplicates,
        }

    def summary(self) -> str:
        return (
            f"{self.processed}/{self.total} rows processed: "
            f"{self.succeeded} imported, {self.failed} failed "
            f"({self.duplicates} duplicate)"
        )


ProgressCallback = Callable[[ImportProgress], Awaitable[None] | None]


async def notify_progress(callback: ProgressCallback | None, progress: ImportProgress) -> None:
    if callback is None:
        return
    result = callback(progress)
    if inspect.isawaitable(result):
        await result


class ImportJob:
    """Import one spreadsheet by creating its rows through the API.

    Args:
        client: API client used for the create calls.
        source: The selected file.
        resource: Target collection (persons by default).
        mapping: Source header to target field table.
        concurrency: Maximum creates in flight; ``1`` is strictly sequential.
        max_bytes: File size cap enforced before anything else.
        on_progress: Called (sync or async) after every row.
    """

    def __init__(
        self,
        client: DirectoryApiClient,
        source: SourceFile,
        *,
        resource: Resource = PERSON,
        mapping: FieldMapping = PERSON_FIELD_MAPPING,
        concurrency: int = 1,
        max_bytes: int = MAX_IMPORT_BYTES,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.client = client
        self.source = source
        self.resource = resource
        self.mapping = mapping
        self.concurrency = concurrency
        self.max_bytes = max_bytes
        self.on_progress = on_progress

        self.status: ImportStatus = ImportStatus.IDLE
        self.progress = ImportProgress()
        self.outcomes: list[RowOutcome] = []
        self.skipped_rows: list[int] = []
        self.abort_reason: str | None = None

        self._rows: list[tuple[int, dict[str, str]]] | None = None
        self._cursor: int = 0
        self._abort_requested: bool = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def prepare(self) -> int:
        """Validate, parse and map the file; return the number of rows to import.

        Raises:
            ImportValidationError: Wrong file type or size (no request is made).
        """
        if self._rows is not None:
            return self.progress.total
        validate_source_file(self.source, self.max_bytes)
        frame = read_spreadsheet(self.source)

        rows: list[tuple[int, dict[str, str]]] = []
        for row_index, source_row in enumerate(iter_source_rows(frame), start=1):
            mapped = self.mapping.map_row(source_row)
            if all(mapped.get(name, "").strip() for name in self.resource.required_fields):
                rows.append((row_index, mapped))
            else:
                self.skipped_rows.append(row_index)

        unmapped = self.mapping.unmapped_headers(frame.columns)
        if unmapped:
            logger.info("%s: ignoring unmapped columns %s", self.source.name, unmapped)
        if self.skipped_rows:
            logger.info(
                "%s: %d row(s) missing %s skipped: %s",
                self.source.name,
                len(self.skipped_rows),
                "/".join(self.resource.required_fields),
                self.skipped_rows,
            )
        self._rows = rows
        self.progress = ImportProgress(total=len(rows))
        return len(rows)

    def abort(self, reason: str = "aborted by user") -> None:
        """Stop submitting new rows; rows already in flight are still recorded."""
        self._abort_requested = True
        self.abort_reason = reason

    async def run(self) -> ImportProgress:
        """Run the job to its terminal state and return the final progress."""
        async for _ in self.stream():
            pass
        return self.progress

    async def stream(self) -> AsyncIterator[ImportProgress]:
        """Run the job, yielding a progress snapshot after every row."""
        if self.status is not ImportStatus.IDLE:
            raise ImportStateError(
                f"import of {self.source.name} is {self.status.value}; create a new job to retry"
            )
        self.prepare()
        assert self._rows is not None
        self.status = ImportStatus.RUNNING
        t0 = time.perf_counter()
        logger.info(
            "importing %d %s from %s (concurrency=%d)",
            self.progress.total,
            self.resource.name,
            self.source.name,
            self.concurrency,
        )
        await notify_progress(self.on_progress, self.progress)

        window: deque[tuple[int, asyncio.Task]] = deque()
        position = self._cursor
        try:
            while True:
                while (
                    position < len(self._rows)
                    and len(window) < self.concurrency
                    and not self._abort_requested
                ):
                    row_index, fields = self._rows[position]
                    task = asyncio.create_task(self._submit_row(row_index, fields))
                    window.append((row_index, task))
                    position += 1
                if not window:
                    break
                _, task = window.popleft()
                outcome = await task
                self._cursor += 1
                self.outcomes.append(outcome)
                self.progress = self.progress.record(outcome)
                await notify_progress(self.on_progress, self.progress)
                yield self.progress

            if self._abort_requested and self._cursor < len(self._rows):
                self.status = ImportStatus.ABORTED
            else:
                self.status = ImportStatus.COMPLETED
        finally:
            for _, pending in window:
                pending.cancel()
            if self.status is ImportStatus.RUNNING:
                self.status = ImportStatus.ABORTED
                self.abort_reason = self.abort_reason or "interrupted"
            logger.info(
                "import of %s %s: %s (%.1fms)",
                self.source.name,
                self.status.value,
                self.progress.summary(),
                (time.perf_counter() - t0) * 1000,
            )

    def outcomes_with(self, status: RowStatus) -> list[RowOutcome]:
        return [o for o in self.outcomes if o.status is status]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _submit_row(self, row_index: int, fields: dict[str, str]) -> RowOutcome:
        try:
            await self.client.create_record(self.resource, fields)
        except DuplicateRecordError as exc:
            logger.debug("row %d duplicate: %s", row_index, exc)
            return RowOutcome(row_index, RowStatus.DUPLICATE, exc.message)
        except DirectoryError as exc:
            logger.warning("row %d failed: %s", row_index, exc)
            return RowOutcome(row_index, RowStatus.FAILURE, str(exc))
        return RowOutcome(row_index, RowStatus.SUCCESS)
