"""Remote grid controller: query state + scheduler + current page.

The controller owns one :class:`QueryState` and one :class:`PageResult`.
Every user intent (filter, sort, page, page size) produces a new state and
an explicit ``submit`` to the :class:`FetchScheduler`; there is no implicit
re-fetch on dependency change.  Row mutations go straight to the API and,
on success, trigger a full refetch of the current state so server-computed
totals stay correct.  No rows are patched locally.

Typical usage::

    async with DirectoryApiClient(url, auth_header=token) as client:
        grid = RemoteGridController(client, PERSON)
        await grid.refresh()
        grid.set_filter("name", "Smith")
        await grid.settle()
        for record in grid.current_rows():
            ...
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Union

from reflex_directory_grid.api import DirectoryApiClient
from reflex_directory_grid.config import DirectorySettings, get_settings
from reflex_directory_grid.errors import DirectoryError, RecordValidationError
from reflex_directory_grid.models import DirectoryRecord
from reflex_directory_grid.query import FetchRequest, PageInfo, PageResult, QueryState
from reflex_directory_grid.resources import Resource
from reflex_directory_grid.scheduler import FetchScheduler

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Mutation intents
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Edit:
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SoftDelete:
    pass


@dataclass(frozen=True)
class Restore:
    pass


Operation = Union[Edit, SoftDelete, Restore]


def check_required_fields(
    resource: Resource,
    fields: dict[str, Any],
    *,
    partial: bool = False,
) -> None:
    """Raise :class:`RecordValidationError` if a required field is blank.

    With ``partial=True`` (edits) only the required fields present in
    *fields* are checked.
    """
    for name in resource.required_fields:
        if partial and name not in fields:
            continue
        value = fields.get(name)
        if value is None or not str(value).strip():
            raise RecordValidationError(f"{resource.name}: '{name}' is required")


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class RemoteGridController:
    """Drive one paginated, filterable, sortable grid against the API.

    Args:
        client: API client used for reads and mutations.
        resource: The collection being browsed.
        settings: Debounce and default page size; defaults to
            :func:`~reflex_directory_grid.config.get_settings`.
        page_size: Initial page size (overrides the settings default).
        on_change: Called with the controller after every applied page or
            fetch error, e.g. to push state to a UI.
    """

    def __init__(
        self,
        client: DirectoryApiClient,
        resource: Resource,
        *,
        settings: DirectorySettings | None = None,
        page_size: int | None = None,
        on_change: Callable[["RemoteGridController"], None] | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.client = client
        self.resource = resource
        self.on_change = on_change
        self.last_error: DirectoryError | None = None
        self._state = QueryState(page_size=page_size or settings.default_page_size)
        self._result: PageResult | None = None
        self._scheduler = FetchScheduler(
            self._fetch,
            self._apply_result,
            self._apply_error,
            debounce=settings.debounce_seconds,
        )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> QueryState:
        return self._state

    @property
    def loading(self) -> bool:
        return self._scheduler.pending or self._scheduler.in_flight

    @property
    def total_count(self) -> int:
        return self._result.total_count if self._result is not None else 0

    @property
    def fetch_count(self) -> int:
        """Number of requests issued so far."""
        return self._scheduler.issued_count

    def current_rows(self) -> list[DirectoryRecord]:
        """Records of the active page; empty until the first fetch succeeds."""
        return list(self._result.rows) if self._result is not None else []

    def current_page_info(self) -> PageInfo:
        return PageInfo(page=self._state.page, total_pages=self._known_total_pages())

    # ------------------------------------------------------------------
    # Query transitions
    # ------------------------------------------------------------------

    def set_filter(self, filter_field: str, value: Any) -> QueryState:
        if filter_field not in self.resource.filter_kinds:
            raise ValueError(f"{self.resource.name}: column {filter_field!r} is not filterable")
        return self._transition(self._state.set_filter(filter_field, value))

    def clear_filters(self) -> QueryState:
        return self._transition(self._state.clear_filters())

    def set_sort(self, sort_field: str) -> QueryState:
        if sort_field not in self.resource.sortable_fields:
            raise ValueError(f"{self.resource.name}: column {sort_field!r} is not sortable")
        return self._transition(self._state.set_sort(sort_field))

    def set_page(self, page: int) -> QueryState:
        total = self._known_total_pages() if self._result is not None else None
        return self._transition(self._state.set_page(page, total))

    def set_page_size(self, page_size: int) -> QueryState:
        return self._transition(self._state.set_page_size(page_size))

    async def refresh(self) -> None:
        """Fetch the current state now and wait for it to settle."""
        self._scheduler.flush(self._state)
        await self._scheduler.wait_idle()

    async def settle(self) -> None:
        """Wait until pending and in-flight fetches are done."""
        await self._scheduler.wait_idle()

    async def aclose(self) -> None:
        self._scheduler.close()
        await self._scheduler.wait_idle()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def mutate(self, record_id: int | str, operation: Operation) -> None:
        """Apply *operation* to one record, then refetch the current page.

        Raises:
            RecordValidationError: An edit blanks a required field (no request).
            MutationError: The server rejected the call; nothing changes locally.
            DirectoryConnectionError: The API could not be reached.
        """
        if isinstance(operation, Edit):
            check_required_fields(self.resource, operation.fields, partial=True)
            await self.client.edit_record(self.resource, record_id, operation.fields)
        elif isinstance(operation, SoftDelete):
            await self.client.soft_delete_record(self.resource, record_id)
        elif isinstance(operation, Restore):
            await self.client.restore_record(self.resource, record_id)
        else:
            raise TypeError(f"Unsupported operation: {operation!r}")
        logger.info(
            "%s %s: %s applied, refetching page %d",
            self.resource.name,
            record_id,
            type(operation).__name__,
            self._state.page,
        )
        await self.refresh()

    async def create(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Create one record, then refetch the current page."""
        check_required_fields(self.resource, fields)
        created = await self.client.create_record(self.resource, fields)
        await self.refresh()
        return created

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _known_total_pages(self) -> int:
        if self._result is None:
            return 0
        return self._result.total_pages(self._state.page_size)

    def _transition(self, new_state: QueryState) -> QueryState:
        self._state = new_state
        self._scheduler.submit(new_state)
        return new_state

    async def _fetch(self, state: QueryState) -> PageResult:
        return await self.client.list_records(self.resource, FetchRequest.from_state(state))

    def _apply_result(self, state: QueryState, result: PageResult) -> None:
        self._result = result
        self.last_error = None
        last_page = max(result.total_pages(state.page_size), 1)
        if state == self._state and state.page > last_page:
            # The page emptied under us (e.g. last row soft-deleted).
            logger.info(
                "%s: page %d beyond last page %d, re-clamping",
                self.resource.name,
                state.page,
                last_page,
            )
            self._state = state.set_page(last_page)
            self._scheduler.flush(self._state)
        self._notify()

    def _apply_error(self, exc: DirectoryError) -> None:
        self.last_error = exc
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)
