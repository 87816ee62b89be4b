"""Reflex binding: a state mixin and UI helpers for the remote directory grid.

Users inherit from :class:`DirectoryGridMixin` **and** ``rx.State``, pick a
resource, and render with :func:`directory_grid`::

    class ContactsState(DirectoryGridMixin, rx.State):
        dir_grid_resource: str = "person"

    def contacts() -> rx.Component:
        return rx.box(
            directory_grid_stats_bar(ContactsState),
            directory_grid(ContactsState, PERSON),
            directory_import_panel(ContactsState),
        )

    app.add_page(contacts, on_load=ContactsState.load_dir_grid)

``DirectoryGridMixin`` is a Reflex **state mixin** (``mixin=True``): every
subclass gets its own ``dir_grid_*`` / ``dir_import_*`` vars, so a persons
grid and an interactions grid can live on the same page.

The API client and :class:`RemoteGridController` are not serialisable, so
they live in a module-level registry keyed by state class and browser
session.  Grid handlers run as background events: they hand the intent to
the controller, wait for the debounced fetch to settle, then copy the page
into state.  A handler whose fetch was superseded simply copies the newer
page.
"""

import logging
import tempfile
from pathlib import Path
from typing import Any, Callable

import reflex as rx

from reflex_directory_grid.api import DirectoryApiClient
from reflex_directory_grid.config import get_settings
from reflex_directory_grid.controller import Edit, Operation, RemoteGridController, Restore, SoftDelete
from reflex_directory_grid.errors import DirectoryError
from reflex_directory_grid.importer import ImportJob, ImportProgress, ImportStatus
from reflex_directory_grid.popover import PopoverManager
from reflex_directory_grid.query import PAGE_SIZE_OPTIONS, FilterKind, describe_filters, row_matches
from reflex_directory_grid.resources import PERSON, ColumnSpec, Resource, get_resource
from reflex_directory_grid.server_import import ServerImportJob, SocketIOProgressChannel
from reflex_directory_grid.spreadsheet import SourceFile

logger = logging.getLogger(__name__)

_ANY_OPTION: str = "Any"


# ---------------------------------------------------------------------------
# Module-level session registry
# ---------------------------------------------------------------------------

class _GridSession:
    """API client, controller and popovers for one state class and browser tab."""

    def __init__(self, client: DirectoryApiClient, controller: RemoteGridController) -> None:
        self.client = client
        self.controller = controller
        self.popovers = PopoverManager()

    async def aclose(self) -> None:
        await self.controller.aclose()
        await self.client.aclose()


_session_registry: dict[str, _GridSession] = {}


def _enum_token(field: str, option: str) -> str:
    return f"{field}={option}"


def _blank_filter_inputs(resource: Resource) -> dict[str, str]:
    return {
        c.field: ""
        for c in resource.columns
        if c.filter_kind in (FilterKind.TEXT, FilterKind.DATE)
    }


def _grid_rows(grid: RemoteGridController) -> list[dict[str, Any]]:
    """Rows of the shown page, each flagged ``stale`` when it fails the current filters.

    The shown page can lag the query while a debounced fetch is pending.
    """
    kinds = grid.resource.filter_kinds
    rows = []
    for record in grid.current_rows():
        row = record.to_row()
        row["stale"] = not row_matches(grid.state, row, kinds)
        rows.append(row)
    return rows


def _upload_to_source(upload: Any, content: bytes) -> SourceFile:
    name = getattr(upload, "name", None) or getattr(upload, "filename", None) or "upload"
    return SourceFile(
        name=Path(str(name)).name,
        content=content,
        content_type=getattr(upload, "content_type", None),
    )


# ---------------------------------------------------------------------------
# DirectoryGridMixin
# ---------------------------------------------------------------------------

class DirectoryGridMixin(rx.State, mixin=True):
    """Reflex State mixin for a server-paginated, filterable, sortable grid.

    All state variable names are prefixed with ``dir_grid_`` (grid) or
    ``dir_import_`` (bulk import) to avoid collisions when composed with
    other state.  Set ``dir_grid_resource`` in the subclass to choose the
    collection (``"person"`` or ``"interaction"``).
    """

    # -- Frontend state vars --
    dir_grid_resource: str = PERSON.path
    dir_grid_rows: list[dict[str, Any]] = []
    dir_grid_page: int = 1
    dir_grid_total_pages: int = 0
    dir_grid_total_count: int = 0
    dir_grid_page_size: int = PAGE_SIZE_OPTIONS[0]
    dir_grid_sort_field: str = ""
    dir_grid_sort_direction: str = ""
    dir_grid_filter_inputs: dict[str, str] = {}
    dir_grid_enum_tokens: list[str] = []
    dir_grid_filter_summary: list[str] = []
    dir_grid_open_popover: str = ""
    dir_grid_loading: bool = False
    dir_grid_error: str = ""

    dir_import_status: str = ImportStatus.IDLE.value
    dir_import_processed: int = 0
    dir_import_total: int = 0
    dir_import_succeeded: int = 0
    dir_import_failed: int = 0
    dir_import_duplicates: int = 0
    dir_import_percent: int = 0
    dir_import_message: str = ""

    # -- Backend-only vars (not sent to frontend) --
    _dir_grid_auth: str = ""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def set_dir_grid_auth(self, auth_header: str) -> None:
        """Store the Authorization header supplied by the session layer."""
        self._dir_grid_auth = auth_header  # type: ignore[assignment]

    @rx.event(background=True)
    async def load_dir_grid(self):
        """Create the controller for this tab (if needed) and fetch page 1."""
        async with self:
            self.dir_grid_loading = True  # type: ignore[assignment]
            session = self._dir_grid_session()
            if not self.dir_grid_filter_inputs:
                self.dir_grid_filter_inputs = _blank_filter_inputs(session.controller.resource)  # type: ignore[assignment]
        await session.controller.refresh()
        async with self:
            self._sync_dir_grid(session.controller)

    async def release_dir_grid(self) -> None:
        """Tear down this tab's controller and client (use as ``on_unmount``)."""
        session = _session_registry.pop(self._dir_grid_session_key(), None)
        if session is not None:
            await session.aclose()
            logger.info("released grid session %s", self._dir_grid_session_key())

    # ------------------------------------------------------------------
    # Query event handlers
    # ------------------------------------------------------------------

    @rx.event(background=True)
    async def handle_dir_grid_filter(self, field: str, value: str):
        """Text / date filter input changed (debounced by the controller)."""
        async with self:
            self.dir_grid_filter_inputs = {**self.dir_grid_filter_inputs, field: value}  # type: ignore[assignment]
        await self._run_dir_grid_intent(lambda grid: grid.set_filter(field, value))

    @rx.event(background=True)
    async def handle_dir_grid_toggle_option(self, field: str, option: str):
        """Add or remove one value of an enumerated (multi-select) filter."""
        token = _enum_token(field, option)
        async with self:
            tokens = set(self.dir_grid_enum_tokens) ^ {token}
            self.dir_grid_enum_tokens = sorted(tokens)  # type: ignore[assignment]
        prefix = _enum_token(field, "")
        selected = {t[len(prefix):] for t in tokens if t.startswith(prefix)}
        await self._run_dir_grid_intent(lambda grid: grid.set_filter(field, selected))

    @rx.event(background=True)
    async def handle_dir_grid_sort(self, field: str):
        await self._run_dir_grid_intent(lambda grid: grid.set_sort(field))

    @rx.event(background=True)
    async def handle_dir_grid_page(self, page: int):
        await self._run_dir_grid_intent(lambda grid: grid.set_page(int(page)))

    @rx.event(background=True)
    async def handle_dir_grid_page_size(self, page_size: str):
        await self._run_dir_grid_intent(lambda grid: grid.set_page_size(int(page_size)))

    @rx.event(background=True)
    async def clear_dir_grid_filters(self):
        async with self:
            session = self._dir_grid_session()
            self.dir_grid_filter_inputs = _blank_filter_inputs(session.controller.resource)  # type: ignore[assignment]
            self.dir_grid_enum_tokens = []  # type: ignore[assignment]
        await self._run_dir_grid_intent(lambda grid: grid.clear_filters())

    # ------------------------------------------------------------------
    # Filter popovers
    # ------------------------------------------------------------------

    def toggle_dir_grid_popover(self, name: str) -> None:
        popovers = self._dir_grid_session().popovers
        popovers.toggle(name)
        self.dir_grid_open_popover = ",".join(popovers.open_names)  # type: ignore[assignment]

    def dismiss_dir_grid_popovers(self) -> None:
        """Outside click: close whichever filter dropdown is open."""
        if not self.dir_grid_open_popover:
            return
        self._dir_grid_session().popovers.dismiss_all()
        self.dir_grid_open_popover = ""  # type: ignore[assignment]

    # ------------------------------------------------------------------
    # Row mutations
    # ------------------------------------------------------------------

    @rx.event(background=True)
    async def handle_dir_grid_delete(self, row_id: str):
        await self._run_dir_grid_mutation(row_id, SoftDelete())

    @rx.event(background=True)
    async def handle_dir_grid_restore(self, row_id: str):
        await self._run_dir_grid_mutation(row_id, Restore())

    @rx.event(background=True)
    async def handle_dir_grid_edit(self, form_data: dict[str, Any]):
        """Submit an edit form; ``form_data["id"]`` names the record."""
        fields = dict(form_data)
        row_id = fields.pop("id", None)
        if row_id in (None, ""):
            async with self:
                self.dir_grid_error = "No record selected for editing."  # type: ignore[assignment]
            return
        await self._run_dir_grid_mutation(row_id, Edit(fields))

    @rx.event(background=True)
    async def handle_dir_grid_create(self, form_data: dict[str, Any]):
        async with self:
            self.dir_grid_loading = True  # type: ignore[assignment]
            session = self._dir_grid_session()
        try:
            await session.controller.create(dict(form_data))
        except DirectoryError as exc:
            async with self:
                self.dir_grid_error = str(exc)  # type: ignore[assignment]
                self.dir_grid_loading = False  # type: ignore[assignment]
            return
        async with self:
            self._sync_dir_grid(session.controller)

    async def download_dir_grid_csv(self):
        """Download the whole collection as CSV via ``rx.download``."""
        session = self._dir_grid_session()
        resource = session.controller.resource
        with tempfile.TemporaryDirectory(prefix="directory_export_") as tmp:
            try:
                path = await session.client.export_csv(resource, Path(tmp) / resource.export_filename)
            except DirectoryError as exc:
                self.dir_grid_error = str(exc)  # type: ignore[assignment]
                return None
            data = path.read_bytes()
        return rx.download(data=data, filename=resource.export_filename)

    # ------------------------------------------------------------------
    # Bulk import
    # ------------------------------------------------------------------

    async def handle_dir_import_upload(self, files: list[rx.UploadFile]):
        """Import the uploaded spreadsheet row by row, streaming progress.

        This is an async generator so every row's progress is pushed to the
        frontend as soon as it is recorded.
        """
        if not files:
            return
        upload = files[0]
        source = _upload_to_source(upload, await upload.read())
        session = self._dir_grid_session()
        settings = get_settings()

        job = ImportJob(
            session.client,
            source,
            concurrency=settings.import_concurrency,
            max_bytes=settings.import_max_bytes,
        )
        try:
            job.prepare()
        except DirectoryError as exc:
            self._set_dir_import_error(str(exc))
            return

        self._set_dir_import_progress(job.progress, ImportStatus.RUNNING)
        self.dir_import_message = f"Importing {source.name}..."  # type: ignore[assignment]
        yield

        async for progress in job.stream():
            self._set_dir_import_progress(progress, job.status)
            yield

        self._set_dir_import_progress(job.progress, job.status)
        message = job.progress.summary()
        if job.skipped_rows:
            message += f"; {len(job.skipped_rows)} row(s) without a name skipped"
        self.dir_import_message = message  # type: ignore[assignment]
        yield

        await session.controller.refresh()
        self._sync_dir_grid(session.controller)

    async def handle_dir_import_server_upload(self, files: list[rx.UploadFile]):
        """Upload the spreadsheet once and follow the server's pushed progress."""
        if not files:
            return
        upload = files[0]
        source = _upload_to_source(upload, await upload.read())
        session = self._dir_grid_session()
        settings = get_settings()

        channel = SocketIOProgressChannel.from_settings(settings)
        channel.auth_header = self._dir_grid_auth or settings.auth_header
        job = ServerImportJob(
            session.client,
            source,
            channel,
            session_token=self.router.session.client_token,
            idle_timeout=settings.import_idle_timeout,
            max_bytes=settings.import_max_bytes,
        )
        self._set_dir_import_progress(job.progress, ImportStatus.RUNNING)
        self.dir_import_message = f"Uploading {source.name}..."  # type: ignore[assignment]
        yield

        try:
            async for progress in job.stream():
                self._set_dir_import_progress(progress, job.status)
                yield
        except DirectoryError as exc:
            self._set_dir_import_error(str(exc))
            return

        self._set_dir_import_progress(job.progress, job.status)
        self.dir_import_message = (  # type: ignore[assignment]
            job.progress.summary()
            if job.status is ImportStatus.COMPLETED
            else f"Import aborted: {job.abort_reason}"
        )
        yield

        await session.controller.refresh()
        self._sync_dir_grid(session.controller)

    def reset_dir_import(self) -> None:
        self._set_dir_import_progress(ImportProgress(), ImportStatus.IDLE)
        self.dir_import_message = ""  # type: ignore[assignment]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _dir_grid_session_key(self) -> str:
        return f"{type(self).__name__}:{self.router.session.client_token}"

    def _dir_grid_session(self) -> _GridSession:
        """Return (or create) the controller session for this tab."""
        key = self._dir_grid_session_key()
        session = _session_registry.get(key)
        if session is None:
            settings = get_settings()
            client = DirectoryApiClient.from_settings(
                settings,
                auth_header=self._dir_grid_auth or settings.auth_header,
            )
            controller = RemoteGridController(
                client,
                get_resource(self.dir_grid_resource),
                settings=settings,
            )
            session = _GridSession(client, controller)
            _session_registry[key] = session
            logger.info("created grid session %s", key)
        return session

    async def _run_dir_grid_intent(self, intent: Callable[[RemoteGridController], Any]) -> None:
        async with self:
            session = self._dir_grid_session()
            try:
                intent(session.controller)
            except ValueError as exc:
                self.dir_grid_error = str(exc)  # type: ignore[assignment]
                return
            self._sync_dir_grid(session.controller)
        await session.controller.settle()
        async with self:
            self._sync_dir_grid(session.controller)

    async def _run_dir_grid_mutation(self, row_id: Any, operation: Operation) -> None:
        async with self:
            self.dir_grid_loading = True  # type: ignore[assignment]
            session = self._dir_grid_session()
        try:
            await session.controller.mutate(row_id, operation)
        except DirectoryError as exc:
            async with self:
                self.dir_grid_error = str(exc)  # type: ignore[assignment]
                self.dir_grid_loading = False  # type: ignore[assignment]
            return
        async with self:
            self._sync_dir_grid(session.controller)

    def _sync_dir_grid(self, grid: RemoteGridController) -> None:
        """Copy the controller's page and query state into frontend vars."""
        info = grid.current_page_info()
        sort = grid.state.sort
        self.dir_grid_rows = _grid_rows(grid)  # type: ignore[assignment]
        self.dir_grid_page = info.page  # type: ignore[assignment]
        self.dir_grid_total_pages = info.total_pages  # type: ignore[assignment]
        self.dir_grid_total_count = grid.total_count  # type: ignore[assignment]
        self.dir_grid_page_size = grid.state.page_size  # type: ignore[assignment]
        self.dir_grid_sort_field = sort.field if sort else ""  # type: ignore[assignment]
        self.dir_grid_sort_direction = sort.direction if sort else ""  # type: ignore[assignment]
        self.dir_grid_filter_summary = describe_filters(  # type: ignore[assignment]
            grid.state, grid.resource.filter_kinds
        )
        self.dir_grid_loading = grid.loading  # type: ignore[assignment]
        self.dir_grid_error = str(grid.last_error) if grid.last_error else ""  # type: ignore[assignment]

    def _set_dir_import_progress(self, progress: ImportProgress, status: ImportStatus) -> None:
        self.dir_import_status = status.value  # type: ignore[assignment]
        self.dir_import_processed = progress.processed  # type: ignore[assignment]
        self.dir_import_total = progress.total  # type: ignore[assignment]
        self.dir_import_succeeded = progress.succeeded  # type: ignore[assignment]
        self.dir_import_failed = progress.failed  # type: ignore[assignment]
        self.dir_import_duplicates = progress.duplicates  # type: ignore[assignment]
        self.dir_import_percent = progress.percent  # type: ignore[assignment]

    def _set_dir_import_error(self, message: str) -> None:
        self.dir_import_status = "error"  # type: ignore[assignment]
        self.dir_import_message = message  # type: ignore[assignment]


# ---------------------------------------------------------------------------
# UI helpers
# ---------------------------------------------------------------------------

def _sort_icon(state_cls: type, field: str) -> rx.Component:
    return rx.cond(
        state_cls.dir_grid_sort_field == field,
        rx.cond(
            state_cls.dir_grid_sort_direction == "asc",
            rx.icon("arrow_up", size=14),
            rx.icon("arrow_down", size=14),
        ),
        rx.icon("arrow_up_down", size=14, opacity="0.3"),
    )


def _header_cell(state_cls: type, col: ColumnSpec) -> rx.Component:
    if not col.sortable:
        return rx.table.column_header_cell(col.header_name)
    return rx.table.column_header_cell(
        rx.hstack(
            rx.text(col.header_name),
            _sort_icon(state_cls, col.field),
            spacing="1",
            align="center",
        ),
        cursor="pointer",
        on_click=state_cls.handle_dir_grid_sort(col.field),
    )


def _on_filter_change(state_cls: type, field: str) -> Callable[[Any], Any]:
    return lambda value: state_cls.handle_dir_grid_filter(field, value)


def _on_option_toggle(state_cls: type, field: str, option: str) -> Callable[[Any], Any]:
    return lambda _checked: state_cls.handle_dir_grid_toggle_option(field, option)


def _enum_filter(state_cls: type, col: ColumnSpec) -> rx.Component:
    tokens = state_cls.dir_grid_enum_tokens
    options = rx.vstack(
        *[
            rx.checkbox(
                option,
                checked=tokens.contains(_enum_token(col.field, option)),  # type: ignore[attr-defined]
                on_change=_on_option_toggle(state_cls, col.field, option),
                size="1",
            )
            for option in col.value_options
        ],
        spacing="1",
        padding="0.5em",
        border="1px solid var(--gray-a6)",
        border_radius="6px",
        background="var(--color-panel-solid)",
        position="absolute",
        z_index="10",
    )
    return rx.box(
        rx.button(
            _ANY_OPTION,
            rx.icon("chevron_down", size=12),
            size="1",
            variant="outline",
            on_click=state_cls.toggle_dir_grid_popover(col.field),
        ),
        rx.cond(state_cls.dir_grid_open_popover == col.field, options),
        position="relative",
    )


def _filter_cell(state_cls: type, col: ColumnSpec) -> rx.Component:
    if col.filter_kind is None:
        return rx.table.cell()
    if col.filter_kind is FilterKind.ENUM:
        return rx.table.cell(_enum_filter(state_cls, col))
    return rx.table.cell(
        rx.input(
            type="date" if col.filter_kind is FilterKind.DATE else "text",
            placeholder=f"Filter {col.header_name}",
            value=state_cls.dir_grid_filter_inputs[col.field],  # type: ignore[index]
            on_change=_on_filter_change(state_cls, col.field),
            size="1",
        )
    )


def _row_actions(state_cls: type, row: rx.Var) -> rx.Component:
    return rx.table.cell(
        rx.cond(
            row["isDeleted"],
            rx.button(
                rx.icon("rotate_ccw", size=12),
                "Restore",
                size="1",
                variant="outline",
                on_click=state_cls.handle_dir_grid_restore(row["id"].to(str)),
            ),
            rx.button(
                rx.icon("trash_2", size=12),
                "Delete",
                size="1",
                variant="outline",
                color_scheme="red",
                on_click=state_cls.handle_dir_grid_delete(row["id"].to(str)),
            ),
        )
    )


def directory_grid(
    state_cls: type,
    resource: Resource = PERSON,
    *,
    show_filters: bool = True,
    show_row_actions: bool = True,
    **extra_props: Any,
) -> rx.Component:
    """Return a table bound to a :class:`DirectoryGridMixin` state.

    Header clicks cycle the sort, the second header row holds one filter
    control per filterable column, and the footer pages through results.

    Args:
        state_cls: The ``rx.State`` subclass that also inherits from
            :class:`DirectoryGridMixin`.
        resource: Column layout to render (must match ``dir_grid_resource``).
        show_filters: Render the filter row.
        show_row_actions: Render delete/restore buttons per row.
        **extra_props: Forwarded to the outer ``rx.box``.

    Returns:
        A Reflex component.
    """
    header_rows = [
        rx.table.row(
            *[_header_cell(state_cls, c) for c in resource.columns],
            rx.table.column_header_cell(""),
        )
    ]
    if show_filters:
        header_rows.append(
            rx.table.row(*[_filter_cell(state_cls, c) for c in resource.columns], rx.table.cell())
        )

    def _render_row(row: rx.Var) -> rx.Component:
        cells = [rx.table.cell(row[c.field].to(str)) for c in resource.columns]
        if show_row_actions:
            cells.append(_row_actions(state_cls, row))
        return rx.table.row(
            *cells,
            opacity=rx.cond(row["isDeleted"], "0.5", rx.cond(row["stale"], "0.35", "1")),
        )

    table = rx.table.root(
        rx.table.header(*header_rows),
        rx.table.body(
            rx.foreach(state_cls.dir_grid_rows, _render_row),
            on_click=state_cls.dismiss_dir_grid_popovers,
        ),
        size="1",
        width="100%",
    )
    return rx.box(
        table,
        directory_grid_pagination(state_cls),
        **extra_props,
    )


def directory_grid_pagination(state_cls: type) -> rx.Component:
    """Previous / next buttons, page indicator and page-size selector."""
    return rx.hstack(
        rx.button(
            rx.icon("chevron_left", size=14),
            size="1",
            variant="soft",
            disabled=state_cls.dir_grid_page <= 1,
            on_click=state_cls.handle_dir_grid_page(state_cls.dir_grid_page - 1),
        ),
        rx.text(
            "Page ",
            state_cls.dir_grid_page.to(str),  # type: ignore[union-attr]
            " of ",
            rx.cond(
                state_cls.dir_grid_total_pages > 0,
                state_cls.dir_grid_total_pages.to(str),  # type: ignore[union-attr]
                "1",
            ),
            size="2",
        ),
        rx.button(
            rx.icon("chevron_right", size=14),
            size="1",
            variant="soft",
            disabled=state_cls.dir_grid_page >= state_cls.dir_grid_total_pages,
            on_click=state_cls.handle_dir_grid_page(state_cls.dir_grid_page + 1),
        ),
        rx.spacer(),
        rx.select(
            [str(n) for n in PAGE_SIZE_OPTIONS],
            value=state_cls.dir_grid_page_size.to(str),  # type: ignore[union-attr]
            on_change=state_cls.handle_dir_grid_page_size,
            size="1",
        ),
        rx.text("per page", size="2", color="var(--gray-9)"),
        align="center",
        spacing="2",
        width="100%",
        margin_top="0.5em",
    )


def directory_grid_stats_bar(state_cls: type) -> rx.Component:
    """Return a bar showing the total count, active filters and any error."""
    return rx.box(
        rx.hstack(
            rx.text(
                state_cls.dir_grid_total_count.to(str),  # type: ignore[union-attr]
                " records",
                size="2",
                weight="medium",
            ),
            rx.cond(state_cls.dir_grid_loading, rx.spinner(size="1")),
            rx.text("|", size="2", color="var(--gray-7)"),
            rx.foreach(
                state_cls.dir_grid_filter_summary,
                lambda line: rx.badge(line, variant="soft", size="1"),
            ),
            rx.spacer(),
            rx.button(
                rx.icon("download", size=14),
                "Export CSV",
                size="1",
                variant="outline",
                color_scheme="green",
                on_click=state_cls.download_dir_grid_csv,
            ),
            rx.button(
                rx.icon("x", size=14),
                "Clear filters",
                size="1",
                variant="outline",
                color_scheme="orange",
                on_click=state_cls.clear_dir_grid_filters,
            ),
            spacing="2",
            align="center",
            width="100%",
        ),
        rx.cond(
            state_cls.dir_grid_error != "",
            rx.text(state_cls.dir_grid_error, size="1", color="var(--red-11)"),
        ),
        padding="0.4em 0.8em",
        border_radius="6px",
        background="var(--blue-a2)",
        border="1px solid var(--blue-a5)",
        margin_bottom="0.5em",
    )


def directory_import_panel(state_cls: type, *, server_side: bool = False) -> rx.Component:
    """Return an upload box with a live progress bar for the bulk import.

    Args:
        state_cls: The ``rx.State`` subclass that inherits from
            :class:`DirectoryGridMixin`.
        server_side: Upload once and follow pushed progress instead of
            creating rows from the browser session.

    Returns:
        A Reflex component.
    """
    upload_id = f"directory_import_{state_cls.__name__}"
    handler = (
        state_cls.handle_dir_import_server_upload
        if server_side
        else state_cls.handle_dir_import_upload
    )
    return rx.box(
        rx.upload(
            rx.vstack(
                rx.icon("upload", size=20),
                rx.text("Choose a spreadsheet or drag and drop", size="2"),
                rx.text("Excel or CSV files only (MAX. 10MB)", size="1", color="var(--gray-9)"),
                align="center",
                spacing="1",
            ),
            id=upload_id,
            accept={
                ".xls": ["application/vnd.ms-excel"],
                ".xlsx": ["application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"],
                ".csv": ["text/csv"],
            },
            max_files=1,
            on_drop=handler(rx.upload_files(upload_id=upload_id)),  # type: ignore[operator]
            padding="1em",
            border="2px dashed var(--gray-a6)",
            border_radius="8px",
        ),
        rx.cond(
            state_cls.dir_import_status != ImportStatus.IDLE.value,
            rx.vstack(
                rx.progress(value=state_cls.dir_import_percent, width="100%"),
                rx.text(
                    state_cls.dir_import_processed.to(str),  # type: ignore[union-attr]
                    " / ",
                    state_cls.dir_import_total.to(str),  # type: ignore[union-attr]
                    " processed, ",
                    state_cls.dir_import_duplicates.to(str),  # type: ignore[union-attr]
                    " duplicate(s), ",
                    state_cls.dir_import_failed.to(str),  # type: ignore[union-attr]
                    " failed",
                    size="1",
                ),
                rx.text(
                    state_cls.dir_import_message,
                    size="1",
                    color=rx.cond(
                        state_cls.dir_import_status == "error", "var(--red-11)", "var(--gray-11)"
                    ),
                ),
                spacing="1",
                margin_top="0.5em",
                width="100%",
            ),
        ),
        margin_top="1em",
    )
