"""Bulk import, server-driven: upload once, then follow pushed progress.

The client uploads the raw spreadsheet together with a session token.  The
server does the row-by-row work and pushes progress snapshots over a
persistent connection identified by that token.  The client only renders the
latest snapshot and watches for the two terminal events, ``completed`` and
``error``.

If nothing arrives for ``idle_timeout`` seconds (e.g. the push connection
was re-established and the server lost track of it) the job is aborted
instead of waiting forever.  The channel is closed whenever the job ends.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Protocol

import socketio

from reflex_directory_grid.api import DirectoryApiClient
from reflex_directory_grid.config import DirectorySettings, get_settings
from reflex_directory_grid.errors import DirectoryConnectionError, DirectoryError, ImportStateError
from reflex_directory_grid.importer import (
    ImportProgress,
    ImportStatus,
    ProgressCallback,
    notify_progress,
)
from reflex_directory_grid.spreadsheet import MAX_IMPORT_BYTES, SourceFile, validate_source_file

logger = logging.getLogger(__name__)

_TERMINAL_RESPONSE_STATUSES: frozenset[str] = frozenset({"completed", "done", "finished"})


class ProgressEventKind(str, Enum):
    PROGRESS = "progress"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressEvent:
    kind: ProgressEventKind
    progress: ImportProgress | None = None
    message: str | None = None


class ProgressChannel(Protocol):
    """Push connection delivering :class:`ProgressEvent` objects for one session."""

    async def connect(self, session_token: str) -> None: ...

    async def receive(self) -> ProgressEvent: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Socket.IO channel
# ---------------------------------------------------------------------------

class SocketIOProgressChannel:
    """Progress channel over Socket.IO.

    The session token is sent in the connection ``auth`` payload as
    ``sessionId``; the server emits progress/completed/error events to
    that session.

    Args:
        url: Server URL (usually the API base URL).
        auth_header: Forwarded as the ``Authorization`` header.
        progress_event: Event name carrying a progress snapshot.
        completed_event: Event name signalling success.
        error_event: Event name signalling failure.
        socketio_path: Socket.IO endpoint path on the server.
    """

    def __init__(
        self,
        url: str,
        *,
        auth_header: str | None = None,
        progress_event: str = "importProgress",
        completed_event: str = "importCompleted",
        error_event: str = "importError",
        socketio_path: str = "socket.io",
    ) -> None:
        self.url = url
        self.auth_header = auth_header
        self.socketio_path = socketio_path
        self._queue: asyncio.Queue[ProgressEvent] = asyncio.Queue()
        self._sio = socketio.AsyncClient(reconnection=True)
        self._sio.on(progress_event, self._on_progress)
        self._sio.on(completed_event, self._on_completed)
        self._sio.on(error_event, self._on_error)

    @classmethod
    def from_settings(cls, settings: DirectorySettings | None = None) -> "SocketIOProgressChannel":
        settings = settings or get_settings()
        return cls(
            settings.api_url,
            auth_header=settings.auth_header,
            progress_event=settings.progress_event,
            completed_event=settings.completed_event,
            error_event=settings.error_event,
        )

    async def connect(self, session_token: str) -> None:
        headers = {"Authorization": self.auth_header} if self.auth_header else {}
        try:
            await self._sio.connect(
                self.url,
                headers=headers,
                auth={"sessionId": session_token},
                socketio_path=self.socketio_path,
            )
        except socketio.exceptions.ConnectionError as exc:
            raise DirectoryConnectionError(f"progress channel to {self.url} failed: {exc}") from exc

    async def receive(self) -> ProgressEvent:
        return await self._queue.get()

    async def close(self) -> None:
        if self._sio.connected:
            await self._sio.disconnect()

    async def _on_progress(self, data: Any = None) -> None:
        if isinstance(data, dict):
            await self._queue.put(
                ProgressEvent(ProgressEventKind.PROGRESS, ImportProgress.from_payload(data))
            )

    async def _on_completed(self, data: Any = None) -> None:
        progress = ImportProgress.from_payload(data) if isinstance(data, dict) else None
        await self._queue.put(ProgressEvent(ProgressEventKind.COMPLETED, progress))

    async def _on_error(self, data: Any = None) -> None:
        message = data.get("message") if isinstance(data, dict) else data
        await self._queue.put(
            ProgressEvent(ProgressEventKind.ERROR, message=str(message or "import failed"))
        )


# ---------------------------------------------------------------------------
# Job
# ---------------------------------------------------------------------------

class ServerImportJob:
    """Upload a spreadsheet and follow the server's import progress.

    Args:
        client: API client used for the single upload.
        source: The selected file.
        channel: Push channel for this job; closed when the job ends.
        session_token: Identifies the upload on the push channel
            (random when omitted).
        idle_timeout: Seconds without any event before the job is aborted.
        max_bytes: File size cap enforced before anything else.
        on_progress: Called (sync or async) with every new snapshot.
    """

    def __init__(
        self,
        client: DirectoryApiClient,
        source: SourceFile,
        channel: ProgressChannel,
        *,
        session_token: str | None = None,
        idle_timeout: float = 60.0,
        max_bytes: int = MAX_IMPORT_BYTES,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.client = client
        self.source = source
        self.channel = channel
        self.session_token = session_token or uuid.uuid4().hex
        self.idle_timeout = idle_timeout
        self.max_bytes = max_bytes
        self.on_progress = on_progress

        self.status: ImportStatus = ImportStatus.IDLE
        self.progress = ImportProgress()
        self.abort_reason: str | None = None

    async def run(self) -> ImportProgress:
        async for _ in self.stream():
            pass
        return self.progress

    async def stream(self) -> AsyncIterator[ImportProgress]:
        """Run the job, yielding every progress snapshot that moves it forward."""
        if self.status is not ImportStatus.IDLE:
            raise ImportStateError(
                f"import of {self.source.name} is {self.status.value}; create a new job to retry"
            )
        validate_source_file(self.source, self.max_bytes)
        self.status = ImportStatus.RUNNING
        t0 = time.perf_counter()
        try:
            await self.channel.connect(self.session_token)
            response = await self.client.upload_spreadsheet(self.source, self.session_token)
            logger.info("uploaded %s (session %s)", self.source.name, self.session_token)
            if self._apply_response(response):
                await notify_progress(self.on_progress, self.progress)
                yield self.progress

            while not self.status.terminal:
                try:
                    event = await asyncio.wait_for(self.channel.receive(), self.idle_timeout)
                except asyncio.TimeoutError:
                    self._abort(f"no progress received for {self.idle_timeout:g}s")
                    break
                if self._apply_event(event):
                    await notify_progress(self.on_progress, self.progress)
                    yield self.progress
        except DirectoryError as exc:
            self._abort(str(exc))
        finally:
            if self.status is ImportStatus.RUNNING:
                self._abort("interrupted")
            await self.channel.close()
            logger.info(
                "server import of %s %s: %s (%.1fms)",
                self.source.name,
                self.status.value,
                self.progress.summary(),
                (time.perf_counter() - t0) * 1000,
            )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _abort(self, reason: str) -> None:
        logger.warning("server import of %s aborted: %s", self.source.name, reason)
        self.status = ImportStatus.ABORTED
        self.abort_reason = reason

    def _advance(self, progress: ImportProgress | None) -> bool:
        # Pushed snapshots may arrive out of order; never move backwards.
        if progress is None or progress.processed < self.progress.processed:
            return False
        changed = progress != self.progress
        self.progress = progress
        return changed

    def _apply_response(self, response: dict[str, Any]) -> bool:
        snapshot = response.get("progress") if isinstance(response.get("progress"), dict) else None
        if snapshot is None and "processed" in response:
            snapshot = response
        changed = self._advance(ImportProgress.from_payload(snapshot) if snapshot else None)
        if str(response.get("status", "")).lower() in _TERMINAL_RESPONSE_STATUSES:
            self.status = ImportStatus.COMPLETED
            return True
        return changed

    def _apply_event(self, event: ProgressEvent) -> bool:
        if event.kind is ProgressEventKind.PROGRESS:
            return self._advance(event.progress)
        if event.kind is ProgressEventKind.COMPLETED:
            self._advance(event.progress)
            self.status = ImportStatus.COMPLETED
            return True
        self._abort(event.message or "import failed")
        return True
