"""Debounced, last-issued-wins fetch scheduling for the remote grid.

The scheduler turns a stream of :class:`~reflex_directory_grid.query.QueryState`
changes into network requests:

* A request is only issued once ``debounce`` seconds have passed without a
  new state; a newer state discards the pending one and restarts the timer.
* At most one request is in flight.  Issuing a new one cancels the previous
  request, and every response carries the generation it was issued under:
  a response is applied only if it is newer than the last applied one, so a
  slow, older response can never overwrite fresher data.
* A failed fetch is reported through ``on_error`` and nothing else changes.
  There is no automatic retry; the next state change fetches again.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from reflex_directory_grid.errors import DirectoryError
from reflex_directory_grid.query import PageResult, QueryState

logger = logging.getLogger(__name__)

FetchFn = Callable[[QueryState], Awaitable[PageResult]]
ResultFn = Callable[[QueryState, PageResult], None]
ErrorFn = Callable[[DirectoryError], None]


class FetchScheduler:
    """Coalesce query-state changes into single, ordered fetches.

    Args:
        fetch: Coroutine function performing the request for a state.
        on_result: Called with ``(state, result)`` for every applied response.
        on_error: Called with the error of the latest request when it fails.
        debounce: Quiet interval in seconds before a submitted state is fetched.
    """

    def __init__(
        self,
        fetch: FetchFn,
        on_result: ResultFn,
        on_error: ErrorFn,
        *,
        debounce: float = 0.3,
    ) -> None:
        self._fetch = fetch
        self._on_result = on_result
        self._on_error = on_error
        self._debounce = debounce
        self._timer: asyncio.Task | None = None
        self._request: asyncio.Task | None = None
        self._issued: int = 0
        self._applied: int = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def pending(self) -> bool:
        """True while a submitted state is waiting out the quiet interval."""
        return self._timer is not None and not self._timer.done()

    @property
    def in_flight(self) -> bool:
        return self._request is not None and not self._request.done()

    @property
    def issued_count(self) -> int:
        return self._issued

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def submit(self, state: QueryState) -> None:
        """Schedule a fetch of *state* after the quiet interval."""
        if self.pending:
            self._timer.cancel()  # type: ignore[union-attr]
            logger.debug("debounce restarted, previous state discarded")
        self._timer = asyncio.get_running_loop().create_task(self._fire_after_quiet(state))

    def flush(self, state: QueryState) -> asyncio.Task:
        """Fetch *state* now, dropping any pending debounced state."""
        if self.pending:
            self._timer.cancel()  # type: ignore[union-attr]
        return self._issue(state)

    async def wait_idle(self) -> None:
        """Wait until no timer is pending and no request is in flight."""
        while True:
            outstanding = [
                task
                for task in (self._timer, self._request)
                if task is not None and not task.done()
            ]
            if not outstanding:
                return
            await asyncio.wait(outstanding)

    def close(self) -> None:
        """Cancel the pending timer and the in-flight request, if any."""
        for task in (self._timer, self._request):
            if task is not None and not task.done():
                task.cancel()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _fire_after_quiet(self, state: QueryState) -> None:
        await asyncio.sleep(self._debounce)
        self._issue(state)

    def _issue(self, state: QueryState) -> asyncio.Task:
        if self._timer is asyncio.current_task():
            self._timer = None
        # A result callback may issue a follow-up from inside the finishing request.
        if self.in_flight and self._request is not asyncio.current_task():
            self._request.cancel()  # type: ignore[union-attr]
            logger.debug("request #%d superseded before completion", self._issued)
        self._issued += 1
        self._request = asyncio.get_running_loop().create_task(
            self._run(self._issued, state)
        )
        return self._request

    async def _run(self, generation: int, state: QueryState) -> None:
        t0 = time.perf_counter()
        try:
            result = await self._fetch(state)
        except DirectoryError as exc:
            elapsed_ms = (time.perf_counter() - t0) * 1000
            if generation != self._issued:
                logger.debug(
                    "request #%d failed after being superseded (%.1fms)",
                    generation,
                    elapsed_ms,
                )
                return
            logger.warning("request #%d failed (%.1fms): %s", generation, elapsed_ms, exc)
            self._on_error(exc)
            return

        elapsed_ms = (time.perf_counter() - t0) * 1000
        if generation <= self._applied:
            logger.debug(
                "request #%d discarded: #%d already applied (%.1fms)",
                generation,
                self._applied,
                elapsed_ms,
            )
            return
        self._applied = generation
        logger.debug(
            "request #%d applied: page=%d, rows=%d, total=%d (%.1fms)",
            generation,
            state.page,
            len(result.rows),
            result.total_count,
            elapsed_ms,
        )
        self._on_result(state, result)
