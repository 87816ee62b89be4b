"""Error taxonomy for the directory grid and the bulk import pipeline.

Every error raised here is recoverable: the grid keeps showing the last
good page, mutations leave local state untouched, and import failures are
recorded per row.  Callers decide how to surface the message.
"""

from typing import Any


class DirectoryError(Exception):
    """Base class for every error raised by ``reflex_directory_grid``."""


# ---------------------------------------------------------------------------
# Local (pre-network) validation
# ---------------------------------------------------------------------------

class ImportValidationError(DirectoryError):
    """The selected import file was rejected before any request was made."""


class RecordValidationError(DirectoryError):
    """A record failed a local required-field check."""


class ImportStateError(DirectoryError):
    """An import job was driven from a state that does not allow it."""


# ---------------------------------------------------------------------------
# Remote errors
# ---------------------------------------------------------------------------

class DirectoryConnectionError(DirectoryError):
    """The API could not be reached (DNS, refused connection, timeout...)."""


class ApiError(DirectoryError):
    """The API answered with a non-success status.

    Attributes:
        status_code: HTTP status of the response.
        code: Server-declared error code from the JSON body, if any.
        message: Human-readable message (server message when provided).
        payload: The decoded JSON body, or ``None`` for non-JSON bodies.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        code: Any = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.payload = payload

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500


class FetchError(ApiError):
    """A grid read (list/export) failed."""


class MutationError(ApiError):
    """An edit, soft delete, restore or create call was rejected."""


class DuplicateRecordError(MutationError):
    """The server declared the created record a duplicate of an existing one."""
