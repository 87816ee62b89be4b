"""Runtime configuration, read from ``DIRECTORY_*`` environment variables.

Example ``.env``::

    DIRECTORY_API_URL=https://crm.example.org/api
    DIRECTORY_DEBOUNCE_SECONDS=0.3
    DIRECTORY_IMPORT_CONCURRENCY=1
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_API_URL: str = "http://localhost:8000"
_DEFAULT_DEBOUNCE_SECONDS: float = 0.3
_DEFAULT_PAGE_SIZE: int = 10
_DEFAULT_IMPORT_MAX_BYTES: int = 10 * 1024 * 1024
_DEFAULT_IMPORT_IDLE_TIMEOUT: float = 60.0


class DirectorySettings(BaseSettings):
    """Settings shared by the grid controller, the importers and the CLI."""

    model_config = SettingsConfigDict(
        env_prefix="DIRECTORY_",
        env_file=".env",
        extra="ignore",
    )

    api_url: str = _DEFAULT_API_URL
    # Forwarded verbatim as the ``Authorization`` header; never inspected.
    auth_header: str | None = None
    request_timeout: float = 30.0

    debounce_seconds: float = _DEFAULT_DEBOUNCE_SECONDS
    default_page_size: int = _DEFAULT_PAGE_SIZE

    import_max_bytes: int = _DEFAULT_IMPORT_MAX_BYTES
    import_concurrency: int = 1
    import_idle_timeout: float = _DEFAULT_IMPORT_IDLE_TIMEOUT
    # Server-declared ``code`` values that mark a create call as a duplicate.
    duplicate_codes: list[str] = ["DUPLICATE_RECORD", "duplicate"]

    progress_event: str = "importProgress"
    completed_event: str = "importCompleted"
    error_event: str = "importError"


@lru_cache(maxsize=1)
def get_settings() -> DirectorySettings:
    """Return the process-wide settings (read once, then cached)."""
    return DirectorySettings()
