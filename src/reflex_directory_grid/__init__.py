"""reflex-directory-grid – server-paginated contact directory grid for Reflex.

Browse persons and interactions held by a remote REST API with debounced
filtering, sorting and pagination, soft-delete/restore rows, export CSV,
and bulk-import spreadsheets::

    pip install reflex-directory-grid

The grid logic (:class:`RemoteGridController`) and both importers work
without Reflex; :class:`DirectoryGridMixin` binds them to a Reflex page.
"""

from reflex_directory_grid.api import DirectoryApiClient, parse_page_payload
from reflex_directory_grid.config import DirectorySettings, get_settings
from reflex_directory_grid.controller import (
    Edit,
    Operation,
    RemoteGridController,
    Restore,
    SoftDelete,
    check_required_fields,
)
from reflex_directory_grid.errors import (
    ApiError,
    DirectoryConnectionError,
    DirectoryError,
    DuplicateRecordError,
    FetchError,
    ImportStateError,
    ImportValidationError,
    MutationError,
    RecordValidationError,
)
from reflex_directory_grid.grid_state import (
    DirectoryGridMixin,
    directory_grid,
    directory_grid_pagination,
    directory_grid_stats_bar,
    directory_import_panel,
)
from reflex_directory_grid.importer import (
    ImportJob,
    ImportProgress,
    ImportStatus,
    RowOutcome,
    RowStatus,
)
from reflex_directory_grid.interactions import (
    PersonRef,
    build_interaction_payloads,
    save_interaction_for_persons,
    search_persons,
)
from reflex_directory_grid.models import DirectoryRecord, InteractionRecord, PersonRecord
from reflex_directory_grid.popover import PopoverManager
from reflex_directory_grid.query import (
    PAGE_SIZE_OPTIONS,
    FetchRequest,
    FilterKind,
    PageInfo,
    PageResult,
    QueryState,
    SortSpec,
    describe_filters,
    row_matches,
    total_pages,
    value_matches,
)
from reflex_directory_grid.resources import (
    INTERACTION,
    PERSON,
    RESOURCES,
    ColumnSpec,
    Resource,
    get_resource,
)
from reflex_directory_grid.scheduler import FetchScheduler
from reflex_directory_grid.server_import import (
    ProgressChannel,
    ProgressEvent,
    ProgressEventKind,
    ServerImportJob,
    SocketIOProgressChannel,
)
from reflex_directory_grid.spreadsheet import (
    PERSON_FIELD_MAPPING,
    FieldMapping,
    SourceFile,
    read_spreadsheet,
    validate_source_file,
)
