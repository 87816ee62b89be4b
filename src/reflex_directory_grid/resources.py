"""Static description of the remote resources the grid can browse."""

from dataclasses import dataclass, field

from reflex_directory_grid.models import DirectoryRecord, InteractionRecord, PersonRecord
from reflex_directory_grid.query import FilterKind


@dataclass(frozen=True)
class ColumnSpec:
    """One grid column.

    Attributes:
        field: Canonical record field (camelCase, as sent by the API).
        header_name: Column header text.
        filter_kind: How a filter on this column is matched, or ``None``
            when the column is not filterable.
        value_options: Allowed values for ``ENUM`` columns.
        sortable: Whether clicking the header cycles the sort.
    """

    field: str
    header_name: str
    filter_kind: FilterKind | None = FilterKind.TEXT
    value_options: tuple[str, ...] = ()
    sortable: bool = True


@dataclass(frozen=True)
class Resource:
    """A REST collection: ``/{path}`` plus its record schema and columns."""

    name: str
    path: str
    record_model: type[DirectoryRecord]
    columns: tuple[ColumnSpec, ...] = field(default_factory=tuple)
    required_fields: tuple[str, ...] = ("name",)

    @property
    def filter_kinds(self) -> dict[str, FilterKind]:
        return {c.field: c.filter_kind for c in self.columns if c.filter_kind is not None}

    @property
    def sortable_fields(self) -> set[str]:
        return {c.field for c in self.columns if c.sortable}

    def column(self, name: str) -> ColumnSpec:
        for col in self.columns:
            if col.field == name:
                return col
        raise KeyError(f"{self.name} has no column {name!r}")

    @property
    def export_filename(self) -> str:
        return f"all_{self.path}s.csv"


RELATIONSHIP_TYPES: tuple[str, ...] = ("Donor", "Participant", "Outreach", "Volunteer", "Grant")
INTERACTION_TYPES: tuple[str, ...] = ("Follow-up", "Initial Contact", "Meeting", "Support", "Other")
INTERACTION_METHODS: tuple[str, ...] = ("Email", "Phone", "In-person", "Video", "Other")
INTERACTION_DURATIONS: tuple[str, ...] = ("30 Minutes", "60 Minutes", "90 Minutes", "120 Minutes")


PERSON = Resource(
    name="persons",
    path="person",
    record_model=PersonRecord,
    columns=(
        ColumnSpec("name", "Name"),
        ColumnSpec("phone", "Phone"),
        ColumnSpec("email", "Email"),
        ColumnSpec("street", "Street"),
        ColumnSpec("city", "City"),
        ColumnSpec("state", "State"),
        ColumnSpec("zip", "ZIP"),
        ColumnSpec(
            "relationshipType",
            "Relationship",
            filter_kind=FilterKind.ENUM,
            value_options=RELATIONSHIP_TYPES,
        ),
    ),
)

INTERACTION = Resource(
    name="interactions",
    path="interaction",
    record_model=InteractionRecord,
    columns=(
        ColumnSpec("id", "ID"),
        ColumnSpec("account", "Account"),
        ColumnSpec("name", "Name"),
        ColumnSpec("type", "Type", filter_kind=FilterKind.ENUM, value_options=INTERACTION_TYPES),
        ColumnSpec("method", "Method", filter_kind=FilterKind.ENUM, value_options=INTERACTION_METHODS),
        ColumnSpec("date", "Date", filter_kind=FilterKind.DATE),
        ColumnSpec(
            "duration",
            "Duration",
            filter_kind=FilterKind.ENUM,
            value_options=INTERACTION_DURATIONS,
        ),
        ColumnSpec("notes", "Notes"),
    ),
)

RESOURCES: dict[str, Resource] = {r.path: r for r in (PERSON, INTERACTION)}


def get_resource(name: str) -> Resource:
    """Look up a resource by path (``person``) or plural name (``persons``)."""
    for resource in RESOURCES.values():
        if name in (resource.path, resource.name):
            return resource
    raise KeyError(f"Unknown resource {name!r}; expected one of {sorted(RESOURCES)}")
