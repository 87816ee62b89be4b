"""Query state for a remote grid and its deterministic request encoding.

A :class:`QueryState` describes which subset of records the user wants to
see: page, page size, an optional single-column sort and a mapping of
column filters.  It is an immutable value -- every transition returns a new
state -- so the controller can compare, log and replay states freely.

:class:`FetchRequest` is derived from a state and is what goes on the
wire.  The same module also holds the *display* side of the filter
semantics (:func:`value_matches`, :func:`describe_filters`) so the UI and
the request encoding cannot drift apart.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal, Mapping, Union

import httpx

PAGE_SIZE_OPTIONS: tuple[int, ...] = (10, 25, 50, 100)

SortDirection = Literal["asc", "desc"]
FilterValue = Union[str, frozenset[str], date]


class FilterKind(str, Enum):
    """How a column's filter value is interpreted."""

    TEXT = "text"  # substring
    ENUM = "enum"  # membership in a selected set
    DATE = "date"  # same calendar day


@dataclass(frozen=True)
class SortSpec:
    """The single active sort column."""

    field: str
    direction: SortDirection = "asc"


def _parse_day(value: Any) -> date | None:
    """Return the calendar day of a date, datetime or ISO-8601 string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip().split("T")[0])
        except ValueError:
            return None
    return None


def _normalize_filter_value(value: Any) -> FilterValue | None:
    """Coerce a raw filter input, returning ``None`` for "no constraint"."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (set, frozenset, list, tuple)):
        selected = frozenset(str(v) for v in value if v is not None and str(v) != "")
        return selected or None
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------------
# QueryState
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class QueryState:
    """Immutable description of the page of records the grid should show.

    ``filters`` is normalised on construction (empty values dropped) and
    exposed as a read-only mapping, so states are hashable and equal states
    encode to equal requests.

    Attributes:
        page: 1-based page number.
        page_size: Rows per page, one of :data:`PAGE_SIZE_OPTIONS`.
        sort: The active sort, or ``None``.
        filters: ``{field: value}``; absent keys mean no constraint.
    """

    page: int = 1
    page_size: int = PAGE_SIZE_OPTIONS[0]
    sort: SortSpec | None = None
    filters: Mapping[str, FilterValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if self.page_size not in PAGE_SIZE_OPTIONS:
            raise ValueError(
                f"page_size must be one of {PAGE_SIZE_OPTIONS}, got {self.page_size}"
            )
        cleaned: dict[str, FilterValue] = {}
        for name, value in self.filters.items():
            normalized = _normalize_filter_value(value)
            if normalized is not None:
                cleaned[name] = normalized
        object.__setattr__(self, "filters", MappingProxyType(cleaned))

    def __hash__(self) -> int:
        return hash((self.page, self.page_size, self.sort, frozenset(self.filters.items())))

    # -- transitions --------------------------------------------------------

    def set_page(self, page: int, total_pages: int | None = None) -> "QueryState":
        """Move to *page*, clamped to ``[1, total_pages]`` when a total is known."""
        page = max(1, int(page))
        if total_pages is not None:
            page = min(page, max(1, total_pages))
        return replace(self, page=page)

    def set_page_size(self, page_size: int) -> "QueryState":
        if page_size not in PAGE_SIZE_OPTIONS:
            raise ValueError(
                f"page_size must be one of {PAGE_SIZE_OPTIONS}, got {page_size}"
            )
        return replace(self, page=1, page_size=page_size)

    def set_sort(self, sort_field: str) -> "QueryState":
        """Cycle the sort on *sort_field*: asc -> desc -> none -> asc.

        Switching to a different field always starts at ascending.
        """
        if self.sort is None or self.sort.field != sort_field:
            sort: SortSpec | None = SortSpec(sort_field, "asc")
        elif self.sort.direction == "asc":
            sort = SortSpec(sort_field, "desc")
        else:
            sort = None
        return replace(self, page=1, sort=sort)

    def set_filter(self, filter_field: str, value: Any) -> "QueryState":
        """Set or clear the filter on *filter_field*.

        Empty values (``None``, blank strings, empty selections) remove the
        key instead of storing an empty constraint.
        """
        normalized = _normalize_filter_value(value)
        filters = dict(self.filters)
        if normalized is None:
            filters.pop(filter_field, None)
        else:
            filters[filter_field] = normalized
        return replace(self, page=1, filters=filters)

    def clear_filters(self) -> "QueryState":
        return replace(self, page=1, filters={})


# ---------------------------------------------------------------------------
# Request encoding
# ---------------------------------------------------------------------------

def _encode_filter_value(value: FilterValue) -> list[str]:
    if isinstance(value, frozenset):
        return sorted(value)
    if isinstance(value, date):
        return [value.isoformat()]
    return [str(value)]


@dataclass(frozen=True)
class FetchRequest:
    """Ordered query parameters for one list call.

    Order: ``page``, ``limit``, then ``sortBy``/``sortType`` when sorting,
    then one entry per active filter in field-name order.  Multi-select
    filters repeat the key once per selected value, values sorted.
    """

    params: tuple[tuple[str, str], ...]

    @classmethod
    def from_state(cls, state: QueryState) -> "FetchRequest":
        params: list[tuple[str, str]] = [
            ("page", str(state.page)),
            ("limit", str(state.page_size)),
        ]
        if state.sort is not None:
            params.append(("sortBy", state.sort.field))
            params.append(("sortType", state.sort.direction))
        for name in sorted(state.filters):
            for encoded in _encode_filter_value(state.filters[name]):
                params.append((name, encoded))
        return cls(params=tuple(params))

    def get(self, key: str) -> str | None:
        """Return the first value for *key*, or ``None``."""
        for name, value in self.params:
            if name == key:
                return value
        return None

    def query_string(self) -> str:
        """URL-encoded form of the parameters (stable for equal states)."""
        return str(httpx.QueryParams(list(self.params)))


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

def total_pages(total_count: int, page_size: int) -> int:
    """``ceil(total_count / page_size)``."""
    if total_count <= 0:
        return 0
    return math.ceil(total_count / page_size)


@dataclass(frozen=True)
class PageResult:
    """One page of records plus the server-side total across all pages."""

    rows: list[Any]
    total_count: int

    def total_pages(self, page_size: int) -> int:
        return total_pages(self.total_count, page_size)


@dataclass(frozen=True)
class PageInfo:
    page: int
    total_pages: int


# ---------------------------------------------------------------------------
# Display mirror of the filter semantics
# ---------------------------------------------------------------------------

def value_matches(kind: FilterKind, cell: Any, value: FilterValue) -> bool:
    """Return True if a cell value satisfies a filter value.

    * ``TEXT``: case-insensitive substring match.
    * ``ENUM``: the cell is one of the selected values; an empty selection
      matches everything.
    * ``DATE``: the cell falls on the same calendar day.
    """
    if kind is FilterKind.ENUM:
        if isinstance(value, frozenset):
            return not value or str(cell) in value
        return str(cell) == str(value)
    if kind is FilterKind.DATE:
        wanted = _parse_day(value)
        return wanted is not None and _parse_day(cell) == wanted
    text = "" if cell is None else str(cell)
    return str(value).casefold() in text.casefold()


def row_matches(
    state: QueryState,
    row: Mapping[str, Any],
    kinds: Mapping[str, FilterKind],
) -> bool:
    """Return True if *row* satisfies every active filter in *state*."""
    return all(
        value_matches(kinds.get(name, FilterKind.TEXT), row.get(name), value)
        for name, value in state.filters.items()
    )


def describe_filters(
    state: QueryState,
    kinds: Mapping[str, FilterKind] | None = None,
) -> list[str]:
    """Human-readable one-liners for the active filters, in request order."""
    kinds = kinds or {}
    lines: list[str] = []
    for name in sorted(state.filters):
        value = state.filters[name]
        kind = kinds.get(name, FilterKind.TEXT)
        if isinstance(value, frozenset):
            lines.append(f"{name} is any of {', '.join(sorted(value))}")
        elif kind is FilterKind.DATE or isinstance(value, date):
            day = _parse_day(value)
            lines.append(f"{name} on {day.isoformat() if day else value}")
        elif kind is FilterKind.ENUM:
            lines.append(f"{name} is {value}")
        else:
            lines.append(f"{name} contains {value!r}")
    return lines
