"""Spreadsheet intake for the bulk import: validation, parsing and field mapping.

Files are checked locally (content type and size) before anything touches
the network, then read with polars and turned into plain ``{header: str}``
rows.  :class:`FieldMapping` translates source headers into the target
record's field names.
"""

import io
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Mapping

import fastexcel
import polars as pl

from reflex_directory_grid.errors import ImportValidationError

logger = logging.getLogger(__name__)

XLS_TYPE: str = "application/vnd.ms-excel"
XLSX_TYPE: str = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_TYPE: str = "text/csv"

ACCEPTED_CONTENT_TYPES: frozenset[str] = frozenset({XLS_TYPE, XLSX_TYPE, CSV_TYPE})
MAX_IMPORT_BYTES: int = 10 * 1024 * 1024

_SUFFIX_TYPES: dict[str, str] = {
    ".xls": XLS_TYPE,
    ".xlsx": XLSX_TYPE,
    ".csv": CSV_TYPE,
    ".txt": "text/plain",
    ".json": "application/json",
    ".pdf": "application/pdf",
}


# ---------------------------------------------------------------------------
# Source file
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SourceFile:
    """An uploaded file: its name, raw bytes and declared content type."""

    name: str
    content: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def effective_type(self) -> str:
        """Declared content type, or the one implied by the file extension."""
        if self.content_type:
            return self.content_type.split(";")[0].strip().lower()
        return _SUFFIX_TYPES.get(Path(self.name).suffix.lower(), "application/octet-stream")

    @classmethod
    def from_path(cls, path: Path, content_type: str | None = None) -> "SourceFile":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        return cls(name=path.name, content=path.read_bytes(), content_type=content_type)


def validate_source_file(source: SourceFile, max_bytes: int = MAX_IMPORT_BYTES) -> None:
    """Reject files that are not spreadsheets or that exceed *max_bytes*.

    Raises:
        ImportValidationError: On an unsupported type or an oversized file.
    """
    if source.effective_type not in ACCEPTED_CONTENT_TYPES:
        raise ImportValidationError(
            f"{source.name}: please upload a valid spreadsheet (.xls, .xlsx or .csv)"
        )
    if source.size > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise ImportValidationError(
            f"{source.name}: file size should be less than {limit_mb:g}MB"
        )


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _stringify_frame(df: pl.DataFrame) -> pl.DataFrame:
    """Cast every column to String with import-friendly formatting.

    * Floats that only hold whole numbers (Excel stores ZIP codes and
      phone numbers that way) are printed without the ``.0``.
    * Date / Datetime columns become ISO-8601 days.
    * Nulls become empty strings.
    """
    exprs: list[pl.Expr] = []
    for name, dtype in df.schema.items():
        col = pl.col(name)
        if dtype.is_float():
            values = df[name].drop_nulls()
            if values.len() == 0 or bool((values == values.round(0)).all()):
                col = col.cast(pl.Int64)
        elif isinstance(dtype, pl.Datetime):
            col = col.dt.date()
        exprs.append(col.cast(pl.String).str.strip_chars().fill_null("").alias(name))
    return df.select(exprs)


def read_spreadsheet(source: SourceFile) -> pl.DataFrame:
    """Read *source* into a DataFrame whose columns are all strings.

    CSV files are read with schema inference disabled so values arrive
    verbatim; Excel workbooks are read from their first sheet.
    """
    t0 = time.perf_counter()
    data = io.BytesIO(source.content)
    try:
        if source.effective_type == CSV_TYPE:
            df = pl.read_csv(data, infer_schema_length=0)
        else:
            df = pl.read_excel(data)
    except (pl.exceptions.PolarsError, fastexcel.FastExcelError) as exc:
        raise ImportValidationError(f"Could not read {source.name}: {exc}") from exc
    df = _stringify_frame(df)
    logger.info(
        "read %s: %d rows x %d columns (%.1fms)",
        source.name,
        df.height,
        df.width,
        (time.perf_counter() - t0) * 1000,
    )
    return df


def iter_source_rows(df: pl.DataFrame) -> Iterator[dict[str, str]]:
    """Yield each row as ``{header: value}`` without materialising all dicts."""
    yield from df.iter_rows(named=True)


# ---------------------------------------------------------------------------
# Field mapping
# ---------------------------------------------------------------------------

def _header_key(header: str) -> str:
    return str(header).strip().casefold()


class FieldMapping:
    """Static table from source-column header to target field name.

    Headers are matched after stripping and case-folding.  Unmapped source
    columns are ignored and target fields with no source value default to
    an empty string.

    Args:
        columns: ``{source header: target field}``.
        target_fields: Every field of the target record, in output order.
    """

    def __init__(self, columns: Mapping[str, str], target_fields: tuple[str, ...]) -> None:
        self.columns = {_header_key(k): v for k, v in columns.items()}
        self.target_fields = target_fields

    def map_row(self, source_row: Mapping[str, Any]) -> dict[str, str]:
        mapped: dict[str, str] = {name: "" for name in self.target_fields}
        for header, value in source_row.items():
            target = self.columns.get(_header_key(header))
            if target is None or target not in mapped:
                continue
            text = "" if value is None else str(value).strip()
            # Keep the first non-empty value when two headers map to one field.
            if text and not mapped[target]:
                mapped[target] = text
        return mapped

    def unmapped_headers(self, headers: list[str]) -> list[str]:
        return [h for h in headers if _header_key(h) not in self.columns]


PERSON_FIELDS: tuple[str, ...] = (
    "name",
    "phone",
    "email",
    "street",
    "city",
    "state",
    "zip",
    "relationshipType",
)

PERSON_FIELD_MAPPING = FieldMapping(
    {
        "Name": "name",
        "Full Name": "name",
        "Phone": "phone",
        "Phone Number": "phone",
        "Email": "email",
        "E-mail": "email",
        "Street": "street",
        "Address": "street",
        "City": "city",
        "State": "state",
        "Zip": "zip",
        "Zip Code": "zip",
        "Relationship": "relationshipType",
        "Relationship Type": "relationshipType",
    },
    PERSON_FIELDS,
)
