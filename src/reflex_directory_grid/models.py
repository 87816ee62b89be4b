"""Canonical record schemas for the two directory resources.

The API has renamed fields over time (``title`` vs ``name``,
``relationship_type`` vs ``relationshipType``).  Each resource gets exactly
one schema here that accepts every spelling on input and always emits the
canonical one, so nothing downstream branches on field presence.
"""

import datetime as dt
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class DirectoryRecord(BaseModel):
    """Fields shared by every row: a stable ``id`` and the soft-delete flag."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: int | str | None = None
    is_deleted: bool = Field(
        default=False,
        validation_alias=AliasChoices("isDeleted", "is_deleted"),
        serialization_alias="isDeleted",
    )

    @field_validator("is_deleted", mode="before")
    @classmethod
    def _null_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    def to_row(self) -> dict[str, Any]:
        """Return a JSON-safe dict keyed by the canonical (camelCase) names."""
        return self.model_dump(mode="json", by_alias=True)


def _blank_if_null(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class PersonRecord(DirectoryRecord):
    """A contact in the directory."""

    name: str = Field(default="", validation_alias=AliasChoices("name", "title"))
    phone: str = ""
    email: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    relationship_type: str = Field(
        default="",
        validation_alias=AliasChoices("relationshipType", "relationship_type"),
        serialization_alias="relationshipType",
    )

    @field_validator(
        "name", "phone", "email", "street", "city", "state", "zip", "relationship_type",
        mode="before",
    )
    @classmethod
    def _strings(cls, value: Any) -> Any:
        return _blank_if_null(value)


class InteractionRecord(DirectoryRecord):
    """One logged interaction with a person."""

    person_id: int | str | None = Field(
        default=None,
        validation_alias=AliasChoices("personId", "person_id"),
        serialization_alias="personId",
    )
    name: str = Field(default="", validation_alias=AliasChoices("name", "title"))
    account: str = ""
    type: str = ""
    method: str = ""
    date: dt.date | None = None
    duration: str = ""
    notes: str = ""

    @field_validator("name", "account", "type", "method", "duration", "notes", mode="before")
    @classmethod
    def _strings(cls, value: Any) -> Any:
        return _blank_if_null(value)

    @field_validator("date", mode="before")
    @classmethod
    def _day_only(cls, value: Any) -> Any:
        # The API sends full timestamps; only the calendar day is meaningful.
        if value in (None, ""):
            return None
        if isinstance(value, str):
            return value.split("T")[0]
        return value
