"""One interaction event logged against several persons at once.

The interaction form lets the operator pick any number of persons.  Saving
creates one interaction record per person; when an existing interaction is
being edited, the first selected person keeps (and updates) that record and
every further person gets a new one.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable

from reflex_directory_grid.api import DirectoryApiClient
from reflex_directory_grid.controller import RemoteGridController, check_required_fields
from reflex_directory_grid.errors import RecordValidationError
from reflex_directory_grid.models import PersonRecord
from reflex_directory_grid.query import FetchRequest, QueryState, SortSpec
from reflex_directory_grid.resources import INTERACTION, PERSON

logger = logging.getLogger(__name__)

# Fields that belong to the person, not to the shared interaction payload.
_PER_PERSON_FIELDS: frozenset[str] = frozenset({"id", "personId", "persons", "name", "account"})


@dataclass(frozen=True)
class PersonRef:
    """The parts of a person an interaction row copies."""

    id: int | str | None
    name: str
    account: str = ""

    @classmethod
    def from_record(cls, record: PersonRecord) -> "PersonRef":
        account = (record.model_extra or {}).get("account", "")
        return cls(id=record.id, name=record.name, account=str(account or ""))


def build_interaction_payloads(
    fields: dict[str, Any],
    persons: list[PersonRef],
    *,
    editing_id: int | str | None = None,
) -> list[tuple[int | str | None, dict[str, Any]]]:
    """Return ``(record_id_to_patch_or_None, payload)`` per selected person.

    Raises:
        RecordValidationError: No person selected.
    """
    if not persons:
        raise RecordValidationError("At least one person must be selected")
    base = {k: v for k, v in fields.items() if k not in _PER_PERSON_FIELDS}

    payloads: list[tuple[int | str | None, dict[str, Any]]] = []
    for index, person in enumerate(persons):
        payload = {**base, "name": person.name, "account": person.account}
        patch_existing = editing_id is not None and index == 0
        if not patch_existing:
            payload["personId"] = person.id
        payloads.append((editing_id if patch_existing else None, payload))
    return payloads


async def save_interaction_for_persons(
    grid: RemoteGridController,
    fields: dict[str, Any],
    persons: list[PersonRef],
    *,
    editing_id: int | str | None = None,
) -> None:
    """Create (or update + create) one interaction per person, then refetch.

    The calls run concurrently.  If any fails, the first error is raised
    after all of them have settled; calls that already succeeded are not
    rolled back, and the grid is refetched either way so it shows what the
    server actually stored.
    """
    payloads = build_interaction_payloads(fields, persons, editing_id=editing_id)
    for _, payload in payloads:
        check_required_fields(INTERACTION, payload)

    client = grid.client

    async def _save(record_id: int | str | None, payload: dict[str, Any]) -> None:
        if record_id is not None:
            await client.edit_record(INTERACTION, record_id, payload)
        else:
            await client.create_record(INTERACTION, payload)

    results = await asyncio.gather(
        *(_save(record_id, payload) for record_id, payload in payloads),
        return_exceptions=True,
    )
    await grid.refresh()
    errors = [r for r in results if isinstance(r, BaseException)]
    logger.info(
        "saved interaction for %d person(s), %d failed",
        len(payloads) - len(errors),
        len(errors),
    )
    if errors:
        raise errors[0]


async def search_persons(
    client: DirectoryApiClient,
    term: str,
    *,
    exclude: Iterable[int | str | None] = (),
    limit: int = 10,
) -> list[PersonRef]:
    """Return up to *limit* persons whose name contains *term*.

    Feeds the person picker of the interaction form; persons already picked
    are passed as *exclude* and left out.  A blank term returns nothing
    without a request.  Callers debounce keystrokes themselves.
    """
    term = term.strip()
    if not term:
        return []
    excluded = {str(i) for i in exclude if i is not None}
    state = QueryState(page_size=100, sort=SortSpec("name"), filters={"name": term})
    page = await client.list_records(PERSON, FetchRequest.from_state(state))
    matches = [
        PersonRef.from_record(record)
        for record in page.rows
        if str(record.id) not in excluded
    ]
    logger.debug("person search %r: %d match(es), %d excluded", term, len(matches), len(excluded))
    return matches[:limit]
