"""Document store contract consumed by the lifecycle and catalog services."""

from __future__ import annotations

from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any
from typing import Protocol

Document = dict[str, Any]
Filter = Mapping[str, Any]
SortSpec = Sequence[tuple[str, int]]

ASCENDING = 1
DESCENDING = -1


class DocumentStore(Protocol):
    """Per-collection JSON document storage.

    Filters are equality matches on (dotted) field paths.  Sort specs are
    ``(field, direction)`` pairs applied left to right, with ``-1`` for
    descending order.  Implementations raise ``StoreUnavailableError`` when
    the backend cannot be reached.
    """

    async def insert(self, collection: str, document: Document) -> str: ...

    async def find_one(
        self,
        collection: str,
        filter: Filter,
        sort: SortSpec | None = None,
    ) -> Document | None: ...

    async def find(
        self,
        collection: str,
        filter: Filter | None = None,
        sort: SortSpec | None = None,
    ) -> list[Document]: ...

    async def update_one(
        self, collection: str, filter: Filter, patch: Mapping[str, Any]
    ) -> int: ...

    async def delete_one(self, collection: str, filter: Filter) -> int: ...

    async def count_documents(
        self, collection: str, filter: Filter | None = None
    ) -> int: ...

    async def find_one_and_update(
        self,
        collection: str,
        filter: Filter,
        increment: Mapping[str, int],
        *,
        upsert: bool = False,
    ) -> Document | None: ...

    async def ping(self) -> bool: ...


def lookup(document: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted *path* inside *document*, or ``None`` when absent."""
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def matches(document: Mapping[str, Any], filter: Filter | None) -> bool:
    """Return whether *document* satisfies every equality in *filter*."""
    if not filter:
        return True
    return all(lookup(document, path) == value for path, value in filter.items())


def sort_documents(documents: list[Document], sort: SortSpec | None) -> list[Document]:
    """Sort *documents* by *sort*; missing values order last when descending."""
    if not sort:
        return documents
    ordered = list(documents)
    # Stable sorts applied from the least significant key backwards.
    for path, direction in reversed(list(sort)):
        ordered.sort(
            key=lambda doc: (lookup(doc, path) is not None, lookup(doc, path)),
            reverse=direction == DESCENDING,
        )
    return ordered
