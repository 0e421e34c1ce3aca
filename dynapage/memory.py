"""
In-process Collection backed by a list of mappings.

Handy for tests, prototypes and data that already lives in memory. Queries
follow the same semantics as a database cursor: anchors are compared by their
sort values rather than by list position, so pages stay consistent when
records are added or removed between two navigation steps.
"""

from collections.abc import Iterable, Iterator, Mapping
from functools import cmp_to_key
from typing import Any

from ._logging import logger
from .conditions import MISSING, OPERATORS, matches
from .exceptions import QueryNotSupportedError
from .source import SourceRecord


def _compare_values(left: Any, right: Any) -> int:
    # Missing fields sort first, mismatched types by type name.
    if left is MISSING or right is MISSING:
        return (left is not MISSING) - (right is not MISSING)
    try:
        return (left > right) - (left < right)
    except TypeError:
        left_name, right_name = type(left).__name__, type(right).__name__
        return (left_name > right_name) - (left_name < right_name)


class MemoryCollection:
    """
    A mutable, ordered-on-demand collection of records.

    Args:
        records: Initial records; each must carry ``id_field``
        id_field: Name of the unique identifier field
    """

    def __init__(self, records: Iterable[Mapping[str, Any]] = (), id_field: str = "id") -> None:
        self.id_field = id_field
        self._records: dict[Any, dict[str, Any]] = {}
        for record in records:
            self.add(record)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def add(self, record: Mapping[str, Any]) -> None:
        """Inserts a record. Raises ValueError when its id is missing or taken."""
        if self.id_field not in record:
            raise ValueError(f"Record is missing the id field '{self.id_field}'")
        record_id = record[self.id_field]
        if record_id in self._records:
            raise ValueError(f"Record with id {record_id!r} already exists")
        self._records[record_id] = dict(record)

    def remove(self, record_id: Any) -> None:
        """Deletes a record. Raises KeyError for unknown ids."""
        del self._records[record_id]

    def update(self, record_id: Any, **changes: Any) -> None:
        """Changes fields of an existing record; the id itself cannot change."""
        if self.id_field in changes:
            raise ValueError("The id field of a record cannot be updated")
        self._records[record_id].update(changes)

    def query(self) -> "MemoryQuery":
        return MemoryQuery(self)

    def snapshot(self) -> list[dict[str, Any]]:
        """Copies of all records, in insertion order."""
        return [dict(record) for record in self._records.values()]


class MemoryQuery:
    """Query builder for MemoryCollection. Builder methods return self for chaining."""

    def __init__(self, collection: MemoryCollection) -> None:
        self.collection = collection
        self.filters: list[tuple[str, str, Any]] = []
        self.orderings: list[tuple[str, str]] = []
        self.start_anchor: Mapping[str, Any] | None = None
        self.end_anchor: Mapping[str, Any] | None = None
        self.limit_val: int | None = None
        self.from_end = False

    # --- BUILDER INTERFACE ---

    def filter_by(self, field: str, op: str, value: Any) -> "MemoryQuery":
        if op not in OPERATORS:
            raise QueryNotSupportedError(f"Unsupported filter operator '{op}'", field=field)
        self.filters.append((field, op, value))
        return self

    def order_by(self, field: str, direction: str = "asc") -> "MemoryQuery":
        if direction not in ("asc", "desc"):
            raise QueryNotSupportedError(f"Unsupported sort direction '{direction}'", field=field)
        self.orderings.append((field, direction))
        return self

    def limit_first(self, count: int) -> "MemoryQuery":
        self.limit_val = count
        self.from_end = False
        return self

    def limit_last(self, count: int) -> "MemoryQuery":
        self.limit_val = count
        self.from_end = True
        return self

    def start_at(self, anchor: Mapping[str, Any]) -> "MemoryQuery":
        self.start_anchor = anchor
        return self

    def end_before(self, anchor: Mapping[str, Any]) -> "MemoryQuery":
        self.end_anchor = anchor
        return self

    # --- EXECUTION ---

    def compare(self, left: Mapping[str, Any], right: Mapping[str, Any]) -> int:
        """Orders two records by the query's sort entries, then by id."""
        for field, direction in self.orderings:
            result = _compare_values(left.get(field, MISSING), right.get(field, MISSING))
            if result:
                return -result if direction == "desc" else result
        id_field = self.collection.id_field
        return _compare_values(left.get(id_field, MISSING), right.get(id_field, MISSING))

    def execute(self) -> Iterator[SourceRecord]:
        """
        Lazy Execution: records are filtered, ordered and bounded when
        iteration starts, against the collection's data at that moment.
        """
        records = [
            record
            for record in self.collection.snapshot()
            if all(matches(record, field, op, value) for field, op, value in self.filters)
        ]
        records.sort(key=cmp_to_key(self.compare))

        if self.start_anchor is not None:
            records = [r for r in records if self.compare(r, self.start_anchor) >= 0]
        if self.end_anchor is not None:
            records = [r for r in records if self.compare(r, self.end_anchor) < 0]

        if self.limit_val is not None:
            if self.from_end:
                records = records[-self.limit_val :] if self.limit_val > 0 else []
            else:
                records = records[: self.limit_val]

        logger.debug(
            "Memory query executed",
            extra={
                "count": len(records),
                "filters": len(self.filters),
                "limit": self.limit_val,
                "from_end": self.from_end,
            },
        )

        id_field = self.collection.id_field
        for record in records:
            # The anchor is a private copy: later edits to the collection must
            # not move a cursor that was already handed out.
            yield SourceRecord(data=record, anchor=dict(record), id=record[id_field])
