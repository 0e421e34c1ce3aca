"""
Contract for the ordered, filterable collections Dynapage pages over.

The paginator never talks to a database directly. It asks a Collection for a
fresh query, shapes it with the builder methods below and executes it once.
Two implementations ship with the library: MemoryCollection and
DynamoCollection.
"""

from collections.abc import Iterator
from typing import Any, NamedTuple, Protocol, runtime_checkable


class SourceRecord(NamedTuple):
    """
    One record returned by a query execution.

    Attributes:
        data: The record payload as stored
        anchor: Opaque reference that lets a later query resume the scan at this record
        id: Stable identifier of the record
    """

    data: Any
    anchor: Any
    id: Any


@runtime_checkable
class CollectionQuery(Protocol):
    """A bounded, ordered, filtered query under construction."""

    def filter_by(self, field: str, op: str, value: Any) -> "CollectionQuery": ...

    def order_by(self, field: str, direction: str = "asc") -> "CollectionQuery": ...

    def limit_first(self, count: int) -> "CollectionQuery": ...

    def limit_last(self, count: int) -> "CollectionQuery": ...

    def start_at(self, anchor: Any) -> "CollectionQuery":
        """Begins the scan at the anchored record, inclusive."""
        ...

    def end_before(self, anchor: Any) -> "CollectionQuery":
        """Ends the scan just before the anchored record, exclusive."""
        ...

    def execute(self) -> Iterator[SourceRecord]:
        """Runs the query. The returned iterator is finite and can be consumed once."""
        ...


@runtime_checkable
class Collection(Protocol):
    """Something that can hand out fresh, unbounded queries."""

    def query(self) -> CollectionQuery: ...
