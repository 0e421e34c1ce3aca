from dataclasses import dataclass
from typing import Any


@dataclass
class DynamoSourceOptions:
    """
    Describes the DynamoDB table or index a DynamoCollection pages over.

    DynamoDB only returns ordered results within one partition, ordered by
    the sort key, so both keys are required. For a GSI, pk_name and sk_name
    are the index keys and the table's own primary key must be named too:
    index keys are not unique, and only the full key positions a read.
    """

    table_name: str
    pk_name: str
    sk_name: str
    index_name: str | None = None
    # Primary key of the base table; required with index_name
    table_pk_name: str | None = None
    table_sk_name: str | None = None
    # Field used as the record id; defaults to the sort key, or the table key for an index
    id_field: str | None = None
    region: str = "us-east-1"

    def __post_init__(self) -> None:
        if not self.table_name:
            raise ValueError("DynamoSourceOptions requires a table_name")
        if not self.pk_name or not self.sk_name:
            raise ValueError(
                f"Table '{self.table_name}' needs both a partition key and a sort key to be paginated"
            )
        if self.index_name and not self.table_pk_name:
            raise ValueError(
                f"Index '{self.index_name}' needs table_pk_name (and table_sk_name for a "
                "composite table key) so pages can resume between equal index keys"
            )

    @property
    def id_fields(self) -> tuple[str, ...]:
        """Attributes that identify a record."""
        if self.id_field:
            return (self.id_field,)
        if self.index_name:
            return self._table_keys()
        return (self.sk_name,)

    @property
    def key_fields(self) -> tuple[str, ...]:
        """Attributes stored in an anchor: the full key DynamoDB resumes a read from."""
        fields = [self.pk_name, self.sk_name]
        if self.index_name:
            fields.extend(name for name in self._table_keys() if name not in fields)
        return tuple(fields)

    def record_id(self, item: dict[str, Any]) -> Any:
        """The id of an item; a tuple when the id spans several attributes."""
        values = tuple(item[name] for name in self.id_fields)
        return values[0] if len(values) == 1 else values

    def _table_keys(self) -> tuple[str, ...]:
        return tuple(name for name in (self.table_pk_name, self.table_sk_name) if name)
