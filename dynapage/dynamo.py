"""
DynamoDB-backed Collection.

A DynamoCollection pages over one partition of a table or global secondary
index, ordered by its sort key. Anchors are the full key of a record and
bound reads through ExclusiveStartKey. Reading from the end is a reversed
scan whose results are flipped back into order.

Usage:
    options = DynamoSourceOptions(table_name="messages", pk_name="room_id", sk_name="sent_at")
    messages = DynamoCollection(options, pk_value="general")
    paginator = Paginator(messages, page_size=20, sort=[("sent_at", "desc")])
"""

from collections.abc import Generator, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, ClassVar

import boto3
from boto3.dynamodb.conditions import ConditionBase as Boto3ConditionBase
from boto3.dynamodb.conditions import Key as Boto3Key

from ._logging import logger, redact_key
from .conditions import (
    combine_conditions,
    compile_query_conditions,
    to_boto3_condition,
    to_boto3_key_condition,
)
from .config import DynamoSourceOptions
from .exceptions import QueryNotSupportedError, ValidationError, handle_dynamo_errors
from .serializer import DynamoSerializer
from .source import SourceRecord


class DynamoCollection:
    """
    One DynamoDB partition exposed as an ordered, filterable Collection.

    Args:
        options: Table/index description
        pk_value: Partition key value selecting the partition to page over
        client: Optional boto3 DynamoDB client; resolved lazily otherwise
    """

    # Process-wide default client
    _client: ClassVar[Any] = None
    # Context-scoped override (thread-safe and async-safe)
    _client_context: ClassVar[ContextVar[Any]] = ContextVar("dynapage_client", default=None)

    _serializer: ClassVar[DynamoSerializer] = DynamoSerializer()

    def __init__(
        self, options: DynamoSourceOptions, pk_value: Any, client: Any | None = None
    ) -> None:
        self.options = options
        self.pk_value = pk_value
        self.client = client

    @classmethod
    def set_client(cls, client: Any) -> None:
        """Sets the default client for collections created without one."""
        cls._client = client

    @classmethod
    @contextmanager
    def using_client(cls, client: Any) -> Generator[None, None, None]:
        """
        Context manager to scope a client to a block of code.

        Usage:
            with DynamoCollection.using_client(localstack_client):
                paginator.next()
        """
        token = cls._client_context.set(client)
        try:
            yield
        finally:
            cls._client_context.reset(token)

    def get_client(self) -> Any:
        # 1. Explicit client
        if self.client is not None:
            return self.client

        # 2. Context override
        ctx_client = self._client_context.get()
        if ctx_client is not None:
            return ctx_client

        # 3. Global default, created on first use
        cls = type(self)
        if cls._client is None:
            cls._client = boto3.client("dynamodb", region_name=self.options.region)
        return cls._client

    def query(self) -> "DynamoQuery":
        return DynamoQuery(self)


class DynamoQuery:
    """
    Query builder for DynamoCollection.

    Anchors are full item keys and bound a read through ExclusiveStartKey,
    which resumes exactly after one item even between equal sort key values.
    That fixes which bound goes with which read direction: start_at reads
    forward (limit_first), end_before reads backward (limit_last). Other
    shapes raise QueryNotSupportedError, as do orderings on anything but the
    sort key.
    """

    def __init__(self, collection: DynamoCollection) -> None:
        self.collection = collection
        self.options = collection.options
        self.serializer = collection._serializer

        self.filter_conditions: list[Boto3ConditionBase] = []
        self.sort_key_condition: Boto3ConditionBase | None = None
        self.order_field: str | None = None
        self.descending = False
        self.start_anchor: dict[str, Any] | None = None
        self.end_anchor: dict[str, Any] | None = None
        self.limit_val: int | None = None
        self.from_end = False

    # --- BUILDER INTERFACE ---

    def filter_by(self, field: str, op: str, value: Any) -> "DynamoQuery":
        if field == self.options.pk_name:
            raise QueryNotSupportedError(
                f"The partition key '{field}' is fixed by the collection and cannot be filtered",
                field=field,
            )
        if field == self.options.sk_name:
            if self.sort_key_condition is not None:
                raise QueryNotSupportedError(
                    "DynamoDB allows one condition on the sort key", field=field
                )
            self.sort_key_condition = to_boto3_key_condition(field, op, value)
            return self
        self.filter_conditions.append(to_boto3_condition(field, op, value))
        return self

    def order_by(self, field: str, direction: str = "asc") -> "DynamoQuery":
        if field != self.options.sk_name:
            raise QueryNotSupportedError(
                f"DynamoDB can only order by the sort key '{self.options.sk_name}', got '{field}'",
                field=field,
            )
        if self.order_field is not None:
            raise QueryNotSupportedError("DynamoDB supports a single ordering", field=field)
        if direction not in ("asc", "desc"):
            raise QueryNotSupportedError(f"Unsupported sort direction '{direction}'", field=field)
        self.order_field = field
        self.descending = direction == "desc"
        return self

    def limit_first(self, count: int) -> "DynamoQuery":
        self.limit_val = count
        self.from_end = False
        return self

    def limit_last(self, count: int) -> "DynamoQuery":
        self.limit_val = count
        self.from_end = True
        return self

    def start_at(self, anchor: dict[str, Any]) -> "DynamoQuery":
        self.start_anchor = self._check_anchor(anchor)
        return self

    def end_before(self, anchor: dict[str, Any]) -> "DynamoQuery":
        self.end_anchor = self._check_anchor(anchor)
        return self

    def _check_anchor(self, anchor: dict[str, Any]) -> dict[str, Any]:
        key_fields = self.options.key_fields
        if not isinstance(anchor, dict) or any(name not in anchor for name in key_fields):
            raise QueryNotSupportedError(
                f"Anchor must be a key dict containing {list(key_fields)}",
                field=self.options.sk_name,
            )
        return {name: anchor[name] for name in key_fields}

    # --- EXPRESSION BUILDING ---

    def _check_bounds(self) -> None:
        if self.start_anchor is not None and self.end_anchor is not None:
            raise QueryNotSupportedError(
                "DynamoDB resumes from one key; start_at and end_before cannot be combined",
                field=self.options.sk_name,
            )
        if self.start_anchor is not None and self.from_end:
            raise QueryNotSupportedError(
                "start_at reads forward and cannot be combined with limit_last",
                field=self.options.sk_name,
            )
        if self.end_anchor is not None and not self.from_end:
            raise QueryNotSupportedError(
                "end_before reads backward and needs limit_last",
                field=self.options.sk_name,
            )

    def _key_condition(self) -> Boto3ConditionBase:
        condition: Boto3ConditionBase = Boto3Key(self.options.pk_name).eq(
            self.collection.pk_value
        )
        if self.sort_key_condition is not None:
            condition = condition & self.sort_key_condition
        return condition

    def _base_kwargs(self, scan_forward: bool) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "TableName": self.options.table_name,
            "ScanIndexForward": scan_forward,
        }
        if self.options.index_name:
            kwargs["IndexName"] = self.options.index_name
        return kwargs

    def build_kwargs(self) -> dict[str, Any]:
        """
        Builds the low-level client.query() arguments.

        An end_before anchor becomes the ExclusiveStartKey here. A start_at
        anchor is inclusive and needs the key before it, see execute().
        """
        self._check_bounds()
        # Reading from the end walks the partition in reverse
        kwargs = self._base_kwargs(scan_forward=self.descending == self.from_end)
        kwargs.update(
            compile_query_conditions(
                self._key_condition(),
                combine_conditions(self.filter_conditions),
                self.serializer,
            )
        )
        if self.limit_val:
            kwargs["Limit"] = self.limit_val
        if self.end_anchor is not None:
            kwargs["ExclusiveStartKey"] = self.serializer.to_dynamo(self.end_anchor)
        return kwargs

    def build_preceding_kwargs(self) -> dict[str, Any]:
        """
        Builds the lookup for the key just before the start_at anchor.

        Reads one item backward from the anchor, unfiltered, so the main read
        can resume after it and still include the anchor. The anchor itself
        need not exist anymore.
        """
        kwargs = self._base_kwargs(scan_forward=self.descending)
        kwargs.update(compile_query_conditions(self._key_condition(), None, self.serializer))
        kwargs["Limit"] = 1
        kwargs["ExclusiveStartKey"] = self.serializer.to_dynamo(self.start_anchor or {})
        return kwargs

    # --- EXECUTION ---

    def execute(self) -> Iterator[SourceRecord]:
        """
        Lazy Execution: DynamoDB is queried only when iteration starts.
        Follows LastEvaluatedKey so filtered-out items don't cut a page short.
        """
        if self.limit_val == 0:
            return

        kwargs = self.build_kwargs()
        table = self.options.table_name
        logger.info(
            "Executing paginated query",
            extra={
                "table": table,
                "index": self.options.index_name,
                "pk_hash": redact_key(self.collection.pk_value),
                "has_filter": bool(self.filter_conditions),
                "limit": self.limit_val,
                "from_end": self.from_end,
                "has_start": self.start_anchor is not None,
                "has_end": self.end_anchor is not None,
            },
        )

        client = self.collection.get_client()
        items: list[dict[str, Any]] = []
        with handle_dynamo_errors(table_name=table):
            if self.start_anchor is not None:
                preceding = self._preceding_key(client)
                if preceding is not None:
                    kwargs["ExclusiveStartKey"] = preceding
            while True:
                response = client.query(**kwargs)
                for raw in response.get("Items", []):
                    items.append(self.serializer.from_dynamo(raw))
                    if self.limit_val and len(items) >= self.limit_val:
                        break
                if self.limit_val and len(items) >= self.limit_val:
                    break
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key

        if self.from_end:
            items.reverse()

        logger.debug("Query returned items", extra={"table": table, "count": len(items)})

        for item in items:
            yield SourceRecord(data=item, anchor=self._anchor_for(item), id=self._id_for(item))

    def _preceding_key(self, client: Any) -> dict[str, Any] | None:
        response = client.query(**self.build_preceding_kwargs())
        found = response.get("Items", [])
        if not found:
            # The anchor is the first item of the partition
            return None
        return {name: found[0][name] for name in self.options.key_fields if name in found[0]}

    def _anchor_for(self, item: dict[str, Any]) -> dict[str, Any]:
        return {name: item[name] for name in self.options.key_fields if name in item}

    def _id_for(self, item: dict[str, Any]) -> Any:
        missing = [name for name in self.options.id_fields if name not in item]
        if missing:
            raise ValidationError(
                f"Item in table '{self.options.table_name}' has no id field '{missing[0]}'",
                field=missing[0],
            )
        return self.options.record_id(item)
