from .actions import FilterEntry, NavigationAction, SortEntry
from .channel import ActionChannel
from .config import DynamoSourceOptions
from .dynamo import DynamoCollection, DynamoQuery
from .exceptions import (
    DynamoSerializationError,
    DynapageError,
    InvalidPageSizeError,
    ProvisionedThroughputExceededError,
    QueryNotSupportedError,
    RequestTimeoutError,
    TableNotFoundError,
    ValidationError,
)
from .memory import MemoryCollection, MemoryQuery
from .pagination import Page, PageItem
from .paginator import Paginator, Subscription
from .processor import PageAnalysis, process_page
from .query import build_query
from .source import Collection, CollectionQuery, SourceRecord
from .state import NavigationSnapshot, NavigationState, PaginatorState

__all__ = [
    "Paginator",
    "Subscription",
    "Page",
    "PageItem",
    "NavigationAction",
    "SortEntry",
    "FilterEntry",
    # State
    "PaginatorState",
    "NavigationState",
    "NavigationSnapshot",
    # Engine parts
    "ActionChannel",
    "build_query",
    "process_page",
    "PageAnalysis",
    # Data sources
    "Collection",
    "CollectionQuery",
    "SourceRecord",
    "MemoryCollection",
    "MemoryQuery",
    "DynamoCollection",
    "DynamoQuery",
    "DynamoSourceOptions",
    # Exceptions
    "DynapageError",
    "InvalidPageSizeError",
    "QueryNotSupportedError",
    "TableNotFoundError",
    "ProvisionedThroughputExceededError",
    "RequestTimeoutError",
    "ValidationError",
    "DynamoSerializationError",
]
