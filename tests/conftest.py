"""
Shared pytest fixtures and configuration for Dynapage tests.

This module provides common fixtures used across unit and integration tests:
ranked in-memory records, a page recorder subscriber, a mocked boto3 client
and LocalStack clients.
"""

import os
import socket
from typing import Any
from unittest.mock import MagicMock
from urllib.parse import urlparse

import boto3
import pytest

from dynapage import MemoryCollection, Page, Paginator


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests with mocked dependencies")
    config.addinivalue_line("markers", "integration: Integration tests against LocalStack")


class PageRecorder:
    """Subscriber that keeps every emitted page and error."""

    def __init__(self) -> None:
        self.pages: list[Page[Any]] = []
        self.errors: list[Exception] = []

    def __call__(self, page: Page[Any]) -> None:
        self.pages.append(page)

    def on_error(self, error: Exception) -> None:
        self.errors.append(error)

    @property
    def last(self) -> Page[Any]:
        return self.pages[-1]

    @property
    def actions(self) -> list[str]:
        return [page.action.value for page in self.pages]

    def visible_ids(self, index: int = -1) -> list[Any]:
        return [item.id for item in self.pages[index].visible_items]

    def all_ids(self, index: int = -1) -> list[Any]:
        return [item.id for item in self.pages[index].items]


def make_ranked(count: int) -> list[dict[str, Any]]:
    """Records r1..rN with rank 1..N, alternating between group a and b."""
    return [
        {"id": f"r{i}", "rank": i, "group": "a" if i % 2 else "b", "tags": [f"t{i % 3}"]}
        for i in range(1, count + 1)
    ]


@pytest.fixture
def ranked_records() -> list[dict[str, Any]]:
    """Twelve records ordered by rank."""
    return make_ranked(12)


@pytest.fixture
def collection(ranked_records) -> MemoryCollection:
    return MemoryCollection(ranked_records)


@pytest.fixture
def recorder() -> PageRecorder:
    return PageRecorder()


@pytest.fixture
def paginator(collection, recorder) -> Paginator:
    """Page size 5 over twelve records, rank ascending, already subscribed."""
    pager: Paginator = Paginator(collection, page_size=5, sort=[("rank", "asc")])
    pager.subscribe(recorder, recorder.on_error)
    return pager


@pytest.fixture
def mock_client():
    """
    Creates a fully mocked boto3 DynamoDB client.

    Queries return an empty, final response until a test configures them.
    """
    client = MagicMock()
    client.query.return_value = {"Items": []}
    return client


# Integration Test Fixtures


@pytest.fixture(scope="session")
def localstack_endpoint() -> str:
    """Get LocalStack endpoint URL from environment or default."""
    return os.getenv("LOCALSTACK_ENDPOINT", "http://localhost:4566")


@pytest.fixture(scope="session")
def localstack_client(localstack_endpoint: str):
    """
    Creates a boto3 client connected to LocalStack.

    Skips the requesting test when nothing listens on the endpoint.
    """
    parsed = urlparse(localstack_endpoint)
    try:
        with socket.create_connection((parsed.hostname, parsed.port or 80), timeout=1):
            pass
    except OSError:
        pytest.skip(f"LocalStack not reachable at {localstack_endpoint}")

    return boto3.client(
        "dynamodb",
        endpoint_url=localstack_endpoint,
        region_name="eu-south-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )


@pytest.fixture(scope="session")
def localstack_helper(localstack_client, localstack_endpoint: str):
    """Provides a LocalStackHelper instance for integration tests."""
    from tests.helpers.localstack import LocalStackHelper

    return LocalStackHelper(endpoint_url=localstack_endpoint)
