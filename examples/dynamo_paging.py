"""
Example: paging through a DynamoDB partition.

Requires a table "messages" with partition key "room_id" (S) and sort key
"sent_at" (S). Point AWS_ENDPOINT_URL at LocalStack to try it locally.
"""

import os

import boto3

from dynapage import DynamoCollection, DynamoSourceOptions, DynapageError, Page, Paginator

client = boto3.client(
    "dynamodb",
    endpoint_url=os.getenv("AWS_ENDPOINT_URL", "http://localhost:4566"),
    region_name="eu-south-1",
    aws_access_key_id="test",
    aws_secret_access_key="test",
)

options = DynamoSourceOptions(table_name="messages", pk_name="room_id", sk_name="sent_at")
messages = DynamoCollection(options, pk_value="general", client=client)


def show(page: Page) -> None:
    for item in page.visible_items:
        print(item.data["sent_at"], item.data.get("content", ""))
    print(f"-- has previous: {page.has_previous}, has next: {page.has_next}")


def fail(error: Exception) -> None:
    if isinstance(error, DynapageError):
        print("DynamoDB query failed:", error.message)
    else:
        raise error


# Newest first, only messages that have likes
paginator = Paginator(
    messages,
    page_size=10,
    sort=[("sent_at", "desc")],
    filter=[("likes", ">", 0)],
)
paginator.subscribe(show, on_error=fail)

while paginator.next_enabled:
    paginator.next()
