"""
Shared fixtures: embedded and managed backends, a fake DynamoDB table and
multipart request builders.
"""

import base64
import copy
from decimal import Decimal
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from catalog_backend.config import Settings
from catalog_backend.models import BookSubmission, UploadedFile
from catalog_backend.runtime import build_runtime
from catalog_backend.services.catalog import CatalogService
from catalog_backend.storage.mode import select_mode

BOUNDARY = "----catalogtestboundary7MA4YWxk"


def _client_error(code, operation):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def _to_dynamodb(value):
    """Mimic boto3 deserialization: numbers come back as Decimal."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, list):
        return [_to_dynamodb(v) for v in value]
    return value


def _evaluate(condition, item):
    """Evaluate a boto3.dynamodb.conditions expression against an item."""
    expression = condition.get_expression()
    operator = expression["operator"]
    values = expression["values"]

    if operator == "AND":
        return all(_evaluate(value, item) for value in values)
    if operator == "OR":
        return any(_evaluate(value, item) for value in values)

    attribute, operand = values
    actual = item.get(attribute.name)
    if operator == "=":
        return actual is not None and actual == operand
    if operator == "contains":
        return actual is not None and operand in actual
    raise NotImplementedError(operator)


class FakeBooksTable:
    """
    In-memory stand-in for a DynamoDB Table resource.

    Scan returns items newest-inserted first (DynamoDB gives no ordering) and
    pages every `page_size` items.
    """

    def __init__(self, page_size=2):
        self.items = {}
        self.page_size = page_size
        self.scan_calls = []

    def put_item(self, Item, ConditionExpression=None):
        if ConditionExpression == "attribute_not_exists(id)" and Item["id"] in self.items:
            raise _client_error("ConditionalCheckFailedException", "PutItem")
        self.items[Item["id"]] = {key: _to_dynamodb(value) for key, value in Item.items()}
        return {}

    def get_item(self, Key):
        if not Key["id"]:
            raise _client_error("ValidationException", "GetItem")
        item = self.items.get(Key["id"])
        return {"Item": copy.deepcopy(item)} if item is not None else {}

    def scan(self, FilterExpression=None, ExclusiveStartKey=None):
        self.scan_calls.append({"FilterExpression": FilterExpression, "ExclusiveStartKey": ExclusiveStartKey})
        ordered = list(reversed(list(self.items.values())))
        start = ExclusiveStartKey["offset"] if ExclusiveStartKey else 0
        page = ordered[start:start + self.page_size]

        response = {
            "Items": [
                copy.deepcopy(item)
                for item in page
                if FilterExpression is None or _evaluate(FilterExpression, item)
            ]
        }
        if start + self.page_size < len(ordered):
            response["LastEvaluatedKey"] = {"offset": start + self.page_size}
        return response


@pytest.fixture
def embedded_settings(tmp_path):
    return Settings(data_dir=tmp_path / "data", uploads_dir=tmp_path / "uploads")


@pytest.fixture
def managed_settings(tmp_path):
    return Settings(
        books_table="Books",
        bucket_name="test-bucket",
        aws_region="us-east-2",
        data_dir=tmp_path / "data",
        uploads_dir=tmp_path / "uploads",
    )


@pytest.fixture
def books_table():
    return FakeBooksTable()


@pytest.fixture
def s3_client():
    client = Mock()
    client.put_object.return_value = {}
    return client


@pytest.fixture
def embedded_backends(embedded_settings):
    return select_mode(embedded_settings)


@pytest.fixture
def managed_backends(managed_settings, books_table, s3_client):
    dynamodb = Mock()
    dynamodb.Table.return_value = books_table
    return select_mode(managed_settings, s3_client=s3_client, dynamodb=dynamodb)


@pytest.fixture(params=["embedded", "managed"])
def backends(request):
    """Run a test once per storage mode."""
    return request.getfixturevalue(f"{request.param}_backends")


@pytest.fixture
def catalog(backends):
    return CatalogService(backends)


@pytest.fixture
def embedded_runtime(embedded_settings):
    return build_runtime(embedded_settings)


def make_submission(**overrides):
    fields = {
        "title": "The Great War",
        "author": "Jane Historian",
        "description": "A history of the war.",
        "language": "en",
        "year": "2000",
        "subjects": "history, war",
        "book_file": UploadedFile("great-war.pdf", b"%PDF-1.4 book", "application/pdf"),
        "cover_image": None,
    }
    fields.update(overrides)
    return BookSubmission(**fields)


def build_multipart(fields=(), files=()):
    """
    Build a multipart/form-data body.

    Args:
        fields: (name, value) pairs
        files: (name, filename, content, content_type) tuples

    Returns:
        tuple: (body bytes, content type header)
    """
    body = b""
    for name, value in fields:
        body += (
            f"--{BOUNDARY}\r\n"
            f'Content-Disposition: form-data; name="{name}"\r\n\r\n'
            f"{value}\r\n"
        ).encode("utf-8")
    for name, filename, content, content_type in files:
        body += (
            f"--{BOUNDARY}\r\n"
            f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
            f"Content-Type: {content_type}\r\n\r\n"
        ).encode("utf-8")
        body += content + b"\r\n"
    body += f"--{BOUNDARY}--\r\n".encode("utf-8")
    return body, f"multipart/form-data; boundary={BOUNDARY}"


def create_upload_event(fields=(), files=(), token="admin-secret-access", header_name="x-admin-token"):
    """Create a mock API Gateway event for POST /api/books (base64 body)."""
    body, content_type = build_multipart(fields, files)
    headers = {"Content-Type": content_type}
    if token is not None:
        headers[header_name] = token
    return {
        "httpMethod": "POST",
        "path": "/api/books",
        "headers": headers,
        "body": base64.b64encode(body).decode("ascii"),
        "isBase64Encoded": True,
    }
