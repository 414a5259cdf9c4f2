"""
DynamoDB utilities for the Book Catalog API

Provides functions for converting book records to and from DynamoDB items
and for building scan filter expressions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import Attr, ConditionBase

from catalog_backend.models import BookFilter, BookRecord
from catalog_backend.utils.response import convert_decimal

if TYPE_CHECKING:
    from mypy_boto3_dynamodb.service_resource import Table

# Lowercased copies of title/author used for case-insensitive search
SEARCH_ATTRIBUTES = {"title": "titleSearch", "author": "authorSearch"}


def record_to_item(record: BookRecord) -> dict[str, Any]:
    """
    Convert a BookRecord to a DynamoDB item.

    None-valued optional attributes are left out of the item.

    Example:
        item = record_to_item(record)
        # {"id": "1718000000000", "title": "Dune", "titleSearch": "dune", ...}
    """
    item = {key: value for key, value in record.to_dict().items() if value is not None}
    for field, search_attr in SEARCH_ATTRIBUTES.items():
        item[search_attr] = item[field].lower()
    return item


def item_to_record(item: dict[str, Any]) -> BookRecord:
    """Convert a DynamoDB item back to a BookRecord."""
    data = {
        key: convert_decimal(value)
        for key, value in item.items()
        if key not in SEARCH_ATTRIBUTES.values()
    }
    data["subjects"] = [str(subject) for subject in data.get("subjects") or []]
    return BookRecord.from_dict(data)


def build_filter_expression(book_filter: BookFilter) -> ConditionBase | None:
    """
    Build a scan FilterExpression from a BookFilter.

    Args:
        book_filter: Filter to translate

    Returns:
        ConditionBase: ANDed conditions, or None when the filter is empty

    Example:
        expr = build_filter_expression(BookFilter(search="war", year=2000))
        # (contains(titleSearch, "war") OR contains(authorSearch, "war")) AND year = 2000
    """
    conditions: list[ConditionBase] = []

    if book_filter.search:
        needle = book_filter.search.lower()
        conditions.append(
            Attr(SEARCH_ATTRIBUTES["title"]).contains(needle)
            | Attr(SEARCH_ATTRIBUTES["author"]).contains(needle)
        )
    if book_filter.language:
        conditions.append(Attr("language").eq(book_filter.language))
    if book_filter.year is not None:
        conditions.append(Attr("year").eq(book_filter.year))
    if book_filter.subject:
        # contains() on a list attribute is a membership test
        conditions.append(Attr("subjects").contains(book_filter.subject))

    if not conditions:
        return None

    expression = conditions[0]
    for condition in conditions[1:]:
        expression = expression & condition
    return expression


def scan_all(table: "Table", **scan_kwargs: Any) -> list[dict[str, Any]]:
    """Scan a table, following LastEvaluatedKey pagination."""
    response = table.scan(**scan_kwargs)
    items = response.get("Items", [])

    while "LastEvaluatedKey" in response:
        response = table.scan(ExclusiveStartKey=response["LastEvaluatedKey"], **scan_kwargs)
        items.extend(response.get("Items", []))

    return items
