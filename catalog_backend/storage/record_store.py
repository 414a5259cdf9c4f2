"""
Record stores for book metadata

Two implementations of the same capability set:
- JsonRecordStore: the whole catalog in one JSON file, filtered in memory
- DynamoDBRecordStore: one item per book in a DynamoDB table

Given the same records and the same BookFilter, both return the same
records in the same order.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError

from catalog_backend.errors import DuplicateRecordId, NotFound, StorageError
from catalog_backend.models import BookFilter, BookRecord, sort_newest_first
from catalog_backend.utils.dynamodb import (
    build_filter_expression,
    item_to_record,
    record_to_item,
    scan_all,
)

if TYPE_CHECKING:
    from mypy_boto3_dynamodb.service_resource import Table

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Owns the authoritative collection of book records."""

    @abstractmethod
    def insert(self, record: BookRecord) -> BookRecord:
        """
        Persist a new record.

        Raises:
            StorageError: If the record cannot be written or its id exists
        """

    @abstractmethod
    def query(self, book_filter: BookFilter) -> list[BookRecord]:
        """Return matching records, newest first."""

    @abstractmethod
    def get_by_id(self, record_id: str) -> BookRecord:
        """
        Look up a record by id.

        Raises:
            NotFound: If no record has this id, or the id is malformed
        """


class JsonRecordStore(RecordStore):
    """
    Catalog kept as a JSON array in a single file.

    Every insert reads the whole file and rewrites it. Writers are serialized
    with an in-process lock; readers never take it. The lock does not protect
    against other processes writing the same file.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._write_lock = threading.Lock()

    def ensure_file(self) -> None:
        """Create the parent directory and an empty catalog if missing."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._write([])
            logger.info(f"Created empty catalog at {self.path}")

    def _read(self) -> list[BookRecord]:
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error reading catalog {self.path}: {str(e)}", exc_info=True)
            raise StorageError("Failed to read book catalog") from e

        if not isinstance(raw, list):
            logger.error(f"Catalog {self.path} is not a JSON array")
            raise StorageError("Failed to read book catalog")
        return [BookRecord.from_dict(entry) for entry in raw]

    def _write(self, records: list[BookRecord]) -> None:
        payload = json.dumps([record.to_dict() for record in records], indent=2)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_path, self.path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error(f"Error writing catalog {self.path}: {str(e)}", exc_info=True)
            raise StorageError("Failed to save book catalog") from e

    def insert(self, record: BookRecord) -> BookRecord:
        with self._write_lock:
            records = self._read()
            if any(existing.id == record.id for existing in records):
                logger.error(f"Duplicate record id: {record.id}")
                raise DuplicateRecordId(f'Book "{record.id}" already exists')
            records.append(record)
            self._write(records)

        logger.info(f"Saved book {record.id} to {self.path} ({len(records)} total)")
        return record

    def query(self, book_filter: BookFilter) -> list[BookRecord]:
        records = [record for record in self._read() if book_filter.matches(record)]
        return sort_newest_first(records)

    def get_by_id(self, record_id: str) -> BookRecord:
        for record in self._read():
            if record.id == record_id:
                return record
        raise NotFound(f'Book "{record_id}" not found')


class DynamoDBRecordStore(RecordStore):
    def __init__(self, table: "Table"):
        self.table = table

    def insert(self, record: BookRecord) -> BookRecord:
        try:
            self.table.put_item(
                Item=record_to_item(record),
                ConditionExpression="attribute_not_exists(id)",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":  # type: ignore[typeddict-item]
                logger.error(f"Duplicate record id: {record.id}")
                raise DuplicateRecordId(f'Book "{record.id}" already exists') from e
            logger.error(f"Error adding book to DynamoDB: {str(e)}", exc_info=True)
            raise StorageError("Failed to save book record") from e
        except BotoCoreError as e:
            logger.error(f"Error adding book to DynamoDB: {str(e)}", exc_info=True)
            raise StorageError("Failed to save book record") from e

        logger.info(f"Successfully added book to DynamoDB: {record.id}")
        return record

    def query(self, book_filter: BookFilter) -> list[BookRecord]:
        if book_filter.unsatisfiable:
            return []

        scan_kwargs: dict[str, Any] = {}
        expression = build_filter_expression(book_filter)
        if expression is not None:
            scan_kwargs["FilterExpression"] = expression

        try:
            items = scan_all(self.table, **scan_kwargs)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error scanning books: {str(e)}", exc_info=True)
            raise StorageError("Failed to list books") from e

        logger.info(f"Retrieved {len(items)} books from DynamoDB")

        # Scan order is arbitrary; ids increase with creation time, so ordering
        # by id first reproduces insertion order for equal timestamps.
        records = sorted((item_to_record(item) for item in items), key=lambda r: (len(r.id), r.id))
        return sort_newest_first(records)

    def get_by_id(self, record_id: str) -> BookRecord:
        try:
            response = self.table.get_item(Key={"id": record_id})
        except ClientError as e:
            if e.response["Error"]["Code"] == "ValidationException":  # type: ignore[typeddict-item]
                # Empty or oversized keys are rejected by DynamoDB itself
                logger.warning(f"Malformed book id: {record_id!r}")
                raise NotFound(f'Book "{record_id}" not found') from e
            logger.error(f"DynamoDB error: {str(e)}", exc_info=True)
            raise StorageError("Failed to fetch book") from e
        except BotoCoreError as e:
            logger.error(f"DynamoDB error: {str(e)}", exc_info=True)
            raise StorageError("Failed to fetch book") from e

        if "Item" not in response:
            raise NotFound(f'Book "{record_id}" not found')
        return item_to_record(response["Item"])
