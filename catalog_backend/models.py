"""
Book record, filter and submission types for the Book Catalog API

The JSON form of a record uses camelCase keys (fileUrl, coverImage,
uploadedAt); the dataclasses use snake_case attributes.
"""

from __future__ import annotations

import random
import re
import threading
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

# Years are stored as DynamoDB Numbers; anything past nine digits is not a year
MAX_YEAR_DIGITS = 9
_YEAR_PATTERN = re.compile(r"\s*([+-]?\d{1,9})(?!\d)")

# Random digits appended to the millisecond clock
ID_SUFFIX_DIGITS = 3

_id_lock = threading.Lock()
_last_id = 0


def new_record_id() -> str:
    """
    Generate a record id: the current time in milliseconds followed by
    ID_SUFFIX_DIGITS random digits.

    Ids are strictly increasing within a process. The random tail keeps
    separate processes (warm Lambda containers) from handing out the same id
    in the same millisecond; stores still reject a duplicate id, which the
    upload pipeline answers by drawing a new one.
    """
    global _last_id

    scale = 10**ID_SUFFIX_DIGITS
    with _id_lock:
        candidate = int(time.time() * 1000) * scale + random.randrange(scale)
        candidate = max(candidate, _last_id + 1)
        _last_id = candidate
    return str(candidate)


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_year(value: Any) -> int | None:
    """
    Parse a year from a form or query value.

    Takes the leading integer of a string ("2000", " 2001 ", "2000-ish").
    Anything else, including integers longer than MAX_YEAR_DIGITS, is None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if abs(value) < 10**MAX_YEAR_DIGITS else None
    match = _YEAR_PATTERN.match(str(value))
    return int(match.group(1)) if match else None


def parse_subjects(value: str | Iterable[str] | None) -> list[str]:
    """
    Normalize subjects given as a comma-separated string or a sequence.

    Elements are trimmed and empty elements dropped; order is kept.
    """
    if value is None:
        return []
    if isinstance(value, str):
        parts: Iterable[str] = value.split(",")
    else:
        parts = value
    return [str(part).strip() for part in parts if str(part).strip()]


def clean_optional(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _timestamp_key(record: "BookRecord") -> datetime:
    try:
        parsed = datetime.fromisoformat(record.uploaded_at)
    except ValueError:
        return datetime.min.replace(tzinfo=UTC)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def sort_newest_first(records: Iterable["BookRecord"]) -> list["BookRecord"]:
    """
    Order records by uploadedAt descending.

    The sort is stable: records with equal timestamps keep their incoming
    order.
    """
    return sorted(records, key=_timestamp_key, reverse=True)


@dataclass(frozen=True)
class BookRecord:
    id: str
    title: str
    author: str
    file_url: str
    uploaded_at: str
    description: str | None = None
    language: str | None = None
    year: int | None = None
    subjects: tuple[str, ...] = ()
    cover_image: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the API/JSON form."""
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "description": self.description,
            "language": self.language,
            "year": self.year,
            "subjects": list(self.subjects),
            "fileUrl": self.file_url,
            "coverImage": self.cover_image,
            "uploadedAt": self.uploaded_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BookRecord":
        """
        Build a record from its JSON form.

        Accepts the legacy "_id" key written by older embedded catalogs.
        """
        record_id = data.get("id") or data.get("_id")
        return cls(
            id=str(record_id),
            title=str(data.get("title") or ""),
            author=str(data.get("author") or ""),
            file_url=str(data.get("fileUrl") or ""),
            uploaded_at=str(data.get("uploadedAt") or ""),
            description=data.get("description"),
            language=data.get("language"),
            year=parse_year(data.get("year")),
            subjects=tuple(data.get("subjects") or ()),
            cover_image=data.get("coverImage"),
        )


@dataclass(frozen=True)
class BookFilter:
    """
    Sparse listing filter. Absent fields impose no constraint; present fields
    are ANDed together.
    """

    search: str | None = None
    language: str | None = None
    year: int | None = None
    subject: str | None = None
    # A year was requested but could not be parsed; nothing can match.
    unsatisfiable: bool = False

    @classmethod
    def from_query_params(cls, params: Mapping[str, str] | None) -> "BookFilter":
        params = params or {}
        raw_year = params.get("year") or None
        year = parse_year(raw_year)
        return cls(
            search=params.get("search") or None,
            language=params.get("language") or None,
            year=year,
            subject=params.get("subject") or None,
            unsatisfiable=raw_year is not None and year is None,
        )

    @property
    def is_empty(self) -> bool:
        return not (self.search or self.language or self.year is not None or self.subject)

    def matches(self, record: BookRecord) -> bool:
        """Evaluate the filter against a record in memory."""
        if self.unsatisfiable:
            return False
        if self.search:
            needle = self.search.lower()
            if needle not in record.title.lower() and needle not in record.author.lower():
                return False
        if self.language and record.language != self.language:
            return False
        if self.year is not None and record.year != self.year:
            return False
        if self.subject and self.subject not in record.subjects:
            return False
        return True


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def is_empty(self) -> bool:
        return not self.filename and not self.content


@dataclass
class BookSubmission:
    """Raw create inputs, before validation."""

    title: str | None = None
    author: str | None = None
    description: str | None = None
    language: str | None = None
    year: str | int | None = None
    subjects: str | Sequence[str] | None = None
    book_file: UploadedFile | None = None
    cover_image: UploadedFile | None = None
