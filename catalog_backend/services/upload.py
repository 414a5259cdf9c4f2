"""
Upload pipeline for new books

Linear; the only retry is drawing a new record id when the generated one is
already taken:

    RECEIVED -> VALIDATED -> BLOBS_STORED -> RECORD_PERSISTED -> DONE

FAILED is reachable from every step. Validation happens before any storage
side effect; a blob failure stops before the record is written. Blobs that
were written for a record that never got persisted are logged as orphaned
and left in place.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from catalog_backend.config import MAX_DESCRIPTION_LENGTH, MAX_STRING_LENGTH
from catalog_backend.errors import DuplicateRecordId, OrphanedBlob, StorageError, ValidationError
from catalog_backend.models import (
    BookRecord,
    BookSubmission,
    UploadedFile,
    clean_optional,
    new_record_id,
    parse_subjects,
    parse_year,
    utc_timestamp,
)
from catalog_backend.storage.blob_store import BlobStore
from catalog_backend.storage.record_store import RecordStore

logger = logging.getLogger(__name__)

# New ids drawn when a store reports the generated id as taken
MAX_ID_ATTEMPTS = 3


class UploadState(Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    BLOBS_STORED = "blobs_stored"
    RECORD_PERSISTED = "record_persisted"
    DONE = "done"
    FAILED = "failed"


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def parse_submission(form: Mapping[str, Sequence[Any]]) -> BookSubmission:
    """
    Build a BookSubmission from a parsed multipart form.

    Args:
        form: Field name -> list of values (str for text fields,
              UploadedFile for file fields)

    Returns:
        BookSubmission: Raw, unvalidated inputs
    """
    subjects = form.get("subjects")
    if subjects is not None and len(subjects) == 1:
        subjects = subjects[0]

    book_file = _first(form.get("bookFile"))
    cover_image = _first(form.get("coverImage"))

    return BookSubmission(
        title=_first(form.get("title")),
        author=_first(form.get("author")),
        description=_first(form.get("description")),
        language=_first(form.get("language")),
        year=_first(form.get("year")),
        subjects=subjects,
        book_file=book_file if isinstance(book_file, UploadedFile) else None,
        cover_image=cover_image if isinstance(cover_image, UploadedFile) else None,
    )


def _required_text(value: Any, field: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f'Field "{field}" is required')
    if len(text) > MAX_STRING_LENGTH:
        raise ValidationError(f'Field "{field}" exceeds maximum length of {MAX_STRING_LENGTH}')
    return text


class UploadAttempt:
    """One run of the pipeline for one submission."""

    def __init__(self, pipeline: "UploadPipeline", submission: BookSubmission):
        self.pipeline = pipeline
        self.submission = submission
        self.state = UploadState.RECEIVED
        self.stored_references: list[str] = []
        self.record: BookRecord | None = None

        # Filled in by validate()
        self.title = ""
        self.author = ""
        self.description: str | None = None
        self.language: str | None = None
        self.year: int | None = None
        self.subjects: list[str] = []
        self.book_file: UploadedFile | None = None

        # Filled in by store_blobs()
        self.file_url = ""
        self.cover_url: str | None = None

    def _advance(self, state: UploadState) -> None:
        logger.info(f"Upload {self.state.value} -> {state.value}")
        self.state = state

    def validate(self) -> None:
        submission = self.submission
        self.title = _required_text(submission.title, "title")
        self.author = _required_text(submission.author, "author")

        if submission.book_file is None or submission.book_file.is_empty:
            raise ValidationError("Book file is required")
        self.book_file = submission.book_file

        self.description = clean_optional(submission.description)
        if self.description and len(self.description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                f'Field "description" exceeds maximum length of {MAX_DESCRIPTION_LENGTH}'
            )
        self.language = clean_optional(submission.language)
        if self.language and len(self.language) > MAX_STRING_LENGTH:
            raise ValidationError(f'Field "language" exceeds maximum length of {MAX_STRING_LENGTH}')

        self.year = parse_year(submission.year)
        self.subjects = parse_subjects(submission.subjects)

    def store_blobs(self) -> None:
        if self.book_file is None:
            raise ValidationError("Book file is required")
        blob_store = self.pipeline.blob_store
        book_file = self.book_file

        self.file_url = blob_store.put(book_file.filename, book_file.content, book_file.content_type)
        self.stored_references.append(self.file_url)

        cover = self.submission.cover_image
        if cover is not None and not cover.is_empty:
            self.cover_url = blob_store.put(cover.filename, cover.content, cover.content_type)
            self.stored_references.append(self.cover_url)

    def _build_record(self) -> BookRecord:
        return BookRecord(
            id=new_record_id(),
            title=self.title,
            author=self.author,
            description=self.description,
            language=self.language,
            year=self.year,
            subjects=tuple(self.subjects),
            file_url=self.file_url,
            cover_image=self.cover_url,
            uploaded_at=utc_timestamp(),
        )

    def persist_record(self) -> BookRecord:
        """
        Write the record, drawing a new id when another writer already took
        the generated one (at most MAX_ID_ATTEMPTS times).
        """
        record_store = self.pipeline.record_store
        try:
            for attempt in range(1, MAX_ID_ATTEMPTS + 1):
                record = self._build_record()
                try:
                    self.record = record_store.insert(record)
                    return self.record
                except DuplicateRecordId:
                    if attempt == MAX_ID_ATTEMPTS:
                        raise
                    logger.warning(f"Record id {record.id} already taken, retrying with a new id")
        except StorageError as e:
            logger.error(
                f"Orphaned blobs after failed record save: {', '.join(self.stored_references)}"
            )
            raise OrphanedBlob(str(e), list(self.stored_references)) from e
        raise StorageError("Failed to save book record")

    def run(self) -> BookRecord:
        try:
            self.validate()
            self._advance(UploadState.VALIDATED)
            self.store_blobs()
            self._advance(UploadState.BLOBS_STORED)
            record = self.persist_record()
            self._advance(UploadState.RECORD_PERSISTED)
        except Exception as e:
            if self.stored_references and not isinstance(e, OrphanedBlob):
                logger.error(f"Orphaned blobs after failed upload: {', '.join(self.stored_references)}")
            logger.warning(f"Upload failed after {self.state.value}: {str(e)}")
            self.state = UploadState.FAILED
            raise

        self._advance(UploadState.DONE)
        logger.info(f"Created book {record.id}: {record.title}")
        return record


class UploadPipeline:
    def __init__(self, blob_store: BlobStore, record_store: RecordStore):
        self.blob_store = blob_store
        self.record_store = record_store

    def start(self, submission: BookSubmission) -> UploadAttempt:
        return UploadAttempt(self, submission)

    def run(self, submission: BookSubmission) -> BookRecord:
        return self.start(submission).run()
