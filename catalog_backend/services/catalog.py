"""
Catalog Service: create, list and get books

Written against the BlobStore/RecordStore interfaces only. Every call reads
from the record store; nothing is cached here.
"""

from __future__ import annotations

import logging

from catalog_backend.errors import NotFound
from catalog_backend.models import BookFilter, BookRecord, BookSubmission
from catalog_backend.services.upload import UploadPipeline
from catalog_backend.storage.mode import Backends

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(self, backends: Backends):
        self.backends = backends
        self.pipeline = UploadPipeline(backends.blob_store, backends.record_store)

    def create(self, submission: BookSubmission) -> BookRecord:
        """
        Store the submitted files and persist a new record.

        Raises:
            ValidationError: Missing title, author or book file
            StorageError: Blob or record write failed
        """
        return self.pipeline.run(submission)

    def list(self, book_filter: BookFilter | None = None) -> list[BookRecord]:
        """Return records matching every given filter field, newest first."""
        book_filter = book_filter or BookFilter()
        if book_filter.unsatisfiable:
            return []
        return self.backends.record_store.query(book_filter)

    def get(self, record_id: str) -> BookRecord:
        """
        Look up one record.

        Raises:
            NotFound: Unknown id, or an id the backend cannot interpret
        """
        if not isinstance(record_id, str) or not record_id.strip():
            raise NotFound(f'Book "{record_id}" not found')
        try:
            return self.backends.record_store.get_by_id(record_id)
        except NotFound:
            logger.warning(f"Book not found: {record_id}")
            raise
        except (TypeError, ValueError) as e:
            logger.warning(f"Unresolvable book id {record_id!r}: {str(e)}")
            raise NotFound(f'Book "{record_id}" not found') from e
