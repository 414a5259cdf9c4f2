"""
Error taxonomy for the Book Catalog API

Every error raised by the storage layer, the Catalog Service and the Upload
Pipeline is a CatalogError. Handlers turn them into HTTP responses using the
status_code and error attributes; backend exceptions (botocore ClientError,
OSError) never leave the storage layer unwrapped.
"""

from __future__ import annotations


class CatalogError(Exception):
    status_code = 500
    error = "Internal Server Error"


class ValidationError(CatalogError):
    """Missing or malformed required input."""

    status_code = 400
    error = "Bad Request"


class Unauthorized(CatalogError):
    """Missing or incorrect admin credential."""

    status_code = 403
    error = "Forbidden"


class NotFound(CatalogError):
    """Unknown id, or an id the backend cannot resolve."""

    status_code = 404
    error = "Not Found"


class StorageError(CatalogError):
    """Blob or record backend I/O failure."""

    status_code = 500
    error = "Storage Error"


class BlobCollisionError(StorageError):
    """A generated blob key already exists."""


class OrphanedBlob(StorageError):
    """Blobs were written but the record that references them was not."""

    def __init__(self, message: str, references: list[str]):
        super().__init__(message)
        self.references = references


class DuplicateRecordId(StorageError):
    """A record with the same id is already stored."""
