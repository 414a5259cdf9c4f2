"""
Storage mode selection

Picks one (BlobStore, RecordStore) pair at startup:
- managed: DynamoDB table + S3 bucket, when both are configured
- embedded: JSON catalog file + local uploads directory, otherwise
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from catalog_backend import config
from catalog_backend.storage.blob_store import BlobStore, LocalBlobStore, S3BlobStore
from catalog_backend.storage.record_store import DynamoDBRecordStore, JsonRecordStore, RecordStore

if TYPE_CHECKING:
    from catalog_backend.config import Settings

logger = logging.getLogger(__name__)

EMBEDDED = "embedded"
MANAGED = "managed"


@dataclass(frozen=True)
class Backends:
    mode: str
    blob_store: BlobStore
    record_store: RecordStore


def select_mode(settings: "Settings", s3_client: Any = None, dynamodb: Any = None) -> Backends:
    """
    Build the storage backends for this process.

    Managed mode needs every one of its settings (table and bucket); with any
    of them missing the whole process runs in embedded mode.

    Args:
        settings: Process configuration
        s3_client: Optional pre-built S3 client (managed mode)
        dynamodb: Optional pre-built DynamoDB resource (managed mode)

    Returns:
        Backends: The selected mode and its stores
    """
    if settings.managed:
        if s3_client is None:
            s3_client = config.create_s3_client(settings)
        if dynamodb is None:
            dynamodb = config.create_dynamodb_resource(settings)

        logger.info(
            f"Starting in managed mode (DynamoDB table {settings.books_table}, "
            f"S3 bucket {settings.bucket_name})"
        )
        return Backends(
            mode=MANAGED,
            blob_store=S3BlobStore(
                s3_client,
                bucket=settings.bucket_name,
                region=settings.aws_region,
                prefix=settings.uploads_prefix,
                public_base_url=settings.public_base_url,
            ),
            record_store=DynamoDBRecordStore(dynamodb.Table(settings.books_table)),
        )

    blob_store = LocalBlobStore(settings.uploads_dir, url_prefix=config.UPLOADS_ROUTE)
    record_store = JsonRecordStore(settings.catalog_file)
    blob_store.ensure_directory()
    record_store.ensure_file()

    logger.info(
        f"Starting in embedded mode (catalog {settings.catalog_file}, "
        f"uploads {settings.uploads_dir})"
    )
    return Backends(mode=EMBEDDED, blob_store=blob_store, record_store=record_store)
