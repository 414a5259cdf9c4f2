"""
Blob stores for book files and cover images

Two implementations of the same capability set:
- LocalBlobStore: files in a local directory, referenced as /uploads/<key>
- S3BlobStore: objects in an S3 bucket, referenced by absolute URL
"""

from __future__ import annotations

import logging
import mimetypes
import os
import random
import re
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from catalog_backend.errors import BlobCollisionError, NotFound, StorageError

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client

logger = logging.getLogger(__name__)

_EXTENSION_PATTERN = re.compile(r"^\.[A-Za-z0-9]{1,16}$")
_KEY_PATTERN = re.compile(r"^\d+-\d+(\.[A-Za-z0-9]{1,16})?$")


def generate_blob_key(filename: str) -> str:
    """
    Build a storage key of the form <epoch-ms>-<random><ext>.

    The original extension is kept so consumers can infer the content type;
    extensions that are not a plain alphanumeric suffix are dropped.

    Example:
        generate_blob_key("War and Peace.epub")  # "1718000000000-482913775.epub"
    """
    extension = os.path.splitext(os.path.basename(filename or ""))[1]
    if not _EXTENSION_PATTERN.match(extension):
        extension = ""
    suffix = random.randint(0, 999_999_999)
    return f"{int(time.time() * 1000)}-{suffix}{extension}"


def is_blob_key(name: str) -> bool:
    return bool(_KEY_PATTERN.match(name or ""))


class BlobStore(ABC):
    """Persists opaque payloads and returns a client-dereferenceable reference."""

    @abstractmethod
    def put(self, name: str, data: bytes, content_type: str) -> str:
        """
        Store a payload under a freshly generated key.

        Args:
            name: Original filename (used for its extension only)
            data: Payload bytes
            content_type: MIME type of the payload

        Returns:
            str: Reference a client can fetch directly

        Raises:
            BlobCollisionError: If the generated key already exists
            StorageError: If the write fails
        """

    @abstractmethod
    def read(self, key: str) -> tuple[bytes, str]:
        """
        Read a stored payload back for serving.

        Returns:
            tuple: (payload, content_type)

        Raises:
            NotFound: If the key is unknown or not served by this store
        """


class LocalBlobStore(BlobStore):
    def __init__(self, root: Path, url_prefix: str = "/uploads"):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def ensure_directory(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def put(self, name: str, data: bytes, content_type: str) -> str:
        key = generate_blob_key(name)
        path = self.root / key
        try:
            # "xb" refuses to overwrite an existing key
            with open(path, "xb") as f:
                f.write(data)
        except FileExistsError as e:
            logger.error(f"Blob key collision: {key}")
            raise BlobCollisionError(f"Blob key already exists: {key}") from e
        except OSError as e:
            logger.error(f"Error writing blob {key}: {str(e)}", exc_info=True)
            raise StorageError("Failed to store file") from e

        logger.info(f"Stored blob {key} ({len(data)} bytes, {content_type})")
        return f"{self.url_prefix}/{key}"

    def read(self, key: str) -> tuple[bytes, str]:
        if not is_blob_key(key):
            raise NotFound(f'File "{key}" not found')
        path = self.root / key
        try:
            data = path.read_bytes()
        except FileNotFoundError as e:
            raise NotFound(f'File "{key}" not found') from e
        except OSError as e:
            logger.error(f"Error reading blob {key}: {str(e)}", exc_info=True)
            raise StorageError("Failed to read file") from e

        content_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
        return data, content_type


class S3BlobStore(BlobStore):
    def __init__(
        self,
        s3_client: "S3Client",
        bucket: str,
        region: str,
        prefix: str = "uploads/",
        public_base_url: str | None = None,
    ):
        self.s3_client = s3_client
        self.bucket = bucket
        self.region = region
        self.prefix = prefix
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def object_url(self, s3_key: str) -> str:
        """Public URL for an object key."""
        base = self.public_base_url or f"https://{self.bucket}.s3.{self.region}.amazonaws.com"
        return f"{base}/{quote(s3_key)}"

    def put(self, name: str, data: bytes, content_type: str) -> str:
        s3_key = f"{self.prefix}{generate_blob_key(name)}"
        try:
            # IfNoneMatch="*" makes S3 reject the write if the key exists
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=s3_key,
                Body=data,
                ContentType=content_type,
                IfNoneMatch="*",
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("PreconditionFailed", "ConditionalRequestConflict"):
                logger.error(f"Blob key collision: s3://{self.bucket}/{s3_key}")
                raise BlobCollisionError(f"Blob key already exists: {s3_key}") from e
            logger.error(f"S3 upload error: {str(e)}", exc_info=True)
            raise StorageError("Failed to store file") from e
        except BotoCoreError as e:
            logger.error(f"S3 upload error: {str(e)}", exc_info=True)
            raise StorageError("Failed to store file") from e

        logger.info(f"Stored blob s3://{self.bucket}/{s3_key} ({len(data)} bytes, {content_type})")
        return self.object_url(s3_key)

    def read(self, key: str) -> tuple[bytes, str]:
        # Objects are fetched straight from their S3 URL
        raise NotFound(f'File "{key}" not found')
