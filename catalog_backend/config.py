"""
Configuration and AWS client construction for the Book Catalog API

This module provides:
- Environment variable configuration (``Settings`` / ``load_settings``)
- AWS service clients for managed mode (S3, DynamoDB)
- Constants used across handlers
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import boto3
from botocore.config import Config

if TYPE_CHECKING:
    from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource
    from mypy_boto3_s3.client import S3Client

# Constants
MAX_STRING_LENGTH = 500  # Maximum length for title/author/language
MAX_DESCRIPTION_LENGTH = 10_000
DEFAULT_REGION = "us-east-2"
ADMIN_TOKEN_HEADER = "x-admin-token"
UPLOADS_ROUTE = "/uploads"


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, read once at startup."""

    books_table: str | None = None
    bucket_name: str | None = None
    aws_region: str = DEFAULT_REGION
    uploads_prefix: str = "uploads/"
    public_base_url: str | None = None
    data_dir: Path = Path("data")
    uploads_dir: Path = Path("uploads")
    admin_password: str = "admin123"
    admin_token: str = "admin-secret-access"
    port: int = 5000

    @property
    def managed(self) -> bool:
        """True when both the document store and the object store are configured."""
        return bool(self.books_table and self.bucket_name)

    @property
    def catalog_file(self) -> Path:
        return self.data_dir / "books.json"


def _env(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name, "").strip()
    return value or None


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Settings: Immutable configuration

    Raises:
        ValueError: If PORT is not an integer
    """
    if environ is None:
        environ = os.environ

    return Settings(
        books_table=_env(environ, "BOOKS_TABLE"),
        bucket_name=_env(environ, "BUCKET_NAME"),
        aws_region=_env(environ, "AWS_REGION") or DEFAULT_REGION,
        uploads_prefix=environ.get("UPLOADS_PREFIX", "uploads/"),
        public_base_url=_env(environ, "BLOB_PUBLIC_BASE_URL"),
        data_dir=Path(_env(environ, "DATA_DIR") or "data"),
        uploads_dir=Path(_env(environ, "UPLOADS_DIR") or "uploads"),
        admin_password=_env(environ, "ADMIN_PASSWORD") or "admin123",
        admin_token=_env(environ, "ADMIN_TOKEN") or "admin-secret-access",
        port=int(_env(environ, "PORT") or 5000),
    )


def create_s3_client(settings: Settings) -> "S3Client":
    """Create the S3 client used by managed mode."""
    return boto3.client(
        "s3",
        region_name=settings.aws_region,
        config=Config(signature_version="s3v4"),
    )


def create_dynamodb_resource(settings: Settings) -> "DynamoDBServiceResource":
    """Create the DynamoDB resource used by managed mode."""
    return boto3.resource("dynamodb", region_name=settings.aws_region)
