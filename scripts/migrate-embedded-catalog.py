#!/usr/bin/env python3
"""
Migration script to move an embedded-mode catalog into managed mode
Copies every record of data/books.json into DynamoDB and uploads its book
file and cover from the local uploads directory to S3. Record ids and upload
timestamps are kept, so listing order is unchanged.

Environment Variables (optional):
    AWS_PROFILE: AWS profile name (default: 'default')
    AWS_REGION: AWS region (default: 'us-east-2')
    BUCKET_NAME: S3 bucket name (required)
    BOOKS_TABLE: DynamoDB table name (required)
    UPLOADS_PREFIX: S3 prefix for uploaded files (default: 'uploads/')
    BLOB_PUBLIC_BASE_URL: Public base URL for objects (default: bucket URL)
    DATA_DIR: Directory holding books.json (default: 'data')
    UPLOADS_DIR: Local uploads directory (default: 'uploads')

Example usage:
    BOOKS_TABLE=Books BUCKET_NAME=my-books python3 migrate-embedded-catalog.py

    # Use custom profile
    AWS_PROFILE=prod BOOKS_TABLE=Books BUCKET_NAME=my-books python3 migrate-embedded-catalog.py
"""

import dataclasses
import mimetypes
import os
import sys

import boto3
from botocore.config import Config

from catalog_backend.config import load_settings
from catalog_backend.errors import CatalogError, NotFound
from catalog_backend.models import BookFilter
from catalog_backend.storage.blob_store import S3BlobStore, is_blob_key
from catalog_backend.storage.record_store import DynamoDBRecordStore, JsonRecordStore

PROFILE = os.environ.get('AWS_PROFILE', 'default')


def upload_local_file(reference, settings, blob_store):
    """Upload a /uploads/<key> file to S3 and return its new URL (None stays None)."""
    if not reference:
        return None
    key = reference.rsplit('/', 1)[-1]
    if not is_blob_key(key):
        raise CatalogError(f"Unexpected local file reference: {reference}")
    path = settings.uploads_dir / key
    content_type = mimetypes.guess_type(key)[0] or 'application/octet-stream'
    return blob_store.put(key, path.read_bytes(), content_type)


def main():
    settings = load_settings()
    if not settings.managed:
        print("❌ BOOKS_TABLE and BUCKET_NAME must both be set")
        sys.exit(1)

    session = boto3.Session(profile_name=PROFILE, region_name=settings.aws_region)
    s3 = session.client('s3', config=Config(signature_version='s3v4'))
    dynamodb = session.resource('dynamodb')

    source = JsonRecordStore(settings.catalog_file)
    target = DynamoDBRecordStore(dynamodb.Table(settings.books_table))
    blob_store = S3BlobStore(
        s3,
        bucket=settings.bucket_name,
        region=settings.aws_region,
        prefix=settings.uploads_prefix,
        public_base_url=settings.public_base_url,
    )

    print(f"🔍 Reading catalog: {settings.catalog_file}")
    print(f"📊 Target DynamoDB table: {settings.books_table}")
    print(f"🪣 Target S3 bucket: s3://{settings.bucket_name}/{settings.uploads_prefix}")
    print(f"🌍 Using AWS Profile: {PROFILE}")
    print()

    # Oldest first so DynamoDB receives records in their original order
    records = list(reversed(source.query(BookFilter())))

    books_migrated = 0
    books_skipped = 0
    books_failed = 0

    for record in records:
        try:
            target.get_by_id(record.id)
            print(f"⏭️  Skipping (already exists): {record.id}")
            books_skipped += 1
            continue
        except NotFound:
            pass

        try:
            migrated = dataclasses.replace(
                record,
                file_url=upload_local_file(record.file_url, settings, blob_store),
                cover_image=upload_local_file(record.cover_image, settings, blob_store),
            )
            target.insert(migrated)
        except (CatalogError, OSError) as e:
            print(f"❌ Failed to migrate {record.id}: {e}")
            books_failed += 1
            continue

        print(f"✅ Migrated: {record.id}")
        print(f"   📚 {record.author} - {record.title}")
        books_migrated += 1

    print()
    print("=" * 60)
    print("📊 Migration Summary:")
    print(f"   Books found in catalog: {len(records)}")
    print(f"   Books migrated: {books_migrated}")
    print(f"   Books skipped (already in DB): {books_skipped}")
    print(f"   Books failed: {books_failed}")
    print("=" * 60)

    if books_failed:
        print()
        print("⚠️  Some books could not be migrated. Check errors above.")
        sys.exit(1)


if __name__ == '__main__':
    try:
        main()
    except KeyboardInterrupt:
        print("\n⚠️  Migration interrupted by user")
    except Exception as e:
        print(f"\n❌ Migration failed: {e}")
        raise
