"""
Lambda handlers for the Book Catalog API

This module serves as the entry point for all Lambda functions.
It re-exports handlers from their respective modules for Lambda function configuration.

Architecture:
- API Gateway -> Lambda -> Catalog Service -> Record Store (JSON file or DynamoDB)
- API Gateway -> Lambda -> Upload Pipeline -> Blob Store (local disk or S3) + Record Store

Handlers:
1. login_handler: Exchanges the admin password for the admin token
2. create_book_handler: Stores an uploaded book and its cover (admin only)
3. list_handler: Lists books, filtered by search/language/year/subject
4. get_book_handler: Gets a single book by id
5. serve_upload_handler: Serves uploaded files in embedded mode
"""

from catalog_backend.handlers.admin_handlers import create_book_handler, login_handler
from catalog_backend.handlers.book_handlers import get_book_handler, list_handler
from catalog_backend.handlers.upload_handlers import serve_upload_handler

# Make handlers available at module level for Lambda
__all__ = [
    "login_handler",
    "create_book_handler",
    "list_handler",
    "get_book_handler",
    "serve_upload_handler",
]
