"""
Lambda handlers for book read operations (list, get)

These handlers are public: no admin token is required.
"""

from __future__ import annotations

import logging

from catalog_backend import runtime
from catalog_backend.errors import CatalogError, StorageError
from catalog_backend.models import BookFilter
from catalog_backend.utils.response import api_response, error_response
from catalog_backend.utils.validation import get_path_param, get_query_params

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def list_handler(event, context):
    """
    Lambda handler to list books.
    Accepts optional query parameters search, language, year and subject;
    every given parameter must match. Returns an array of books, most
    recently uploaded first.
    """
    logger.info("list_handler invoked")

    try:
        book_filter = BookFilter.from_query_params(get_query_params(event))
        books = runtime.get_runtime().catalog.list(book_filter)

        logger.info(f"Returning {len(books)} books")
        return api_response(200, [book.to_dict() for book in books])

    except StorageError as e:
        logger.error(f"Error listing books: {str(e)}", exc_info=True)
        return error_response(500, "Internal Server Error", "Error fetching books")
    except CatalogError as e:
        return error_response(e.status_code, e.error, str(e))
    except Exception as e:
        logger.error(f"Error listing books: {str(e)}", exc_info=True)
        return error_response(500, "Internal Server Error", "Error fetching books")


def get_book_handler(event, context):
    """
    Lambda handler to get a single book.
    Expects book ID in path parameter 'id'.
    Returns 404 for unknown or malformed ids.
    """
    logger.info("get_book_handler invoked")

    try:
        book_id, error = get_path_param(event, "id")
        if error:
            return error

        logger.info(f"Fetching book: {book_id}")
        book = runtime.get_runtime().catalog.get(book_id)
        return api_response(200, book.to_dict())

    except StorageError as e:
        logger.error(f"Error fetching book: {str(e)}", exc_info=True)
        return error_response(500, "Internal Server Error", "Error fetching book details")
    except CatalogError as e:
        return error_response(e.status_code, e.error, "Book not found" if e.status_code == 404 else str(e))
    except Exception as e:
        logger.error(f"Error fetching book: {str(e)}", exc_info=True)
        return error_response(500, "Internal Server Error", "Error fetching book details")
