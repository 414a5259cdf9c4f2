"""
Lambda handlers for admin operations (login, upload)

Uploading requires the admin token issued by login_handler.
"""

from __future__ import annotations

import logging

from catalog_backend import runtime
from catalog_backend.errors import CatalogError, StorageError, Unauthorized
from catalog_backend.services.upload import parse_submission
from catalog_backend.utils.auth import check_password, is_admin
from catalog_backend.utils.multipart import parse_multipart_form
from catalog_backend.utils.response import api_response, error_response
from catalog_backend.utils.validation import get_body_bytes, get_header, parse_json_body

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def login_handler(event, context):
    """
    Lambda handler exchanging the admin password for the admin token.
    Expects JSON body with:
    - password: The admin password

    Returns {success: true, token} or 401 {success: false, message}.
    """
    logger.info("login_handler invoked")

    try:
        body, error = parse_json_body(event)
        if error:
            return error

        settings = runtime.get_runtime().settings
        if not check_password(body.get("password"), settings):
            logger.warning("Failed admin login attempt")
            return api_response(401, {"success": False, "message": "Invalid password"})

        logger.info("Admin login succeeded")
        return api_response(200, {"success": True, "token": settings.admin_token})

    except Exception as e:
        logger.error(f"Error during login: {str(e)}", exc_info=True)
        return error_response(500, "Internal Server Error", "Server error during login")


def create_book_handler(event, context):
    """
    Lambda handler to upload a new book for admin users only.
    Expects a multipart/form-data body with:
    - title, author: required
    - description, language, year, subjects: optional
    - bookFile: required file
    - coverImage: optional file

    Returns 201 with the created book.
    """
    logger.info("create_book_handler invoked")

    try:
        current = runtime.get_runtime()
        if not is_admin(event, current.settings):
            logger.warning("Upload attempted without a valid admin token")
            raise Unauthorized("Unauthorized. Admin access required.")

        try:
            body = get_body_bytes(event)
        except ValueError as e:
            return error_response(400, "Bad Request", str(e))

        form = parse_multipart_form(body, get_header(event, "content-type"))
        submission = parse_submission(form)

        book = current.catalog.create(submission)
        return api_response(201, book.to_dict())

    except StorageError as e:
        logger.error(f"Upload error: {str(e)}", exc_info=True)
        return error_response(500, "Internal Server Error", "Server error during upload")
    except CatalogError as e:
        logger.warning(f"Upload rejected: {str(e)}")
        return error_response(e.status_code, e.error, str(e))
    except Exception as e:
        logger.error(f"Upload error: {str(e)}", exc_info=True)
        return error_response(500, "Internal Server Error", "Server error during upload")
