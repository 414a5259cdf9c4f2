"""
Request validation utilities for the Book Catalog API

Provides functions to validate and extract data from API Gateway events.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from urllib.parse import unquote

from catalog_backend.utils.response import error_response

logger = logging.getLogger()


def get_path_param(event: dict, param: str) -> tuple[str | None, dict | None]:
    """
    Extract and URL-decode a path parameter from API Gateway event.

    Args:
        event: API Gateway event
        param: Parameter name to extract

    Returns:
        tuple: (decoded_value, error_response) - If successful, error_response is None
    """
    path_params = event.get("pathParameters") or {}
    if param not in path_params:
        logger.warning(f"Missing {param} in path parameters")
        return None, error_response(
            400, "Bad Request", f"{param.capitalize()} is required in path"
        )
    return unquote(path_params[param]), None


def get_query_params(event: dict) -> dict[str, str]:
    """Query string parameters of an API Gateway event (never None)."""
    return dict(event.get("queryStringParameters") or {})


def get_header(event: dict, name: str) -> str | None:
    """
    Case-insensitive header lookup.

    REST APIs keep the client's header casing, HTTP APIs lowercase it.
    """
    wanted = name.lower()
    for key, value in (event.get("headers") or {}).items():
        if key.lower() == wanted:
            return value
    return None


def get_body_bytes(event: dict) -> bytes:
    """
    Raw request body, decoding base64 when API Gateway marked it so.

    Raises:
        ValueError: If the body claims to be base64 but is not
    """
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body, validate=True)
        except binascii.Error as e:
            raise ValueError("Invalid base64 request body") from e
    return body.encode("utf-8") if isinstance(body, str) else body


def parse_json_body(event: dict) -> tuple[dict, dict | None]:
    """
    Parse JSON body from API Gateway event.

    Args:
        event: API Gateway event

    Returns:
        tuple: (parsed_body, error_response) - If successful, error_response is None
               If error, parsed_body is empty dict (caller should check error first)
    """
    try:
        body = json.loads(get_body_bytes(event) or b"{}")
    except (ValueError, UnicodeDecodeError):
        logger.warning("Invalid JSON in request body")
        return {}, error_response(400, "Bad Request", "Invalid JSON in request body")

    if not isinstance(body, dict):
        logger.warning("JSON request body is not an object")
        return {}, error_response(400, "Bad Request", "Request body must be a JSON object")
    return body, None
