"""
Response building utilities for the Book Catalog API

Provides functions to create standardized API Gateway responses.
"""

from __future__ import annotations

import base64
import json
from decimal import Decimal
from typing import Any

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization,x-admin-token",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}


def api_response(status_code: int, body: Any) -> dict:
    """
    Helper to format API Gateway response with CORS headers.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON serialized)

    Returns:
        dict: API Gateway response with headers
    """
    return {
        "statusCode": status_code,
        "body": json.dumps(body),
        "headers": {"Content-Type": "application/json", **CORS_HEADERS},
    }


def error_response(status_code: int, error: str, message: str) -> dict:
    """
    Helper to create error response.

    Args:
        status_code: HTTP status code
        error: Error type/category
        message: Error message

    Returns:
        dict: API Gateway error response
    """
    return api_response(status_code, {"error": error, "message": message})


def binary_response(status_code: int, payload: bytes, content_type: str) -> dict:
    """
    Helper to return raw bytes through API Gateway (base64 encoded).

    Args:
        status_code: HTTP status code
        payload: Raw response bytes
        content_type: MIME type of the payload

    Returns:
        dict: API Gateway response with isBase64Encoded set
    """
    return {
        "statusCode": status_code,
        "body": base64.b64encode(payload).decode("ascii"),
        "isBase64Encoded": True,
        "headers": {"Content-Type": content_type, **CORS_HEADERS},
    }


def convert_decimal(value: Any) -> Any:
    """
    Convert Decimal types (from DynamoDB) to int or float for JSON serialization.

    Args:
        value: Value that might be a Decimal

    Returns:
        Converted value (int if whole number, otherwise original value)
    """
    if isinstance(value, Decimal):
        return int(value) if value % 1 == 0 else float(value)
    return value
