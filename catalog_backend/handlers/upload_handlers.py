"""
Lambda handler serving stored blobs in embedded mode

In managed mode files are fetched from their object store URL and this
route answers 404.
"""

from __future__ import annotations

import logging

from catalog_backend import runtime
from catalog_backend.errors import CatalogError
from catalog_backend.utils.response import binary_response, error_response
from catalog_backend.utils.validation import get_path_param

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def serve_upload_handler(event, context):
    """
    Lambda handler returning the raw bytes of an uploaded file.
    Expects the file key in path parameter 'key'.
    """
    logger.info("serve_upload_handler invoked")

    try:
        key, error = get_path_param(event, "key")
        if error:
            return error

        data, content_type = runtime.get_runtime().backends.blob_store.read(key)
        return binary_response(200, data, content_type)

    except CatalogError as e:
        if e.status_code == 404:
            logger.warning(f"Upload not found: {str(e)}")
            return error_response(404, "Not Found", "File not found")
        logger.error(f"Error serving upload: {str(e)}", exc_info=True)
        return error_response(500, "Internal Server Error", "Error reading file")
    except Exception as e:
        logger.error(f"Error serving upload: {str(e)}", exc_info=True)
        return error_response(500, "Internal Server Error", "Error reading file")
