"""
multipart/form-data parsing for book uploads

Drives python-multipart's streaming MultipartParser over the (already fully
buffered) Lambda request body and collects the parts into text fields and
UploadedFile objects.
"""

from __future__ import annotations

import logging

from python_multipart import MultipartParser
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import parse_options_header

from catalog_backend.errors import ValidationError
from catalog_backend.models import UploadedFile

logger = logging.getLogger(__name__)

FormData = dict[str, list[str | UploadedFile]]


class _FormCollector:
    """MultipartParser callbacks that accumulate parts into a form dict."""

    def __init__(self, charset: str = "utf-8"):
        self.charset = charset
        self.form: FormData = {}
        self._headers: dict[bytes, bytes] = {}
        self._header_field = b""
        self._header_value = b""
        self._data = bytearray()

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
        }

    def on_part_begin(self) -> None:
        self._headers = {}
        self._data = bytearray()

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[self._header_field.lower()] = self._header_value
        self._header_field = b""
        self._header_value = b""

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._data += data[start:end]

    def on_part_end(self) -> None:
        _, options = parse_options_header(self._headers.get(b"content-disposition", b""))
        name = options.get(b"name")
        if not name:
            logger.warning("Skipping multipart part without a field name")
            return

        value: str | UploadedFile
        if b"filename" in options:
            content_type, _ = parse_options_header(self._headers.get(b"content-type", b""))
            value = UploadedFile(
                filename=options[b"filename"].decode(self.charset, errors="replace"),
                content=bytes(self._data),
                content_type=content_type.decode("latin-1") or "application/octet-stream",
            )
        else:
            value = bytes(self._data).decode(self.charset, errors="replace")

        self.form.setdefault(name.decode(self.charset, errors="replace"), []).append(value)


def parse_multipart_form(body: bytes, content_type: str | None) -> FormData:
    """
    Parse a multipart/form-data body into its fields.

    Args:
        body: Raw request body
        content_type: Request Content-Type header (must carry the boundary)

    Returns:
        dict: Field name -> list of values. Text fields give str, file fields
              (parts with a filename parameter) give UploadedFile.

    Raises:
        ValidationError: If the body is not well-formed multipart/form-data
    """
    if not content_type:
        raise ValidationError("Expected multipart/form-data request")

    mime_type, params = parse_options_header(content_type)
    if mime_type != b"multipart/form-data":
        raise ValidationError("Expected multipart/form-data request")
    boundary = params.get(b"boundary")
    if not boundary:
        raise ValidationError("Missing multipart boundary")

    collector = _FormCollector()
    parser = MultipartParser(boundary, collector.callbacks())
    try:
        parser.write(body)
        parser.finalize()
    except MultipartParseError as e:
        logger.warning(f"Malformed multipart body: {str(e)}")
        raise ValidationError("Malformed multipart body") from e

    return collector.form
