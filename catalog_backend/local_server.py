"""
Local development server for the Book Catalog API

Translates plain HTTP requests into API Gateway proxy events and dispatches
them to the Lambda handlers, so the API (embedded mode in particular) can be
run without AWS:

    python -m catalog_backend.local_server

Settings come from the environment, after loading a .env file if present.
"""

from __future__ import annotations

import base64
import http.server
import logging
import re
from collections.abc import Callable
from urllib.parse import parse_qsl, urlsplit

from dotenv import load_dotenv

from catalog_backend import runtime
from catalog_backend.handler import (
    create_book_handler,
    get_book_handler,
    list_handler,
    login_handler,
    serve_upload_handler,
)
from catalog_backend.utils.response import CORS_HEADERS, error_response

logger = logging.getLogger(__name__)

Handler = Callable[[dict, object], dict]

ROUTES: list[tuple[str, re.Pattern[str], Handler]] = [
    ("POST", re.compile(r"^/api/login/?$"), login_handler),
    ("POST", re.compile(r"^/api/books/?$"), create_book_handler),
    ("GET", re.compile(r"^/api/books/?$"), list_handler),
    ("GET", re.compile(r"^/api/books/(?P<id>[^/]+)/?$"), get_book_handler),
    ("GET", re.compile(r"^/uploads/(?P<key>[^/]+)$"), serve_upload_handler),
]


def build_event(method: str, raw_path: str, headers: dict[str, str], body: bytes) -> dict:
    """Build an API Gateway proxy event for a request."""
    parts = urlsplit(raw_path)
    return {
        "httpMethod": method,
        "path": parts.path,
        "headers": headers,
        "queryStringParameters": dict(parse_qsl(parts.query)) or None,
        "pathParameters": None,
        "body": base64.b64encode(body).decode("ascii") if body else None,
        "isBase64Encoded": bool(body),
    }


def dispatch(event: dict) -> dict:
    """Route an event to its handler; 404 when nothing matches."""
    method = event["httpMethod"]
    path = event["path"]
    for route_method, pattern, handler in ROUTES:
        match = pattern.match(path)
        if route_method == method and match:
            event["pathParameters"] = match.groupdict() or None
            return handler(event, None)
    return error_response(404, "Not Found", f"No route for {method} {path}")


class CatalogRequestHandler(http.server.BaseHTTPRequestHandler):
    server_version = "BookCatalog/1.0"

    def _handle(self) -> None:
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""
        event = build_event(self.command, self.path, dict(self.headers.items()), body)
        response = dispatch(event)

        payload = response.get("body") or ""
        if response.get("isBase64Encoded"):
            data = base64.b64decode(payload)
        else:
            data = payload.encode("utf-8")

        self.send_response(response["statusCode"])
        for name, value in response.get("headers", {}).items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def do_GET(self):
        self._handle()

    def do_POST(self):
        self._handle()

    def do_OPTIONS(self):
        """Handle CORS preflight requests"""
        self.send_response(204)
        for name, value in CORS_HEADERS.items():
            self.send_header(name, value)
        self.end_headers()

    def log_message(self, format, *args):
        logger.info(f"{self.address_string()} {format % args}")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    load_dotenv()

    current = runtime.get_runtime()
    port = current.settings.port

    with http.server.ThreadingHTTPServer(("", port), CatalogRequestHandler) as httpd:
        logger.info(f"Server running on http://localhost:{port} ({current.backends.mode} mode)")
        httpd.serve_forever()


if __name__ == "__main__":
    main()
