import base64
import json
from unittest.mock import Mock, patch

import pytest

from catalog_backend import handler, runtime
from catalog_backend.errors import StorageError
from catalog_backend.runtime import Runtime
from catalog_backend.services import upload as upload_module
from conftest import create_upload_event

BOOK_FIELDS = [
    ("title", "The Great War"),
    ("author", "Jane Historian"),
    ("description", "A history of the war."),
    ("language", "en"),
    ("year", "2000"),
    ("subjects", "history, war"),
]
BOOK_FILE = ("bookFile", "great-war.pdf", b"%PDF-1.4\x00\xff\r\nbinary", "application/pdf")
COVER_FILE = ("coverImage", "cover.jpg", b"\xff\xd8\xff\xe0jpeg", "image/jpeg")


@pytest.fixture
def active_runtime(embedded_runtime):
    """Patch the process runtime with an embedded-mode runtime in tmp_path"""
    with patch.object(runtime, "get_runtime", return_value=embedded_runtime):
        yield embedded_runtime


def create_mock_event(path_params=None, query_params=None, body=None, headers=None):
    """Create a mock API Gateway event

    Args:
        path_params: Path parameters dict
        query_params: Query string parameters dict
        body: Request body (dict or JSON string)
        headers: Request headers dict

    Returns:
        dict: Mock API Gateway event
    """
    event = {"headers": headers or {}}

    if path_params:
        event["pathParameters"] = path_params

    if query_params:
        event["queryStringParameters"] = query_params

    if body is not None:
        event["body"] = json.dumps(body) if isinstance(body, dict) else body

    return event


def upload_book(fields=BOOK_FIELDS, files=(BOOK_FILE,)):
    resp = handler.create_book_handler(create_upload_event(fields, files), None)
    assert resp["statusCode"] == 201, resp["body"]
    return json.loads(resp["body"])


# ============================================================================
# Login
# ============================================================================


def test_login_handler_success(active_runtime):
    """Test that the admin password returns the admin token"""

    resp = handler.login_handler(create_mock_event(body={"password": "admin123"}), None)

    assert resp["statusCode"] == 200
    body = json.loads(resp["body"])
    assert body == {"success": True, "token": "admin-secret-access"}


def test_login_handler_wrong_password(active_runtime):
    resp = handler.login_handler(create_mock_event(body={"password": "guess"}), None)

    assert resp["statusCode"] == 401
    body = json.loads(resp["body"])
    assert body["success"] is False
    assert body["message"] == "Invalid password"


def test_login_handler_missing_password(active_runtime):
    resp = handler.login_handler(create_mock_event(body={}), None)

    assert resp["statusCode"] == 401


def test_login_handler_invalid_json(active_runtime):
    resp = handler.login_handler(create_mock_event(body="{not json"), None)

    assert resp["statusCode"] == 400
    assert "Invalid JSON" in json.loads(resp["body"])["message"]


# ============================================================================
# Create
# ============================================================================


def test_create_book_handler_success(active_runtime):
    """Test a full multipart upload with book file and cover"""

    body = upload_book(files=(BOOK_FILE, COVER_FILE))

    assert body["title"] == "The Great War"
    assert body["author"] == "Jane Historian"
    assert body["language"] == "en"
    assert body["year"] == 2000
    assert body["subjects"] == ["history", "war"]
    assert body["id"]
    assert body["uploadedAt"]
    assert body["fileUrl"].startswith("/uploads/")
    assert body["fileUrl"].endswith(".pdf")
    assert body["coverImage"].endswith(".jpg")

    uploads_dir = active_runtime.settings.uploads_dir
    stored = uploads_dir / body["fileUrl"].rsplit("/", 1)[-1]
    assert stored.read_bytes() == BOOK_FILE[2]


def test_create_book_handler_plain_body(active_runtime):
    """Test an event whose body was not base64 encoded"""

    event = create_upload_event(BOOK_FIELDS, [("bookFile", "b.txt", b"plain text book", "text/plain")])
    event["body"] = base64.b64decode(event["body"]).decode("utf-8")
    event["isBase64Encoded"] = False

    resp = handler.create_book_handler(event, None)

    assert resp["statusCode"] == 201


def test_create_book_handler_repeated_subjects(active_runtime):
    fields = [f for f in BOOK_FIELDS if f[0] != "subjects"] + [("subjects", "history"), ("subjects", " war ")]

    body = upload_book(fields=fields)

    assert body["subjects"] == ["history", "war"]


def test_create_book_handler_requires_admin(active_runtime):
    """Test that uploads without the admin token are rejected before storing anything"""

    resp = handler.create_book_handler(create_upload_event(BOOK_FIELDS, [BOOK_FILE], token=None), None)

    assert resp["statusCode"] == 403
    assert json.loads(resp["body"]) == {
        "error": "Forbidden",
        "message": "Unauthorized. Admin access required.",
    }
    assert list(active_runtime.settings.uploads_dir.iterdir()) == []


def test_create_book_handler_wrong_token(active_runtime):
    resp = handler.create_book_handler(create_upload_event(BOOK_FIELDS, [BOOK_FILE], token="nope"), None)

    assert resp["statusCode"] == 403


def test_create_book_handler_header_case_insensitive(active_runtime):
    event = create_upload_event(BOOK_FIELDS, [BOOK_FILE], header_name="X-Admin-Token")

    resp = handler.create_book_handler(event, None)

    assert resp["statusCode"] == 201


def test_create_book_handler_missing_book_file(active_runtime):
    """Test 400 and no side effects when bookFile is missing"""

    resp = handler.create_book_handler(create_upload_event(BOOK_FIELDS, [COVER_FILE]), None)

    assert resp["statusCode"] == 400
    assert json.loads(resp["body"])["message"] == "Book file is required"
    assert list(active_runtime.settings.uploads_dir.iterdir()) == []
    assert json.loads(active_runtime.settings.catalog_file.read_text()) == []


def test_create_book_handler_missing_title(active_runtime):
    fields = [f for f in BOOK_FIELDS if f[0] != "title"]

    resp = handler.create_book_handler(create_upload_event(fields, [BOOK_FILE]), None)

    assert resp["statusCode"] == 400
    assert "title" in json.loads(resp["body"])["message"]


def test_create_book_handler_not_multipart(active_runtime):
    event = create_mock_event(body={"title": "x"}, headers={
        "Content-Type": "application/json",
        "x-admin-token": "admin-secret-access",
    })

    resp = handler.create_book_handler(event, None)

    assert resp["statusCode"] == 400


def test_create_book_handler_invalid_base64(active_runtime):
    event = create_upload_event(BOOK_FIELDS, [BOOK_FILE])
    event["body"] = "***not base64***"

    resp = handler.create_book_handler(event, None)

    assert resp["statusCode"] == 400


def test_create_book_handler_storage_error_is_opaque(active_runtime):
    """Test that storage failures return a generic 500"""

    with patch.object(
        active_runtime.backends.blob_store, "put", side_effect=StorageError("disk full at /var/x")
    ):
        resp = handler.create_book_handler(create_upload_event(BOOK_FIELDS, [BOOK_FILE]), None)

    assert resp["statusCode"] == 500
    body = json.loads(resp["body"])
    assert body["message"] == "Server error during upload"
    assert "/var/x" not in resp["body"]


def test_create_book_handler_unexpected_error():
    mock_runtime = Mock()
    mock_runtime.settings.admin_token = "admin-secret-access"
    mock_runtime.catalog.create.side_effect = RuntimeError("boom")

    with patch.object(runtime, "get_runtime", return_value=mock_runtime):
        resp = handler.create_book_handler(create_upload_event(BOOK_FIELDS, [BOOK_FILE]), None)

    assert resp["statusCode"] == 500
    assert "boom" not in resp["body"]


# ============================================================================
# List
# ============================================================================


def test_list_handler_empty(active_runtime):
    resp = handler.list_handler(create_mock_event(), None)

    assert resp["statusCode"] == 200
    assert json.loads(resp["body"]) == []
    assert resp["headers"]["Access-Control-Allow-Origin"] == "*"


def test_list_handler_returns_newest_first(active_runtime):
    timestamps = ["2024-01-01T00:00:00.000Z", "2024-01-01T00:00:00.001Z"]
    with patch.object(upload_module, "utc_timestamp", side_effect=timestamps):
        first = upload_book(fields=[("title", "First"), ("author", "A")])
        second = upload_book(fields=[("title", "Second"), ("author", "B")])

    resp = handler.list_handler(create_mock_event(), None)

    body = json.loads(resp["body"])
    assert [b["id"] for b in body] == [second["id"], first["id"]]


def test_list_handler_filters(active_runtime):
    """Test that query parameters are ANDed"""

    upload_book(fields=[("title", "A"), ("author", "X"), ("language", "en"), ("year", "2000")])
    upload_book(fields=[("title", "B"), ("author", "X"), ("language", "en"), ("year", "2010")])
    upload_book(fields=[("title", "C"), ("author", "X"), ("language", "fr"), ("year", "2000")])

    resp = handler.list_handler(create_mock_event(query_params={"language": "en", "year": "2000"}), None)

    assert [b["title"] for b in json.loads(resp["body"])] == ["A"]


def test_list_handler_search_and_subject(active_runtime):
    upload_book()
    upload_book(fields=[("title", "Cookbook"), ("author", "Chef"), ("subjects", "food")])

    resp = handler.list_handler(create_mock_event(query_params={"search": "GREAT"}), None)
    assert [b["title"] for b in json.loads(resp["body"])] == ["The Great War"]

    resp = handler.list_handler(create_mock_event(query_params={"subject": "war"}), None)
    assert [b["title"] for b in json.loads(resp["body"])] == ["The Great War"]

    resp = handler.list_handler(create_mock_event(query_params={"subject": "peace"}), None)
    assert json.loads(resp["body"]) == []


def test_list_handler_oversized_year_matches_nothing(active_runtime):
    """Test that a year too long to be a number gives an empty listing, not a 500"""
    upload_book()

    resp = handler.list_handler(create_mock_event(query_params={"year": "9" * 5000}), None)

    assert resp["statusCode"] == 200
    assert json.loads(resp["body"]) == []


def test_create_book_handler_oversized_year_is_dropped(active_runtime):
    fields = [f for f in BOOK_FIELDS if f[0] != "year"] + [("year", "9" * 5000)]

    body = upload_book(fields=fields)

    assert body["year"] is None


def test_list_handler_empty_params_are_ignored(active_runtime):
    upload_book()

    resp = handler.list_handler(
        create_mock_event(query_params={"search": "", "language": "", "year": "", "subject": ""}), None
    )

    assert len(json.loads(resp["body"])) == 1


def test_list_handler_storage_error(active_runtime):
    with patch.object(
        active_runtime.backends.record_store, "query", side_effect=StorageError("Failed to read book catalog")
    ):
        resp = handler.list_handler(create_mock_event(), None)

    assert resp["statusCode"] == 500
    assert json.loads(resp["body"])["message"] == "Error fetching books"


# ============================================================================
# Get
# ============================================================================


def test_get_book_handler_success(active_runtime):
    created = upload_book()

    resp = handler.get_book_handler(create_mock_event(path_params={"id": created["id"]}), None)

    assert resp["statusCode"] == 200
    assert json.loads(resp["body"]) == created


def test_get_book_handler_not_found(active_runtime):
    resp = handler.get_book_handler(create_mock_event(path_params={"id": "nonexistent"}), None)

    assert resp["statusCode"] == 404
    body = json.loads(resp["body"])
    assert body["error"] == "Not Found"
    assert body["message"] == "Book not found"


def test_get_book_handler_missing_id(active_runtime):
    resp = handler.get_book_handler({"pathParameters": {}}, None)

    assert resp["statusCode"] == 400
    assert "Id is required" in json.loads(resp["body"])["message"]


def test_get_book_handler_url_encoded_id(active_runtime):
    created = upload_book()

    resp = handler.get_book_handler(create_mock_event(path_params={"id": f"%20{created['id']}"}), None)

    assert resp["statusCode"] == 404


def test_get_book_handler_storage_error(active_runtime):
    with patch.object(
        active_runtime.backends.record_store, "get_by_id", side_effect=StorageError("Failed to read book catalog")
    ):
        resp = handler.get_book_handler(create_mock_event(path_params={"id": "1"}), None)

    assert resp["statusCode"] == 500


# ============================================================================
# Uploads
# ============================================================================


def test_serve_upload_handler_returns_bytes(active_runtime):
    created = upload_book()
    key = created["fileUrl"].rsplit("/", 1)[-1]

    resp = handler.serve_upload_handler(create_mock_event(path_params={"key": key}), None)

    assert resp["statusCode"] == 200
    assert resp["isBase64Encoded"] is True
    assert resp["headers"]["Content-Type"] == "application/pdf"
    assert base64.b64decode(resp["body"]) == BOOK_FILE[2]


def test_serve_upload_handler_rejects_traversal(active_runtime):
    resp = handler.serve_upload_handler(create_mock_event(path_params={"key": "..%2Fdata%2Fbooks.json"}), None)

    assert resp["statusCode"] == 404


def test_serve_upload_handler_managed_mode(managed_backends, managed_settings):
    """Test that managed mode never proxies blobs"""

    managed_runtime = Runtime(settings=managed_settings, backends=managed_backends, catalog=Mock())

    with patch.object(runtime, "get_runtime", return_value=managed_runtime):
        resp = handler.serve_upload_handler(
            create_mock_event(path_params={"key": "1700000000000-1.pdf"}), None
        )

    assert resp["statusCode"] == 404
