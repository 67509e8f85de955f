from unittest.mock import MagicMock

import pytest
import requests

from accessly import storage as storage_module
from accessly.exceptions import ConfigurationError, NotFound, ServiceUnavailable
from accessly.storage import (
    LocalFileStorage,
    StorageConfig,
    SupabaseStorage,
    configure_storage,
    object_path_from_url,
)

SUPABASE_URL = "https://project.supabase.test"


@pytest.mark.parametrize(
    "url, bucket, expected",
    [
        (f"{SUPABASE_URL}/storage/v1/object/public/pdfs/user_1/doc.pdf", "pdfs", "user_1/doc.pdf"),
        (f"{SUPABASE_URL}/storage/v1/object/public/pdfs/user_1/My%20Doc.pdf", None, "user_1/My Doc.pdf"),
        ("https://cdn.test/a/b/user_1/doc.pdf", "pdfs", "user_1/doc.pdf"),
        (f"{SUPABASE_URL}/storage/v1/object/public/other/user_1/doc.pdf", "pdfs", "user_1/doc.pdf"),
    ],
)
def test_object_path_from_url(url, bucket, expected):
    assert object_path_from_url(url, bucket=bucket) == expected


def test_object_path_from_empty_url():
    with pytest.raises(NotFound):
        object_path_from_url("")


def test_local_storage_round_trip(tmp_path):
    backend = LocalFileStorage(tmp_path, "/files")

    stored = backend.upload("user_1/doc.pdf", b"%PDF-1.7")

    assert stored.public_url == "/files/user_1/doc.pdf"
    assert stored.size == 8
    assert backend.download_url(stored.public_url) == b"%PDF-1.7"
    with pytest.raises(NotFound):
        backend.download("user_1/missing.pdf")


def test_local_storage_write_failure_is_unavailable(tmp_path):
    backend = LocalFileStorage(tmp_path)
    (tmp_path / "user_x").write_bytes(b"")

    with pytest.raises(ServiceUnavailable):
        backend.upload("user_x/doc.pdf", b"%PDF")


def test_local_storage_rejects_escaping_paths(tmp_path):
    backend = LocalFileStorage(tmp_path / "root")
    with pytest.raises(NotFound):
        backend.upload("../outside.pdf", b"x")


@pytest.fixture
def supabase(monkeypatch):
    fake_requests = MagicMock()
    fake_requests.RequestException = requests.RequestException
    monkeypatch.setattr(storage_module, "requests", fake_requests)
    return SupabaseStorage(SUPABASE_URL, "service-key", "pdfs", timeout=5), fake_requests


def _response(status_code, content=b"", text=""):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.content = content
    response.text = text
    return response


def test_supabase_download(supabase):
    backend, fake_requests = supabase
    fake_requests.get.return_value = _response(200, b"%PDF")

    assert backend.download_url(f"{SUPABASE_URL}/storage/v1/object/public/pdfs/user_1/doc.pdf") == b"%PDF"

    args, kwargs = fake_requests.get.call_args
    assert args[0] == f"{SUPABASE_URL}/storage/v1/object/pdfs/user_1/doc.pdf"
    assert kwargs["headers"]["Authorization"] == "Bearer service-key"
    assert kwargs["headers"]["apikey"] == "service-key"


@pytest.mark.parametrize("status, error", [(404, NotFound), (400, NotFound), (500, ServiceUnavailable)])
def test_supabase_download_errors(supabase, status, error):
    backend, fake_requests = supabase
    fake_requests.get.return_value = _response(status)
    with pytest.raises(error):
        backend.download("user_1/doc.pdf")


def test_supabase_upload(supabase):
    backend, fake_requests = supabase
    fake_requests.post.return_value = _response(200)

    stored = backend.upload("user_1/doc_fixed_1.pdf", b"%PDF")

    assert stored.public_url == f"{SUPABASE_URL}/storage/v1/object/public/pdfs/user_1/doc_fixed_1.pdf"
    headers = fake_requests.post.call_args.kwargs["headers"]
    assert headers["x-upsert"] == "false"
    assert headers["Content-Type"] == "application/pdf"


def test_supabase_upload_failure(supabase):
    backend, fake_requests = supabase
    fake_requests.post.side_effect = requests.ConnectionError("reset")
    with pytest.raises(ServiceUnavailable):
        backend.upload("user_1/doc.pdf", b"%PDF")


def test_configure_storage_drivers(tmp_path):
    local = configure_storage(StorageConfig(driver="local", local_root=tmp_path))
    assert isinstance(local, LocalFileStorage)

    with pytest.raises(ConfigurationError):
        configure_storage(StorageConfig(driver="supabase"))
    with pytest.raises(ConfigurationError):
        configure_storage(StorageConfig(driver="s3"))
    storage_module.reset_storage()
