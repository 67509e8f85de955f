import uuid

import pytest
from fastapi.testclient import TestClient

from accessly.models import AnalysisStatus, PdfRecord
from accessly.tests.helpers import (
    JWT_SECRET,
    OWNER_ID,
    FakeChecker,
    FakeRepository,
    MemoryStorage,
    make_pdf_bytes,
    make_token,
)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def checker():
    return FakeChecker()


@pytest.fixture
def stored_pdf(storage, repository):
    """A record owned by OWNER_ID whose file exists in storage."""

    def _make(issues=None, status=AnalysisStatus.NONE, source_id=None, file_name="report.pdf", owner=OWNER_ID):
        pdf_id = str(uuid.uuid4())
        path = f"{owner}/{file_name}"
        storage.objects[path] = make_pdf_bytes()
        record = PdfRecord(
            id=pdf_id,
            owner_id=owner,
            file_name=file_name,
            file_url=storage.public_url(path),
            file_size=len(storage.objects[path]),
            analysis_status=status,
            external_source_id=source_id,
            raw_report=issues,
        )
        return repository.add(record)

    return _make


@pytest.fixture(autouse=True)
def auth_env(monkeypatch):
    monkeypatch.setenv("AUTH_JWT_KEY", JWT_SECRET)
    monkeypatch.setenv("AUTH_JWT_ALGORITHMS", "HS256")
    monkeypatch.delenv("AUTH_JWT_ISSUER", raising=False)
    monkeypatch.delenv("AUTH_JWT_AUDIENCE", raising=False)


@pytest.fixture(scope="session")
def app():
    # Import lazily so tests that don't hit the API can avoid heavy dependencies.
    from accessly.app import app

    return app


@pytest.fixture
def client(app, repository, storage, checker):
    from accessly.dependencies import get_checker, get_repository, get_storage_backend

    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_storage_backend] = lambda: storage
    app.dependency_overrides[get_checker] = lambda: checker
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}
