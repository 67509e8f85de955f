import uuid

import pytest
from psycopg2.extras import Json

from accessly import repository as repository_module
from accessly.exceptions import BadRequest, InternalError, NotFound
from accessly.models import AnalysisStatus
from accessly.repository import PdfRepository
from accessly.tests.helpers import OWNER_ID, make_issue

PDF_ID = str(uuid.uuid4())


@pytest.fixture
def queries(monkeypatch):
    calls = []
    rows = []

    def fake_execute(query, params=None, fetch=False):
        calls.append((" ".join(query.split()), params, fetch))
        return list(rows) if fetch else True

    monkeypatch.setattr(repository_module, "execute_query", fake_execute)
    return calls, rows


def _row(**overrides):
    row = {
        "id": PDF_ID,
        "user_id": OWNER_ID,
        "file_name": "doc.pdf",
        "file_url": "https://files.test/doc.pdf",
        "file_size": 10,
        "upload_status": "uploaded",
        "accessibility_score": None,
        "prep_source_id": "src-1",
        "analysis_status": "completed",
        "report_url": None,
        "raw_report": [make_issue(1).to_dict()],
        "created_at": None,
        "updated_at": None,
    }
    row.update(overrides)
    return row


def test_get_for_owner_filters_by_owner(queries):
    calls, rows = queries
    rows.append(_row())

    record = PdfRepository().get_for_owner(PDF_ID, OWNER_ID)

    assert record.external_source_id == "src-1"
    assert record.analysis_status is AnalysisStatus.COMPLETED
    assert record.raw_report[0].id == 1
    query, params, fetch = calls[0]
    assert "WHERE id = %s AND user_id = %s" in query
    assert params == (PDF_ID, OWNER_ID)
    assert fetch is True


def test_get_for_owner_missing_or_invalid(queries):
    calls, _ = queries
    with pytest.raises(NotFound):
        PdfRepository().get_for_owner(PDF_ID, "someone-else")
    with pytest.raises(NotFound):
        PdfRepository().get_for_owner("not-a-uuid", OWNER_ID)
    assert len(calls) == 1


def test_update_writes_single_statement(queries):
    calls, _ = queries

    PdfRepository().update(
        PDF_ID,
        raw_report=[make_issue(1, fixed=True)],
        accessibility_score=100,
        external_source_id="src-2",
        analysis_status=AnalysisStatus.STARTED,
    )

    assert len(calls) == 1
    query, params, _ = calls[0]
    assert query.startswith("UPDATE pdfs SET raw_report = %s, accessibility_score = %s, prep_source_id = %s")
    assert "updated_at = NOW()" in query
    assert isinstance(params[0], Json)
    assert params[0].adapted[0]["fixed"] is True
    assert params[1:] == (100, "src-2", "started", PDF_ID)


def test_update_clears_status_and_report(queries):
    calls, _ = queries
    PdfRepository().update(PDF_ID, analysis_status=AnalysisStatus.NONE, raw_report=None)
    assert calls[0][1] == (None, None, PDF_ID)


def test_update_rejects_unknown_fields(queries):
    with pytest.raises(BadRequest):
        PdfRepository().update(PDF_ID, user_id="intruder")


def test_history_writes_are_best_effort(monkeypatch):
    def failing(*args, **kwargs):
        raise InternalError("Database query failed")

    monkeypatch.setattr(repository_module, "execute_query", failing)
    repo = PdfRepository()
    repo.record_analysis_started(PDF_ID, "src-1")
    repo.record_analysis_status("src-1", AnalysisStatus.FAILED, error="boom")


def test_list_for_owner(queries):
    calls, rows = queries
    rows.extend([_row(), _row(id=str(uuid.uuid4()), raw_report=None, analysis_status=None)])

    records = PdfRepository().list_for_owner(OWNER_ID)

    assert len(records) == 2
    assert records[1].raw_report is None
    assert records[1].analysis_status is AnalysisStatus.NONE
    assert "ORDER BY created_at DESC" in calls[0][0]


def test_latest_analysis(queries):
    calls, rows = queries
    rows.append({"id": 7, "pdf_id": PDF_ID, "source_id": "src-1", "status": "completed"})

    row = PdfRepository().latest_analysis(PDF_ID)

    assert row["source_id"] == "src-1"
    query, params, fetch = calls[0]
    assert "FROM pdf_analyses WHERE pdf_id = %s ORDER BY created_at DESC LIMIT 1" in query
    assert params == (PDF_ID,)
    assert fetch is True


def test_latest_analysis_missing(queries):
    assert PdfRepository().latest_analysis(PDF_ID) is None


def test_stored_issues_with_invalid_ids_are_skipped(queries, caplog):
    _, rows = queries
    rows.append(_row(raw_report=[make_issue(1).to_dict(), {"id": "abc", "type": "Document - Title"}, {"type": "x"}]))

    record = PdfRepository().get_for_owner(PDF_ID, OWNER_ID)

    assert [issue.id for issue in record.raw_report] == [1]
    assert "invalid id" in caplog.text


def test_stored_empty_description_is_kept(queries):
    _, rows = queries
    rows.append(_row(raw_report=[{**make_issue(1).to_dict(), "description": ""}]))

    record = PdfRepository().get_for_owner(PDF_ID, OWNER_ID)

    assert record.raw_report[0].description == ""
