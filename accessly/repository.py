"""Access to the ``pdfs`` and ``pdf_analyses`` tables."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

from psycopg2.extras import Json

from accessly.exceptions import AccesslyError, BadRequest, NotFound
from accessly.models import AnalysisStatus, Issue, PdfRecord, issues_to_json
from accessly.utils.app_helpers import execute_query

logger = logging.getLogger("accessly-repository")

PDF_COLUMNS = (
    "id, user_id, file_name, file_url, file_size, upload_status, accessibility_score, "
    "prep_source_id, analysis_status, report_url, raw_report, created_at, updated_at"
)

# Record attribute -> column.  Anything not listed cannot be written by the core.
UPDATABLE_FIELDS = {
    "file_name": "file_name",
    "file_url": "file_url",
    "analysis_status": "analysis_status",
    "external_source_id": "prep_source_id",
    "report_url": "report_url",
    "raw_report": "raw_report",
    "accessibility_score": "accessibility_score",
}


def _is_uuid(value: Any) -> bool:
    try:
        uuid.UUID(str(value))
    except (TypeError, ValueError):
        return False
    return True


def _column_value(field_name: str, value: Any) -> Any:
    if field_name == "raw_report":
        if value is None:
            return None
        return Json(issues_to_json(value) if _is_issue_list(value) else value)
    if field_name == "analysis_status":
        if value is None or value == AnalysisStatus.NONE:
            return None
        return AnalysisStatus(value).value
    return value


def _is_issue_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, Issue) for item in value)


class PdfRepository:
    """Reads and writes PDF records, enforcing owner visibility."""

    def get_for_owner(self, pdf_id: str, owner_id: str) -> PdfRecord:
        """Return the record, or raise NotFound when it is missing or not owned by ``owner_id``."""
        if not _is_uuid(pdf_id):
            raise NotFound("PDF not found")
        rows = execute_query(
            f"SELECT {PDF_COLUMNS} FROM pdfs WHERE id = %s AND user_id = %s LIMIT 1",
            (str(pdf_id), owner_id),
            fetch=True,
        )
        if not rows:
            raise NotFound("PDF not found")
        return PdfRecord.from_row(rows[0])

    def list_for_owner(self, owner_id: str) -> List[PdfRecord]:
        rows = execute_query(
            f"SELECT {PDF_COLUMNS} FROM pdfs WHERE user_id = %s ORDER BY created_at DESC",
            (owner_id,),
            fetch=True,
        )
        return [PdfRecord.from_row(row) for row in rows or []]

    def update(self, pdf_id: str, **fields: Any) -> None:
        """Write the given fields in a single statement; ``updated_at`` is always touched."""
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise BadRequest(f"Cannot update fields: {', '.join(sorted(unknown))}")
        assignments: List[str] = []
        params: List[Any] = []
        for field_name, value in fields.items():
            assignments.append(f"{UPDATABLE_FIELDS[field_name]} = %s")
            params.append(_column_value(field_name, value))
        assignments.append("updated_at = NOW()")
        params.append(str(pdf_id))
        execute_query(
            f"UPDATE pdfs SET {', '.join(assignments)} WHERE id = %s",
            tuple(params),
        )

    def record_analysis_started(self, pdf_id: str, source_id: str) -> None:
        try:
            execute_query(
                "INSERT INTO pdf_analyses (pdf_id, source_id, status) VALUES (%s, %s, %s)",
                (str(pdf_id), source_id, AnalysisStatus.QUEUED.value),
            )
        except AccesslyError:
            logger.warning("[Repository] Could not record analysis start for %s", pdf_id)

    def record_analysis_status(
        self,
        source_id: str,
        status: AnalysisStatus,
        *,
        report_url: Optional[str] = None,
        issues: Optional[Sequence[Issue]] = None,
        error: Optional[str] = None,
    ) -> None:
        try:
            execute_query(
                """
                UPDATE pdf_analyses
                SET status = %s,
                    report_url = COALESCE(%s, report_url),
                    raw_report = COALESCE(%s, raw_report),
                    error_message = %s,
                    updated_at = NOW()
                WHERE source_id = %s
                """,
                (
                    status.value,
                    report_url,
                    Json(issues_to_json(issues)) if issues is not None else None,
                    error,
                    source_id,
                ),
            )
        except AccesslyError:
            logger.warning("[Repository] Could not record analysis status for %s", source_id)

    def latest_analysis(self, pdf_id: str) -> Optional[Dict[str, Any]]:
        """Most recent ``pdf_analyses`` row for the PDF, or None."""
        rows = execute_query(
            """
            SELECT id, pdf_id, source_id, status, report_url, raw_report, error_message,
                   created_at, updated_at
            FROM pdf_analyses WHERE pdf_id = %s ORDER BY created_at DESC LIMIT 1
            """,
            (str(pdf_id),),
            fetch=True,
        )
        return rows[0] if rows else None
