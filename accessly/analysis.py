"""Starting, polling and refreshing checker analyses for stored PDFs."""

from __future__ import annotations

import logging
from typing import Any, Dict

from accessly.checker_client import CheckResult, CheckStatus, PrepClient
from accessly.exceptions import AccesslyError, BadRequest, Conflict, NotFound, UpstreamError
from accessly.issue_normalizer import (
    CategorizedReport,
    category_count,
    is_recognized,
    normalize_issues,
)
from accessly.models import (
    ACTIVE_OR_DONE_STATUSES,
    AnalysisStatus,
    PdfRecord,
    issues_from_json,
    issues_to_json,
)
from accessly.storage import StorageBackend
from accessly.utils.compliance_scoring import calculate_accessibility_score

logger = logging.getLogger("accessly-analysis")

_PENDING_TO_RECORD = {
    CheckStatus.QUEUED: AnalysisStatus.QUEUED,
    CheckStatus.IN_PROGRESS: AnalysisStatus.IN_PROGRESS,
    CheckStatus.UNKNOWN: AnalysisStatus.IN_PROGRESS,
}


def _record_status(status: CheckStatus) -> AnalysisStatus:
    if status is CheckStatus.COMPLETED:
        return AnalysisStatus.COMPLETED
    if status is CheckStatus.FAILED:
        return AnalysisStatus.FAILED
    return _PENDING_TO_RECORD[status]


class AnalysisService:
    def __init__(self, repository, storage: StorageBackend, checker: PrepClient):
        self.repository = repository
        self.storage = storage
        self.checker = checker

    def start(self, record: PdfRecord) -> Dict[str, Any]:
        if record.analysis_status in ACTIVE_OR_DONE_STATUSES:
            raise Conflict(
                "Analysis already started or completed",
                details={"status": record.analysis_status.value},
            )
        if not record.file_url:
            raise BadRequest("PDF has no stored file to analyse")

        pdf_bytes = self.storage.download_url(record.file_url)
        source_id = self.checker.submit_for_check(pdf_bytes, record.file_name or "document.pdf")
        self.repository.update(
            record.id,
            external_source_id=source_id,
            analysis_status=AnalysisStatus.STARTED,
        )
        self.repository.record_analysis_started(record.id, source_id)
        logger.info("[Analysis] Started analysis %s for PDF %s", source_id, record.id)
        return {"success": True, "sourceId": source_id, "message": "Analysis started"}

    def _store_completed(self, record: PdfRecord, result: CheckResult, report) -> Dict[str, Any]:
        issues = normalize_issues(report)
        score = calculate_accessibility_score(issues)
        self.repository.update(
            record.id,
            analysis_status=AnalysisStatus.COMPLETED,
            report_url=result.report_url,
            raw_report=issues,
            accessibility_score=score,
        )
        self.repository.record_analysis_status(
            record.external_source_id,
            AnalysisStatus.COMPLETED,
            report_url=result.report_url,
            issues=issues,
        )
        logger.info("[Analysis] PDF %s analysis complete: %d issues, score %d", record.id, len(issues), score)
        return {
            "ok": True,
            "status": AnalysisStatus.COMPLETED.value,
            "reportUrl": result.report_url,
            "issues": issues_to_json(issues),
            "accessibilityScore": score,
        }

    def status(self, record: PdfRecord) -> Dict[str, Any]:
        if not record.external_source_id:
            raise BadRequest("Analysis has not been started for this PDF")

        if record.analysis_status is AnalysisStatus.COMPLETED and record.raw_report is not None:
            return {
                "ok": True,
                "status": AnalysisStatus.COMPLETED.value,
                "reportUrl": record.report_url,
                "issues": issues_to_json(record.raw_report),
                "accessibilityScore": record.accessibility_score,
                "cached": True,
            }

        result = self.checker.poll_status(record.external_source_id)
        if result.status is CheckStatus.COMPLETED:
            return self._store_completed(record, result, result.report)

        if result.status is CheckStatus.FAILED:
            self.repository.update(record.id, analysis_status=AnalysisStatus.FAILED)
            self.repository.record_analysis_status(
                record.external_source_id, AnalysisStatus.FAILED, error=result.error
            )
            logger.warning("[Analysis] Checker reported failure for PDF %s: %s", record.id, result.error)
            raise UpstreamError("Accessibility analysis failed", details=result.error)

        pending = _record_status(result.status)
        if pending is not record.analysis_status:
            self.repository.update(record.id, analysis_status=pending)
        return {"ok": True, "status": pending.value, "issues": []}

    def force_refresh(self, record: PdfRecord) -> Dict[str, Any]:
        if not record.external_source_id:
            raise NotFound("No analysis found for this PDF")

        result = self.checker.poll_status(record.external_source_id)
        report = result.report
        if result.report_url:
            try:
                downloaded = self.checker.download_report(result.report_url)
            except AccesslyError as exc:
                logger.warning("[Analysis] Report download failed, using inline data: %s", exc)
            else:
                if isinstance(downloaded, CategorizedReport) and downloaded.categories:
                    report = downloaded

        if not category_count(report):
            logger.warning("[Analysis] No checker categories in refresh for PDF %s", record.id)
            return {
                "success": False,
                "error": "No accessibility issues found in checker response",
                "status": result.status.value,
                "issues": [],
                "issueCount": 0,
                "reportUrl": result.report_url,
                "reportRecognized": is_recognized(report),
            }

        issues = normalize_issues(report)
        status = _record_status(result.status)
        score = calculate_accessibility_score(issues)
        self.repository.update(
            record.id,
            analysis_status=status,
            report_url=result.report_url,
            raw_report=issues,
            accessibility_score=score,
        )
        if status is AnalysisStatus.COMPLETED:
            self.repository.record_analysis_status(
                record.external_source_id, status, report_url=result.report_url, issues=issues
            )
        return {
            "success": True,
            "status": status.value,
            "issues": issues_to_json(issues),
            "issueCount": len(issues),
            "reportUrl": result.report_url,
            "accessibilityScore": score,
            "reportRecognized": True,
        }

    def latest(self, record: PdfRecord) -> Dict[str, Any]:
        """The most recent analysis history entry for the PDF."""
        row = self.repository.latest_analysis(record.id)
        if row is None:
            return {"ok": True, "analysis": None, "message": "No analysis found for this PDF"}

        status = AnalysisStatus.from_db(row.get("status"))
        issues = issues_from_json(row.get("raw_report")) if status is AnalysisStatus.COMPLETED else None
        return {
            "ok": True,
            "analysis": {
                "id": row.get("id"),
                "pdfId": record.id,
                "sourceId": row.get("source_id"),
                "status": status.value,
                "reportUrl": row.get("report_url"),
                "errorMessage": row.get("error_message"),
                "createdAt": row.get("created_at"),
                "updatedAt": row.get("updated_at"),
                "issues": issues_to_json(issues) if issues is not None else None,
            },
            "pdf": {
                "id": record.id,
                "fileName": record.file_name,
                "accessibilityScore": record.accessibility_score,
            },
        }
