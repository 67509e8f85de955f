"""
Fix orchestration: mutate the stored PDF, re-upload it and update the report.

Fix requests always succeed once the issue exists.  When the PDF cannot be
downloaded, mutated or re-uploaded the issue is still marked fixed, with
``actuallyFixed`` false and the record's file pointer untouched.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from werkzeug.utils import secure_filename

from accessly.exceptions import AccesslyError, BadRequest, NotFound, PdfFixError
from accessly.models import AnalysisStatus, Issue, PdfRecord, issues_to_json, utc_now_iso
from accessly.pdf_fixer import FixMetadata, FixOptions, fix_multiple_issues, fix_pdf_issue
from accessly.storage import StorageBackend, StoredFile
from accessly.utils.compliance_scoring import calculate_accessibility_score, count_unfixed

logger = logging.getLogger("accessly-fixes")


@dataclass
class FixOutcome:
    issues: List[Issue]
    new_score: int
    fixed_count: int
    actually_fixed: bool
    file_url: Optional[str] = None
    file_name: Optional[str] = None

    @property
    def remaining_issues(self) -> int:
        return count_unfixed(self.issues)

    def issues_payload(self) -> List[Dict]:
        return issues_to_json(self.issues)


def versioned_file_name(file_name: str, suffix: str, timestamp_ms: int) -> str:
    """``report.pdf`` -> ``report_<suffix>_<ms>.pdf``."""
    base = os.path.basename(file_name or "") or "document.pdf"
    if base.lower().endswith(".pdf"):
        base = base[:-4]
    return secure_filename(f"{base}_{suffix}_{timestamp_ms}.pdf") or f"document_{suffix}_{timestamp_ms}.pdf"


def _coerce_issue_id(issue_id) -> int:
    try:
        return int(issue_id)
    except (TypeError, ValueError):
        raise NotFound(f"Issue {issue_id} not found")


class FixOrchestrator:
    def __init__(
        self,
        repository,
        storage: StorageBackend,
        clock: Callable[[], float] = time.time,
    ):
        self.repository = repository
        self.storage = storage
        self._clock = clock

    def _timestamp_ms(self) -> int:
        return int(self._clock() * 1000)

    @staticmethod
    def _require_report(record: PdfRecord) -> List[Issue]:
        if record.raw_report is None:
            raise BadRequest("No accessibility report available for this PDF")
        return record.raw_report

    def _download(self, record: PdfRecord) -> Optional[bytes]:
        if not record.file_url:
            logger.warning("[FixOrchestrator] PDF %s has no file URL; metadata-only fix", record.id)
            return None
        try:
            return self.storage.download_url(record.file_url)
        except AccesslyError as exc:
            logger.warning("[FixOrchestrator] Download failed for %s: %s", record.id, exc)
            return None

    def _upload(self, record: PdfRecord, pdf_bytes: bytes, suffix: str) -> Optional[StoredFile]:
        file_name = versioned_file_name(record.file_name, suffix, self._timestamp_ms())
        try:
            return self.storage.upload(f"{record.owner_id}/{file_name}", pdf_bytes)
        except AccesslyError as exc:
            logger.warning("[FixOrchestrator] Upload failed for %s: %s", record.id, exc)
            return None

    def _persist(self, record: PdfRecord, issues: List[Issue], stored: Optional[StoredFile]) -> int:
        score = calculate_accessibility_score(issues)
        fields = {"raw_report": issues, "accessibility_score": score}
        if stored is not None:
            fields["file_url"] = stored.public_url
            fields["file_name"] = os.path.basename(stored.path)
        self.repository.update(record.id, **fields)
        return score

    # ------------------------------------------------------------------

    def fix_issue(self, record: PdfRecord, issue_id, issue_type: Optional[str] = None) -> FixOutcome:
        issues = self._require_report(record)
        wanted = _coerce_issue_id(issue_id)
        index = next((i for i, issue in enumerate(issues) if issue.id == wanted), None)
        if index is None:
            raise NotFound(f"Issue {issue_id} not found")
        target = issues[index]
        fix_type = issue_type or target.type
        logger.info("[FixOrchestrator] Fixing issue %s (%s) on PDF %s", wanted, fix_type, record.id)

        stored: Optional[StoredFile] = None
        original = self._download(record)
        if original is not None:
            options = FixOptions(issue_type=fix_type, metadata=FixMetadata.for_file(record.file_name))
            try:
                fixed_bytes = fix_pdf_issue(original, fix_type, options)
            except PdfFixError as exc:
                logger.warning("[FixOrchestrator] PDF mutation failed for %s: %s", record.id, exc)
            else:
                stored = self._upload(record, fixed_bytes, "fixed")

        updated = list(issues)
        updated[index] = target.mark_fixed(actually_fixed=stored is not None)
        score = self._persist(record, updated, stored)
        logger.info(
            "[FixOrchestrator] Issue %s fixed (actuallyFixed=%s); score now %s",
            wanted,
            stored is not None,
            score,
        )
        return FixOutcome(
            issues=updated,
            new_score=score,
            fixed_count=1,
            actually_fixed=stored is not None,
            file_url=stored.public_url if stored else record.file_url,
            file_name=os.path.basename(stored.path) if stored else record.file_name,
        )

    def fix_all(self, record: PdfRecord) -> FixOutcome:
        issues = self._require_report(record)
        pending = [issue for issue in issues if not issue.fixed]
        logger.info("[FixOrchestrator] Fixing %d unfixed issues on PDF %s", len(pending), record.id)

        applied_ids = set()
        stored: Optional[StoredFile] = None
        original = self._download(record) if pending else None
        if original is not None:
            metadata = FixMetadata.for_file(record.file_name)
            items: List[Tuple[str, FixOptions]] = [
                (issue.type, FixOptions(issue_type=issue.type, metadata=metadata)) for issue in pending
            ]
            try:
                result = fix_multiple_issues(original, items)
            except PdfFixError as exc:
                logger.warning("[FixOrchestrator] PDF mutation failed for %s: %s", record.id, exc)
            else:
                if result.any_applied:
                    stored = self._upload(record, result.pdf_bytes, "fixed_all")
                if stored is not None:
                    applied_ids = {
                        issue.id for issue, outcome in zip(pending, result.outcomes) if outcome.applied
                    }

        fixed_at = utc_now_iso()
        updated = [
            issue if issue.fixed else issue.mark_fixed(issue.id in applied_ids, fixed_at)
            for issue in issues
        ]
        score = self._persist(record, updated, stored)
        return FixOutcome(
            issues=updated,
            new_score=score,
            fixed_count=len(pending),
            actually_fixed=bool(applied_ids),
            file_url=stored.public_url if stored else record.file_url,
            file_name=os.path.basename(stored.path) if stored else record.file_name,
        )

    def mark_metadata_only(
        self, record: PdfRecord, matches: Callable[[Issue], bool], marker: str
    ) -> FixOutcome:
        """Mark matching unfixed issues fixed without touching the PDF bytes."""
        issues = record.raw_report or []
        fixed_at = utc_now_iso()
        updated: List[Issue] = []
        count = 0
        for issue in issues:
            if not issue.fixed and matches(issue):
                issue = issue.mark_fixed(actually_fixed=False, fixed_at=fixed_at)
                issue.extra[marker] = True
                count += 1
            updated.append(issue)
        score = self._persist(record, updated, None)
        return FixOutcome(issues=updated, new_score=score, fixed_count=count, actually_fixed=False)

    def auto_tag(self, record: PdfRecord, checker) -> Dict[str, object]:
        """Replace the PDF with an auto-tagged version and start a fresh analysis."""
        if not record.file_url:
            raise BadRequest("PDF has no stored file")
        original = self.storage.download_url(record.file_url)
        tagged = checker.auto_tag_pdf(original, record.file_name or "document.pdf")
        file_name = versioned_file_name(record.file_name, "autofix", self._timestamp_ms())
        stored = self.storage.upload(f"{record.owner_id}/{file_name}", tagged)
        source_id = checker.submit_for_check(tagged, file_name)
        self.repository.update(
            record.id,
            file_url=stored.public_url,
            file_name=file_name,
            external_source_id=source_id,
            analysis_status=AnalysisStatus.STARTED,
            raw_report=None,
            accessibility_score=None,
        )
        self.repository.record_analysis_started(record.id, source_id)
        logger.info("[FixOrchestrator] Auto-tagged PDF %s; new analysis %s", record.id, source_id)
        return {
            "newFileUrl": stored.public_url,
            "newFileName": file_name,
            "newSourceId": source_id,
            "originalSize": len(original),
            "fixedSize": len(tagged),
        }
