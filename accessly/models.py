"""Record and issue types persisted in the ``pdfs`` table."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger("accessly-models")


class AnalysisStatus(str, Enum):
    NONE = "none"
    QUEUED = "queued"
    STARTED = "started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def from_db(cls, value: Optional[str]) -> "AnalysisStatus":
        if not value:
            return cls.NONE
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.IN_PROGRESS


# Statuses during which a second analysis must not be started.
ACTIVE_OR_DONE_STATUSES = {
    AnalysisStatus.QUEUED,
    AnalysisStatus.STARTED,
    AnalysisStatus.IN_PROGRESS,
    AnalysisStatus.COMPLETED,
}

_ISSUE_KEYS = (
    "id",
    "page",
    "type",
    "severity",
    "description",
    "suggestion",
    "wcagReference",
    "fixed",
    "fixedAt",
    "actuallyFixed",
)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _stored_description(value: Any) -> str:
    return "No description available" if value is None else str(value)


@dataclass
class Issue:
    """One normalized accessibility finding as exposed to clients."""

    id: int
    page: Optional[int]
    type: str
    severity: str
    description: str
    suggestion: Optional[str] = None
    wcag_reference: Optional[str] = None
    fixed: bool = False
    fixed_at: Optional[str] = None
    actually_fixed: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def subtype(self) -> str:
        if " - " in self.type:
            return self.type.split(" - ", 1)[1]
        return self.type

    def mark_fixed(self, actually_fixed: bool, fixed_at: Optional[str] = None) -> "Issue":
        return replace(
            self,
            fixed=True,
            fixed_at=fixed_at or utc_now_iso(),
            actually_fixed=bool(actually_fixed),
            extra=dict(self.extra),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "page": self.page,
                "type": self.type,
                "severity": self.severity,
                "description": self.description,
                "suggestion": self.suggestion,
                "wcagReference": self.wcag_reference,
                "fixed": self.fixed,
                "fixedAt": self.fixed_at,
                "actuallyFixed": self.actually_fixed,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Issue":
        return cls(
            id=int(data.get("id")),
            page=data.get("page"),
            type=str(data.get("type") or "Unknown Category - Unknown"),
            severity=str(data.get("severity") or "medium"),
            description=_stored_description(data.get("description")),
            suggestion=data.get("suggestion"),
            wcag_reference=data.get("wcagReference"),
            fixed=bool(data.get("fixed", False)),
            fixed_at=data.get("fixedAt"),
            actually_fixed=bool(data.get("actuallyFixed", False)),
            extra={k: v for k, v in data.items() if k not in _ISSUE_KEYS},
        )


def issues_from_json(value: Any) -> Optional[List[Issue]]:
    """Decode a ``raw_report`` column value; ``None`` when nothing is stored."""
    if value is None:
        return None
    if isinstance(value, (str, bytes)):
        try:
            value = json.loads(value)
        except ValueError:
            return None
    if not isinstance(value, list):
        return None
    issues: List[Issue] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        try:
            issues.append(Issue.from_dict(item))
        except (TypeError, ValueError):
            logger.warning("[Models] Skipping stored issue with invalid id %r", item.get("id"))
    return issues


def issues_to_json(issues: Iterable[Issue]) -> List[Dict[str, Any]]:
    return [issue.to_dict() for issue in issues]


@dataclass
class PdfRecord:
    id: str
    owner_id: str
    file_name: str
    file_url: Optional[str] = None
    file_size: Optional[int] = None
    upload_status: Optional[str] = None
    analysis_status: AnalysisStatus = AnalysisStatus.NONE
    external_source_id: Optional[str] = None
    report_url: Optional[str] = None
    raw_report: Optional[List[Issue]] = None
    accessibility_score: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "PdfRecord":
        score = row.get("accessibility_score")
        return cls(
            id=str(row.get("id")),
            owner_id=str(row.get("user_id")),
            file_name=row.get("file_name") or "",
            file_url=row.get("file_url"),
            file_size=row.get("file_size"),
            upload_status=row.get("upload_status"),
            analysis_status=AnalysisStatus.from_db(row.get("analysis_status")),
            external_source_id=row.get("prep_source_id"),
            report_url=row.get("report_url"),
            raw_report=issues_from_json(row.get("raw_report")),
            accessibility_score=int(score) if score is not None else None,
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.owner_id,
            "fileName": self.file_name,
            "fileUrl": self.file_url,
            "fileSize": self.file_size,
            "uploadStatus": self.upload_status,
            "analysisStatus": self.analysis_status.value,
            "prepSourceId": self.external_source_id,
            "reportUrl": self.report_url,
            "rawReport": issues_to_json(self.raw_report) if self.raw_report is not None else None,
            "accessibilityScore": self.accessibility_score,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
