"""Turn raw checker payloads into the flat, client-facing issue list.

Checker responses are loosely shaped JSON.  They are parsed once into a typed
report (``CategorizedReport`` or ``UnrecognizedReport``) and the rest of the
service only ever sees that shape.  Normalization itself is pure: identical
reports always produce identical issue lists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, Union

from accessly.models import Issue

logger = logging.getLogger(__name__)

REPORTABLE_STATUSES = {"Failed": "high", "Manual": "medium"}
NO_DESCRIPTION = "No description available"


@dataclass(frozen=True)
class QAPair:
    question: str
    answer: str


@dataclass(frozen=True)
class CheckerEntry:
    type: Optional[str]
    status: Optional[str]
    page: Optional[int] = None
    description: Union[Tuple[QAPair, ...], str, None] = None
    error: Optional[str] = None
    wcag: Optional[str] = None


@dataclass(frozen=True)
class CheckerCategory:
    type: Optional[str]
    status: Optional[str]
    entries: Tuple[CheckerEntry, ...] = ()


@dataclass(frozen=True)
class CategorizedReport:
    categories: Tuple[CheckerCategory, ...] = ()


@dataclass(frozen=True)
class UnrecognizedReport:
    raw: Any = None
    reason: str = "unrecognized payload"


CheckerReport = Union[CategorizedReport, UnrecognizedReport]


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _page(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value in (None, "", 0):
        return None
    try:
        page = int(value)
    except (TypeError, ValueError):
        return None
    return page or None


def _parse_description(value: Any) -> Union[Tuple[QAPair, ...], str, None]:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        pairs = []
        for item in value:
            if not isinstance(item, dict):
                continue
            pairs.append(
                QAPair(
                    question=_text(item.get("question", item.get("Question"))) or "",
                    answer=_text(item.get("answer", item.get("Answer"))) or "",
                )
            )
        return tuple(pairs)
    return None


def _parse_entry(item: Any) -> Optional[CheckerEntry]:
    if not isinstance(item, dict):
        return None
    return CheckerEntry(
        type=_text(item.get("type")),
        status=_text(item.get("status")),
        page=_page(item.get("page")),
        description=_parse_description(item.get("Description")),
        error=_text(item.get("error")),
        wcag=_text(item.get("wcag")) or _text(item.get("wcagReference")),
    )


def _parse_category(item: Any) -> Optional[CheckerCategory]:
    if not isinstance(item, dict):
        return None
    raw_entries = item.get("ErrorInfo")
    entries = []
    if isinstance(raw_entries, list):
        for raw_entry in raw_entries:
            entry = _parse_entry(raw_entry)
            if entry is not None:
                entries.append(entry)
    return CheckerCategory(
        type=_text(item.get("type")),
        status=_text(item.get("status")),
        entries=tuple(entries),
    )


def _locate_categories(payload: Any) -> Optional[list]:
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return None
    result = payload.get("result")
    candidates = []
    if isinstance(result, dict):
        candidates.append(result.get("checkerData"))
    candidates.append(payload.get("checkerData"))
    candidates.append(payload.get("issues"))
    if isinstance(result, dict):
        candidates.append(result.get("issues"))
    for candidate in candidates:
        if isinstance(candidate, list):
            return candidate
    return None


def parse_checker_report(payload: Any) -> CheckerReport:
    """Parse a checker status body or downloaded report into a typed report."""
    if isinstance(payload, (CategorizedReport, UnrecognizedReport)):
        return payload
    raw_categories = _locate_categories(payload)
    if raw_categories is None:
        return UnrecognizedReport(raw=payload, reason="no category list found")
    categories = []
    for raw_category in raw_categories:
        category = _parse_category(raw_category)
        if category is not None:
            categories.append(category)
    if raw_categories and not categories:
        return UnrecognizedReport(raw=payload, reason="category list has no objects")
    return CategorizedReport(categories=tuple(categories))


def _resolve_description(entry: CheckerEntry) -> str:
    if isinstance(entry.description, tuple):
        for pair in entry.description:
            if "Why" in pair.question:
                if pair.answer:
                    return pair.answer
                break
    elif isinstance(entry.description, str):
        return entry.description
    if entry.error:
        return entry.error
    return NO_DESCRIPTION


def _resolve_suggestion(entry: CheckerEntry) -> Optional[str]:
    if not isinstance(entry.description, tuple):
        return None
    for pair in entry.description:
        if "How" in pair.question:
            return pair.answer or None
    return None


def normalize_issues(report: Union[CheckerReport, Any]) -> List[Issue]:
    """Flatten a checker report into issues numbered 1..N in service order.

    Only entries whose status is exactly ``Failed`` or ``Manual`` survive.
    Unrecognized payloads and reports without categories both yield ``[]``.
    """
    report = parse_checker_report(report)
    if isinstance(report, UnrecognizedReport):
        logger.warning("[Normalizer] Unrecognized checker payload: %s", report.reason)
        return []

    issues: List[Issue] = []
    for category in report.categories:
        category_name = category.type or "Unknown Category"
        for entry in category.entries:
            severity = REPORTABLE_STATUSES.get(entry.status or "")
            if severity is None:
                continue
            issues.append(
                Issue(
                    id=len(issues) + 1,
                    page=entry.page,
                    type=f"{category_name} - {entry.type or 'Unknown'}",
                    severity=severity,
                    description=_resolve_description(entry),
                    suggestion=_resolve_suggestion(entry),
                    wcag_reference=entry.wcag,
                )
            )
    return issues


def is_recognized(report: CheckerReport) -> bool:
    return isinstance(report, CategorizedReport)


def category_count(report: CheckerReport) -> int:
    if isinstance(report, CategorizedReport):
        return len(report.categories)
    return 0


__all__: Sequence[str] = [
    "QAPair",
    "CheckerEntry",
    "CheckerCategory",
    "CategorizedReport",
    "UnrecognizedReport",
    "CheckerReport",
    "parse_checker_report",
    "normalize_issues",
    "is_recognized",
    "category_count",
]
