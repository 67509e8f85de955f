"""
PDF mutation for remediating individual accessibility issues.

Fixes operate on catalog-level structures (MarkInfo, ViewerPreferences,
/Lang, DocInfo, XMP, AcroForm field tooltips) with pikepdf.  Content-level
problems such as colour contrast or missing alt text cannot be repaired
automatically; those dispatch to the closest structural improvement.
"""

from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import pikepdf
from pikepdf import Dictionary, Name

from accessly.exceptions import PdfFixError
from accessly.utils.metadata_helpers import (
    apply_document_info,
    build_pdfua_xmp,
    ensure_pdfua_metadata_stream,
    write_catalog_metadata,
)

logger = logging.getLogger(__name__)

PRODUCER = "Accessly - Accessibility Fixer"
CREATOR = "Accessly"


@dataclass
class FixMetadata:
    title: Optional[str] = None
    author: str = "Accessly"
    subject: str = "Accessibility-fixed PDF"
    language: str = "en-US"

    @classmethod
    def for_file(cls, file_name: Optional[str]) -> "FixMetadata":
        """Metadata synthesized for a stored file: title is the name minus ``.pdf``."""
        base = os.path.basename(file_name or "")
        if base.lower().endswith(".pdf"):
            base = base[:-4]
        return cls(title=base or None)


@dataclass
class FixOptions:
    issue_type: str
    metadata: FixMetadata = field(default_factory=FixMetadata)


@dataclass
class FixItemOutcome:
    issue_type: str
    action: str
    applied: bool
    error: Optional[str] = None


@dataclass
class MultiFixResult:
    pdf_bytes: bytes
    outcomes: List[FixItemOutcome]

    @property
    def any_applied(self) -> bool:
        return any(outcome.applied for outcome in self.outcomes)


def normalize_issue_type(issue_type: str) -> str:
    """``"Document - Title"`` -> ``"title"``; types without a category just lower-case."""
    value = str(issue_type or "")
    if " - " in value:
        value = value.split(" - ", 1)[1]
    return value.lower().strip()


def classify_issue_type(issue_type: str) -> str:
    """Return the fix action a given issue type dispatches to."""
    subtype = normalize_issue_type(issue_type)
    if "title" in subtype and "xmp" in subtype:
        return "document_title"
    if "title" in subtype and "window" in subtype:
        return "display_title"
    if "title" in subtype:
        return "document_title"
    if "xmp metadata" in subtype:
        return "xmp_metadata"
    if "pdf/ua" in subtype or "pdfua" in subtype:
        return "pdfua_identifier"
    if "language" in subtype:
        return "language"
    if "mark" in subtype and "tagged" in subtype:
        return "document_structure"
    if "alt text" in subtype or "image" in subtype:
        return "image_alt_text"
    if "form" in subtype and "label" in subtype:
        return "form_field_labels"
    if "color" in subtype or "contrast" in subtype:
        return "color_contrast"
    if "table" in subtype:
        return "table_structure"
    return "general_improvements"


class PdfFixer:
    """Applies issue-specific fixes to an open pikepdf document."""

    def __init__(self, pdf: pikepdf.Pdf, metadata: Optional[FixMetadata] = None):
        self.pdf = pdf
        self.metadata = metadata or FixMetadata()
        self.fixes_applied: List[str] = []

    def apply(self, issue_type: str) -> str:
        action = classify_issue_type(issue_type)
        getattr(self, f"_fix_{action}")()
        return action

    # Catalog helpers

    def _mark_tagged(self):
        self.pdf.Root.MarkInfo = Dictionary({"/Marked": True})
        self._log_fix("Set MarkInfo /Marked true")

    def _display_doc_title(self):
        prefs = self.pdf.Root.get("/ViewerPreferences")
        if not isinstance(prefs, Dictionary):
            prefs = Dictionary()
        prefs.DisplayDocTitle = True
        self.pdf.Root.ViewerPreferences = prefs
        self._log_fix("Set ViewerPreferences /DisplayDocTitle true")

    def _current_title(self) -> str:
        if "/Info" not in self.pdf.trailer:
            return ""
        return str(self.pdf.docinfo.get("/Title", "") or "").strip()

    def _set_language(self, language: str):
        self.pdf.Root.Lang = pikepdf.String(language)
        self._log_fix(f"Set document language to {language}")

    # Individual fixes

    def _fix_document_title(self):
        title = self.metadata.title or "Accessible Document"
        apply_document_info(self.pdf, title=title)
        self._display_doc_title()
        self._log_fix(f"Set document title to {title}")

    def _fix_display_title(self):
        self._display_doc_title()

    def _fix_xmp_metadata(self):
        meta = self.metadata
        title = meta.title or "Untitled Document"
        apply_document_info(
            self.pdf,
            title=title,
            author=meta.author,
            subject=meta.subject,
            producer=PRODUCER,
            creator=CREATOR,
        )
        now = pikepdf.String(_pdf_date(datetime.now(timezone.utc)))
        if "/CreationDate" not in self.pdf.docinfo:
            self.pdf.docinfo[Name("/CreationDate")] = now
        self.pdf.docinfo[Name("/ModDate")] = now
        self._set_language(meta.language)
        write_catalog_metadata(
            self.pdf, build_pdfua_xmp(title, meta.author, meta.subject, meta.language)
        )
        self._log_fix("Wrote XMP metadata packet with PDF/UA identifier")

    def _fix_pdfua_identifier(self):
        meta = self.metadata
        title = self._current_title() or meta.title or "Untitled Document"
        ensure_pdfua_metadata_stream(self.pdf, title, language=meta.language)
        self._log_fix("Ensured PDF/UA identifier in XMP metadata")

    def _fix_language(self):
        language = self.metadata.language or "en-US"
        self._set_language(language)
        ensure_pdfua_metadata_stream(
            self.pdf, self._current_title() or self.metadata.title or "", language=language
        )

    def _fix_document_structure(self):
        self._mark_tagged()
        self._display_doc_title()

    def _fix_image_alt_text(self):
        # Alt text needs per-figure input; only the tagging prerequisite is automatic.
        self._mark_tagged()
        logger.info("[PdfFixer] Image alt text still requires manual or AI-assisted input")

    def _fix_form_field_labels(self):
        acro_form = self.pdf.Root.get("/AcroForm")
        if acro_form is None or "/Fields" not in acro_form:
            logger.info("[PdfFixer] No form fields present")
            return
        for index, form_field in enumerate(_walk_fields(acro_form.Fields), start=1):
            name = str(form_field.get("/T", "") or "").strip()
            if not name:
                name = f"Field_{index}"
                form_field.T = pikepdf.String(name)
            if not str(form_field.get("/TU", "") or "").strip():
                form_field.TU = pikepdf.String(name.replace("_", " "))
                self._log_fix(f"Added accessible label to form field: {name}")

    def _fix_color_contrast(self):
        logger.info("[PdfFixer] Colour contrast requires manual review; no structural change")

    def _fix_table_structure(self):
        self._mark_tagged()
        logger.info("[PdfFixer] Table structure tagging enabled; manual verification recommended")

    def _fix_general_improvements(self):
        self._mark_tagged()
        self._display_doc_title()
        if not self._current_title():
            apply_document_info(self.pdf, title=self.metadata.title or "Accessible Document")
            self._log_fix("Set missing document title")
        self._set_language(self.metadata.language or "en-US")

    def _log_fix(self, description: str):
        self.fixes_applied.append(description)
        logger.debug("[PdfFixer] Fix applied: %s", description)


def _walk_fields(fields: Iterable[Any]):
    for form_field in fields:
        if not isinstance(form_field, Dictionary):
            continue
        yield form_field
        kids = form_field.get("/Kids")
        if kids is not None and "/T" in form_field:
            # Named kids are child fields; nameless kids are widget annotations.
            named = [kid for kid in kids if isinstance(kid, Dictionary) and "/T" in kid]
            yield from _walk_fields(named)


def _pdf_date(moment: datetime) -> str:
    return moment.strftime("D:%Y%m%d%H%M%SZ")


def _open(pdf_bytes: bytes) -> pikepdf.Pdf:
    try:
        return pikepdf.open(io.BytesIO(pdf_bytes))
    except Exception as exc:
        raise PdfFixError(f"Unable to open PDF: {exc}") from exc


def _save(pdf: pikepdf.Pdf) -> bytes:
    buffer = io.BytesIO()
    try:
        pdf.save(buffer)
    except Exception as exc:
        raise PdfFixError(f"Unable to save PDF: {exc}") from exc
    return buffer.getvalue()


def fix_pdf_issue(
    pdf_bytes: bytes, issue_type: str, options: Optional[FixOptions] = None
) -> bytes:
    """Apply the fix for one issue type and return the new document bytes."""
    options = options or FixOptions(issue_type=issue_type)
    logger.info("[PdfFixer] Fixing issue type %r", issue_type)
    with _open(pdf_bytes) as pdf:
        fixer = PdfFixer(pdf, options.metadata)
        try:
            action = fixer.apply(issue_type)
        except Exception as exc:
            raise PdfFixError(f"Fix for {issue_type!r} failed: {exc}") from exc
        result = _save(pdf)
    logger.info("[PdfFixer] Applied %s (%d changes)", action, len(fixer.fixes_applied))
    return result


def fix_multiple_issues(
    pdf_bytes: bytes, items: Sequence[Tuple[str, Optional[FixOptions]]]
) -> MultiFixResult:
    """
    Apply several fixes in one pass.

    A failing item is recorded in its outcome and does not stop the items
    after it.  Raises ``PdfFixError`` only when the document itself cannot be
    opened or saved.
    """
    outcomes: List[FixItemOutcome] = []
    with _open(pdf_bytes) as pdf:
        for issue_type, options in items:
            options = options or FixOptions(issue_type=issue_type)
            fixer = PdfFixer(pdf, options.metadata)
            action = classify_issue_type(issue_type)
            try:
                fixer.apply(issue_type)
                outcomes.append(FixItemOutcome(issue_type=issue_type, action=action, applied=True))
            except Exception as exc:
                logger.error("[PdfFixer] Failed to fix issue %r: %s", issue_type, exc)
                outcomes.append(
                    FixItemOutcome(
                        issue_type=issue_type, action=action, applied=False, error=str(exc)
                    )
                )
        result = _save(pdf)
    logger.info(
        "[PdfFixer] Completed %d/%d fixes",
        sum(1 for outcome in outcomes if outcome.applied),
        len(outcomes),
    )
    return MultiFixResult(pdf_bytes=result, outcomes=outcomes)


__all__ = [
    "FixMetadata",
    "FixOptions",
    "FixItemOutcome",
    "MultiFixResult",
    "PdfFixer",
    "classify_issue_type",
    "normalize_issue_type",
    "fix_pdf_issue",
    "fix_multiple_issues",
]
