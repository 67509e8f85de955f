"""Utilities for writing document metadata and a PDF/UA-identified XMP stream."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import pikepdf
from pikepdf import Dictionary, Name, Stream

logger = logging.getLogger(__name__)

PDFUA_NAMESPACE = "http://www.aiim.org/pdfua/ns/id/"
PDFUA_PART = "{" + PDFUA_NAMESPACE + "}part"


def _escape_xml(value: str) -> str:
    """Return a minimally escaped XML-safe string."""
    replacements = {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&apos;",
    }
    escaped = str(value or "")
    for needle, replacement in replacements.items():
        escaped = escaped.replace(needle, replacement)
    return escaped


def build_pdfua_xmp(
    title: str,
    author: Optional[str] = None,
    subject: Optional[str] = None,
    language: Optional[str] = None,
) -> bytes:
    """Construct an XMP packet carrying dc:title and the PDF/UA part number."""
    entries = []
    if author:
        entries.append(
            f"""    <dc:creator>
      <rdf:Seq>
        <rdf:li>{_escape_xml(author)}</rdf:li>
      </rdf:Seq>
    </dc:creator>
"""
        )
    if subject:
        entries.append(
            f"""    <dc:description>
      <rdf:Alt>
        <rdf:li xml:lang="x-default">{_escape_xml(subject)}</rdf:li>
      </rdf:Alt>
    </dc:description>
"""
        )
    if language:
        entries.append(
            f"""    <dc:language>
      <rdf:Bag>
        <rdf:li>{_escape_xml(language)}</rdf:li>
      </rdf:Bag>
    </dc:language>
"""
        )

    packet = f"""<?xpacket begin="" id="W5M0MpCehiHzreSzNTczkc9d"?>
<x:xmpmeta xmlns:x="adobe:ns:meta/">
 <rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">
  <rdf:Description rdf:about=""
    xmlns:dc="http://purl.org/dc/elements/1.1/"
    xmlns:pdf="http://ns.adobe.com/pdf/1.3/"
    xmlns:pdfuaid="{PDFUA_NAMESPACE}">
    <dc:title>
      <rdf:Alt>
        <rdf:li xml:lang="x-default">{_escape_xml(title or "Untitled Document")}</rdf:li>
      </rdf:Alt>
    </dc:title>
{"".join(entries)}    <pdfuaid:part>1</pdfuaid:part>
  </rdf:Description>
 </rdf:RDF>
</x:xmpmeta>
<?xpacket end="w"?>"""
    return packet.encode("utf-8")


def write_catalog_metadata(pdf: pikepdf.Pdf, metadata_packet: bytes) -> Tuple[bool, bool]:
    """
    Attach or update the catalog /Metadata stream with the supplied XMP packet.

    Returns a tuple of (stream_updated, stream_created).
    """
    existing = pdf.Root.get("/Metadata")
    if isinstance(existing, Stream):
        existing.write(metadata_packet)
        existing.stream_dict[Name("/Type")] = Name("/Metadata")
        existing.stream_dict[Name("/Subtype")] = Name("/XML")
        return True, False

    metadata_stream = Stream(pdf, metadata_packet)
    metadata_stream.stream_dict = Dictionary(Type=Name("/Metadata"), Subtype=Name("/XML"))
    pdf.Root.Metadata = pdf.make_indirect(metadata_stream)
    return True, True


def apply_document_info(
    pdf: pikepdf.Pdf,
    *,
    title: Optional[str] = None,
    author: Optional[str] = None,
    subject: Optional[str] = None,
    producer: Optional[str] = None,
    creator: Optional[str] = None,
) -> None:
    """Overwrite the supplied DocInfo entries, creating the dictionary if needed."""
    if "/Info" not in pdf.trailer:
        pdf.trailer.Info = pdf.make_indirect(Dictionary())
    docinfo = pdf.docinfo
    for key, value in (
        ("/Title", title),
        ("/Author", author),
        ("/Subject", subject),
        ("/Producer", producer),
        ("/Creator", creator),
    ):
        if value:
            docinfo[Name(key)] = pikepdf.String(value)


def ensure_pdfua_metadata_stream(
    pdf: pikepdf.Pdf,
    title: str,
    *,
    author: Optional[str] = None,
    subject: Optional[str] = None,
    language: Optional[str] = None,
) -> bool:
    """
    Ensure the catalog carries XMP metadata with dc:title and ``pdfuaid:part``.

    Existing XMP is edited in place through pikepdf's metadata API; if that
    cannot be read, a fresh packet is written.  Returns True when anything
    changed.
    """
    safe_title = str(title or "").strip() or "Untitled Document"
    changed = False
    try:
        with pdf.open_metadata(set_pikepdf_as_editor=False, update_docinfo=False) as meta:
            if not str(meta.get("dc:title") or "").strip():
                meta["dc:title"] = safe_title
                changed = True
            if str(meta.get(PDFUA_PART) or "") != "1":
                meta[PDFUA_PART] = "1"
                changed = True
            if author and not meta.get("dc:creator"):
                meta["dc:creator"] = [author]
                changed = True
            if subject and not meta.get("dc:description"):
                meta["dc:description"] = subject
                changed = True
            if language and not meta.get("dc:language"):
                meta["dc:language"] = {language}
                changed = True
        return changed or "/Metadata" in pdf.Root
    except Exception as exc:
        logger.warning("[Metadata] Rebuilding unreadable XMP packet: %s", exc)

    write_catalog_metadata(pdf, build_pdfua_xmp(safe_title, author, subject, language))
    return True
