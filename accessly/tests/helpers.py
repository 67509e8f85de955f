"""In-memory collaborators and builders shared by the test modules."""

import io
from dataclasses import replace

import jwt
import pikepdf

from accessly.exceptions import NotFound, ServiceUnavailable
from accessly.models import AnalysisStatus, Issue
from accessly.storage import StorageBackend, StoredFile, object_path_from_url

JWT_SECRET = "test-secret"
OWNER_ID = "user_123"
STORAGE_BASE = "https://project.supabase.test/storage/v1/object/public/pdfs"


def make_pdf_bytes(pages=1, title=None):
    pdf = pikepdf.new()
    for _ in range(pages):
        pdf.add_blank_page(page_size=(612, 792))
    if title:
        pdf.docinfo["/Title"] = title
    buffer = io.BytesIO()
    pdf.save(buffer)
    return buffer.getvalue()


def make_token(sub=OWNER_ID, secret=JWT_SECRET, **claims):
    return jwt.encode({"sub": sub, **claims}, secret, algorithm="HS256")


def make_issue(issue_id, type_="Document - Title", fixed=False, **extra):
    return Issue(
        id=issue_id,
        page=None,
        type=type_,
        severity="high",
        description="desc",
        fixed=fixed,
        extra=dict(extra),
    )


class MemoryStorage(StorageBackend):
    def __init__(self):
        self.objects = {}
        self.fail_downloads = False
        self.fail_uploads = False

    def download(self, path):
        if self.fail_downloads:
            raise ServiceUnavailable("download unavailable")
        if path not in self.objects:
            raise NotFound(f"{path} missing")
        return self.objects[path]

    def upload(self, path, data, content_type="application/pdf"):
        if self.fail_uploads:
            raise ServiceUnavailable("upload unavailable")
        self.objects[path] = bytes(data)
        return StoredFile(path=path, public_url=self.public_url(path), size=len(data))

    def public_url(self, path):
        return f"{STORAGE_BASE}/{path}"

    def path_from_url(self, url):
        return object_path_from_url(url, bucket="pdfs")


class FakeRepository:
    _FIELD_MAP = {
        "file_name": "file_name",
        "file_url": "file_url",
        "analysis_status": "analysis_status",
        "external_source_id": "external_source_id",
        "report_url": "report_url",
        "raw_report": "raw_report",
        "accessibility_score": "accessibility_score",
    }

    def __init__(self):
        self.records = {}
        self.updates = []
        self.history = []
        self.analyses = {}

    def add(self, record):
        self.records[record.id] = record
        return record

    def get_for_owner(self, pdf_id, owner_id):
        record = self.records.get(str(pdf_id))
        if record is None or record.owner_id != owner_id:
            raise NotFound("PDF not found")
        return record

    def list_for_owner(self, owner_id):
        return [record for record in self.records.values() if record.owner_id == owner_id]

    def update(self, pdf_id, **fields):
        self.updates.append((pdf_id, fields))
        record = self.records[str(pdf_id)]
        changes = {self._FIELD_MAP[name]: value for name, value in fields.items()}
        if "analysis_status" in changes:
            changes["analysis_status"] = AnalysisStatus(changes["analysis_status"] or "none")
        if changes.get("raw_report") is not None:
            changes["raw_report"] = list(changes["raw_report"])
        self.records[str(pdf_id)] = replace(record, **changes)

    def record_analysis_started(self, pdf_id, source_id):
        self.history.append(("started", pdf_id, source_id))

    def record_analysis_status(self, source_id, status, **kwargs):
        self.history.append((status.value, source_id, kwargs))

    def latest_analysis(self, pdf_id):
        return self.analyses.get(str(pdf_id))


class FakeChecker:
    def __init__(self):
        self.submitted = []
        self.source_id = "src-1"
        self.poll_result = None
        self.downloaded_report = None
        self.download_error = None
        self.auto_tagged = None

    def submit_for_check(self, file_bytes, file_name):
        self.submitted.append((file_name, len(file_bytes)))
        return self.source_id

    def poll_status(self, source_id):
        return self.poll_result

    def download_report(self, report_url):
        if self.download_error is not None:
            raise self.download_error
        return self.downloaded_report

    def auto_tag_pdf(self, file_bytes, file_name):
        return self.auto_tagged if self.auto_tagged is not None else file_bytes
