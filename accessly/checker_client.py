"""HTTP client for the PREP accessibility checker and its AutoTag service.

Every call authenticates with the ``api-id`` / ``app-key`` header pair.
Transport failures and non-success responses raise ``ServiceUnavailable``;
successful responses that cannot be interpreted raise ``InvalidResponse``.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

import requests

from accessly.exceptions import (
    ConfigurationError,
    InvalidResponse,
    ServiceUnavailable,
    UpstreamError,
)
from accessly.issue_normalizer import CheckerReport, UnrecognizedReport, parse_checker_report
from accessly.settings import CheckerConfig

logger = logging.getLogger(__name__)

CHECK_INIT_PATH = "/pdf-content/pdf/accessibility-check-init/"
CHECK_STATUS_PATH = "/pdf-content/pdf/check-status/"
AUTO_TAG_PATH = "/process/auto-tag/"
AUTO_TAG_PING_PATH = "/process/ping/"


class CheckStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"


_STATUS_ALIASES = {
    "queued": CheckStatus.QUEUED,
    "completed": CheckStatus.COMPLETED,
    "failed": CheckStatus.FAILED,
    "in-progress": CheckStatus.IN_PROGRESS,
    "processing": CheckStatus.IN_PROGRESS,
    "started": CheckStatus.IN_PROGRESS,
}


def map_check_status(raw: Any) -> CheckStatus:
    """Map the service's status string; unrecognized strings count as in progress."""
    if not isinstance(raw, str):
        return CheckStatus.UNKNOWN
    return _STATUS_ALIASES.get(raw.strip().lower(), CheckStatus.IN_PROGRESS)


@dataclass
class CheckResult:
    status: CheckStatus
    report_url: Optional[str] = None
    report: CheckerReport = UnrecognizedReport(reason="no report")
    raw_status: Optional[str] = None
    error: Optional[str] = None


@dataclass
class AutoTagStatus:
    status: str
    url: Optional[str] = None
    progress: Optional[str] = None
    error: Optional[str] = None


class PrepClient:
    def __init__(
        self,
        config: Optional[CheckerConfig] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or CheckerConfig.from_env()
        self.session = session or requests.Session()
        self._sleep = sleep

    def _headers(self) -> Dict[str, str]:
        if not self.config.has_credentials:
            raise ConfigurationError("PREP_API_ID and PREP_APP_KEY must be configured")
        return {"api-id": self.config.api_id, "app-key": self.config.app_key}

    def _post(self, url: str, *, what: str, ok_statuses=(), **kwargs) -> requests.Response:
        headers = self._headers()
        headers.update(kwargs.pop("headers", {}))
        try:
            resp = self.session.post(url, headers=headers, timeout=self.config.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.error("[Checker] %s request failed: %s", what, exc)
            raise ServiceUnavailable(f"{what} request failed: {exc}") from exc
        if not resp.ok and resp.status_code not in ok_statuses:
            logger.error("[Checker] %s returned HTTP %s: %s", what, resp.status_code, resp.text[:500])
            raise ServiceUnavailable(
                f"{what} failed with HTTP {resp.status_code}",
                details={"status": resp.status_code, "body": resp.text[:500]},
            )
        return resp

    @staticmethod
    def _json(resp: requests.Response, what: str) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise InvalidResponse(f"{what} returned a non-JSON body") from exc

    # ------------------------------------------------------------------
    # Accessibility checker
    # ------------------------------------------------------------------

    def submit_for_check(self, file_bytes: bytes, file_name: str) -> str:
        """Upload a PDF for checking and return the service's source id."""
        logger.info("[Checker] Submitting %s (%d bytes) for accessibility check", file_name, len(file_bytes))
        resp = self._post(
            self.config.base_url + CHECK_INIT_PATH,
            what="Accessibility check init",
            files={"pdf1": (file_name, file_bytes, "application/pdf")},
        )
        data = self._json(resp, "Accessibility check init")
        source_id = None
        if isinstance(data, dict):
            source_id = data.get("source_id") or data.get("sourceId") or data.get("id")
        if source_id in (None, ""):
            raise InvalidResponse("Checker response did not include a source id", details=data)
        logger.info("[Checker] Accessibility check started: source_id=%s", source_id)
        return str(source_id)

    def poll_status(self, source_id: str) -> CheckResult:
        """Query a submitted check once."""
        resp = self._post(
            self.config.base_url + CHECK_STATUS_PATH,
            what="Check status",
            files={"action": (None, "doc-checker"), "source_id": (None, str(source_id))},
        )
        data = self._json(resp, "Check status")
        if not isinstance(data, dict):
            raise InvalidResponse("Check status response was not an object")

        raw_status = data.get("status")
        result = data.get("result") if isinstance(data.get("result"), dict) else {}
        report_url = data.get("file_url") or result.get("file_url")
        error = data.get("error") or data.get("message")
        status = map_check_status(raw_status)
        logger.info("[Checker] Status for %s: %s (raw=%r)", source_id, status.value, raw_status)
        return CheckResult(
            status=status,
            report_url=report_url or None,
            report=parse_checker_report(data),
            raw_status=raw_status if isinstance(raw_status, str) else None,
            error=str(error) if status is CheckStatus.FAILED and error else None,
        )

    def download_report(self, report_url: str) -> CheckerReport:
        """Fetch the downloadable JSON report behind ``file_url``."""
        try:
            resp = self.session.get(report_url, timeout=self.config.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise ServiceUnavailable(f"Report download failed: {exc}") from exc
        try:
            payload = resp.json()
        except ValueError as exc:
            raise InvalidResponse("Downloaded report is not JSON") from exc
        return parse_checker_report(payload)

    # ------------------------------------------------------------------
    # AutoTag
    # ------------------------------------------------------------------

    def upload_for_auto_tag(
        self, file_bytes: bytes, file_name: str, template_id: Optional[int] = None
    ) -> str:
        data = {"auto_tag": "true"}
        if template_id:
            data["template_id"] = str(template_id)
        resp = self._post(
            self.config.autotag_base_url + AUTO_TAG_PATH,
            what="AutoTag upload",
            files={"pdf1": (file_name, file_bytes, "application/pdf")},
            data=data,
        )
        body = self._json(resp, "AutoTag upload")
        process_id = body.get("id") if isinstance(body, dict) else None
        if process_id in (None, ""):
            raise InvalidResponse("AutoTag upload did not return a process id", details=body)
        logger.info("[Checker] AutoTag process started: %s", process_id)
        return str(process_id)

    def check_auto_tag_status(self, process_id: Union[str, int]) -> AutoTagStatus:
        value: Union[str, int] = process_id
        if isinstance(process_id, str) and re.fullmatch(r"\d+", process_id):
            value = int(process_id)
        resp = self._post(
            self.config.autotag_base_url + AUTO_TAG_PING_PATH,
            what="AutoTag status",
            json={"processid": value},
        )
        body = self._json(resp, "AutoTag status")
        if not isinstance(body, dict):
            raise InvalidResponse("AutoTag status response was not an object")
        raw = body.get("status")
        status = raw if raw in ("completed", "failed") else "in-progress"
        return AutoTagStatus(
            status=status,
            url=body.get("url") or None,
            progress=body.get("value"),
            error=body.get("error"),
        )

    def download_auto_tagged_pdf(self, url: str) -> bytes:
        try:
            resp = self.session.get(url, timeout=self.config.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise ServiceUnavailable(f"AutoTag download failed: {exc}") from exc
        return resp.content

    def auto_tag_pdf(
        self,
        file_bytes: bytes,
        file_name: str,
        max_poll_attempts: Optional[int] = None,
        poll_interval_seconds: Optional[float] = None,
    ) -> bytes:
        """Run the full AutoTag cycle within the current request."""
        attempts = max_poll_attempts or self.config.max_poll_attempts
        interval = self.config.poll_interval_seconds if poll_interval_seconds is None else poll_interval_seconds
        process_id = self.upload_for_auto_tag(file_bytes, file_name)
        for attempt in range(1, attempts + 1):
            self._sleep(interval)
            status = self.check_auto_tag_status(process_id)
            logger.info(
                "[Checker] AutoTag %s attempt %d/%d: %s (%s)",
                process_id,
                attempt,
                attempts,
                status.status,
                status.progress,
            )
            if status.status == "completed":
                if not status.url:
                    raise InvalidResponse("AutoTag completed without a download URL")
                return self.download_auto_tagged_pdf(status.url)
            if status.status == "failed":
                raise UpstreamError(f"AutoTag processing failed: {status.error or 'unknown error'}")
        raise UpstreamError(f"AutoTag processing timed out after {attempts} attempts")


_client: Optional[PrepClient] = None


def get_checker_client() -> PrepClient:
    global _client
    if _client is None:
        _client = PrepClient()
    return _client
