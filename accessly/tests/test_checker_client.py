from unittest.mock import MagicMock

import pytest
import requests

from accessly.checker_client import CheckStatus, PrepClient, map_check_status
from accessly.exceptions import ConfigurationError, InvalidResponse, ServiceUnavailable, UpstreamError
from accessly.issue_normalizer import CategorizedReport, UnrecognizedReport
from accessly.settings import CheckerConfig


class FakeResponse:
    def __init__(self, status_code=200, payload=None, content=b"", text=""):
        self.status_code = status_code
        self._payload = payload
        self.content = content
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"HTTP {self.status_code}")


@pytest.fixture
def config():
    return CheckerConfig(api_id="id", app_key="key", base_url="https://prep.test", autotag_base_url="https://prep.test/v1")


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(config, session):
    return PrepClient(config=config, session=session, sleep=lambda seconds: None)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("queued", CheckStatus.QUEUED),
        ("completed", CheckStatus.COMPLETED),
        ("failed", CheckStatus.FAILED),
        ("in-progress", CheckStatus.IN_PROGRESS),
        ("processing", CheckStatus.IN_PROGRESS),
        ("weird", CheckStatus.IN_PROGRESS),
        (None, CheckStatus.UNKNOWN),
        (3, CheckStatus.UNKNOWN),
    ],
)
def test_map_check_status(raw, expected):
    assert map_check_status(raw) is expected


def test_submit_sends_credentials_and_returns_source_id(client, session):
    session.post.return_value = FakeResponse(payload={"source_id": 123})

    assert client.submit_for_check(b"%PDF", "doc.pdf") == "123"

    args, kwargs = session.post.call_args
    assert args[0] == "https://prep.test/pdf-content/pdf/accessibility-check-init/"
    assert kwargs["headers"] == {"api-id": "id", "app-key": "key"}
    assert kwargs["files"]["pdf1"][0] == "doc.pdf"


def test_submit_without_source_id_is_invalid(client, session):
    session.post.return_value = FakeResponse(payload={"message": "ok"})
    with pytest.raises(InvalidResponse):
        client.submit_for_check(b"%PDF", "doc.pdf")


def test_non_success_status_is_service_unavailable(client, session):
    session.post.return_value = FakeResponse(status_code=503, text="down")
    with pytest.raises(ServiceUnavailable) as excinfo:
        client.submit_for_check(b"%PDF", "doc.pdf")
    assert excinfo.value.details["status"] == 503


def test_transport_error_is_service_unavailable(client, session):
    session.post.side_effect = requests.ConnectionError("refused")
    with pytest.raises(ServiceUnavailable):
        client.poll_status("src")


def test_missing_credentials(session):
    client = PrepClient(config=CheckerConfig(), session=session)
    with pytest.raises(ConfigurationError):
        client.submit_for_check(b"%PDF", "doc.pdf")
    session.post.assert_not_called()


def test_poll_status_completed_with_inline_report(client, session):
    session.post.return_value = FakeResponse(
        payload={
            "status": "completed",
            "file_url": "https://prep.test/report.json",
            "result": {"checkerData": [{"type": "Doc", "ErrorInfo": []}]},
        }
    )

    result = client.poll_status("src")

    assert result.status is CheckStatus.COMPLETED
    assert result.report_url == "https://prep.test/report.json"
    assert isinstance(result.report, CategorizedReport)
    assert session.post.call_args.kwargs["files"]["action"] == (None, "doc-checker")


def test_poll_status_failed_carries_error(client, session):
    session.post.return_value = FakeResponse(payload={"status": "failed", "error": "bad pdf"})

    result = client.poll_status("src")

    assert result.status is CheckStatus.FAILED
    assert result.error == "bad pdf"
    assert isinstance(result.report, UnrecognizedReport)


def test_download_report(client, session):
    session.get.return_value = FakeResponse(payload={"checkerData": []})
    assert isinstance(client.download_report("https://prep.test/r.json"), CategorizedReport)

    session.get.return_value = FakeResponse(status_code=404)
    with pytest.raises(ServiceUnavailable):
        client.download_report("https://prep.test/r.json")


def test_auto_tag_polls_until_completed(client, session):
    session.post.side_effect = [
        FakeResponse(payload={"id": 77}),
        FakeResponse(payload={"status": "processing", "value": "40%"}),
        FakeResponse(payload={"status": "completed", "url": "https://prep.test/tagged.pdf"}),
    ]
    session.get.return_value = FakeResponse(content=b"%PDF-tagged")

    assert client.auto_tag_pdf(b"%PDF", "doc.pdf") == b"%PDF-tagged"

    ping = session.post.call_args_list[1]
    assert ping.kwargs["json"] == {"processid": 77}
    assert session.get.call_args.args[0] == "https://prep.test/tagged.pdf"


def test_auto_tag_failure(client, session):
    session.post.side_effect = [
        FakeResponse(payload={"id": "abc"}),
        FakeResponse(payload={"status": "failed", "error": "corrupt"}),
    ]
    with pytest.raises(UpstreamError, match="corrupt"):
        client.auto_tag_pdf(b"%PDF", "doc.pdf")


def test_auto_tag_times_out(client, session):
    session.post.side_effect = [FakeResponse(payload={"id": 1})] + [
        FakeResponse(payload={"status": "processing"}) for _ in range(3)
    ]
    with pytest.raises(UpstreamError, match="timed out"):
        client.auto_tag_pdf(b"%PDF", "doc.pdf", max_poll_attempts=3)
