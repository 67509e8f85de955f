import pytest

from accessly.tests.helpers import make_issue
from accessly.utils.compliance_scoring import calculate_accessibility_score


@pytest.mark.parametrize(
    "unfixed, expected",
    [(0, 100), (1, 95), (5, 75), (20, 0), (21, 0)],
)
def test_linear_score(unfixed, expected):
    issues = [make_issue(i + 1) for i in range(unfixed)]
    issues.append(make_issue(999, fixed=True))
    assert calculate_accessibility_score(issues) == expected


def test_empty_report_scores_full_marks():
    assert calculate_accessibility_score([]) == 100


def test_severity_is_ignored_and_dicts_are_accepted():
    issues = [
        {"id": 1, "severity": "high", "fixed": False},
        {"id": 2, "severity": "medium", "fixed": False},
        {"id": 3, "severity": "high", "fixed": True},
    ]
    assert calculate_accessibility_score(issues) == 90
