from accessly.scripts import backfill_scores
from accessly.tests.helpers import make_issue


def _report(*issues):
    return [issue.to_dict() for issue in issues]


def test_expected_score():
    assert backfill_scores.expected_score(None) is None
    assert backfill_scores.expected_score(_report(make_issue(1), make_issue(2, fixed=True))) == 95


def test_backfill_only_updates_drifted_rows(monkeypatch):
    writes = []
    rows = [
        {"id": "a", "raw_report": _report(make_issue(1)), "accessibility_score": 95},
        {"id": "b", "raw_report": _report(make_issue(1), make_issue(2)), "accessibility_score": 100},
    ]

    def fake_execute(query, params=None, fetch=False):
        if fetch:
            return rows
        writes.append(params)
        return True

    monkeypatch.setattr(backfill_scores, "execute_query", fake_execute)
    backfill_scores.main()

    assert writes == [(90, "b")]
