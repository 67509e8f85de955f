"""Shared helper for deriving the accessibility score from a stored report.

The score is linear and severity-blind: every unfixed issue
costs five points, and a report with nothing left to fix scores 100.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Union

from accessly.models import Issue

PENALTY_PER_ISSUE = 5
MAX_SCORE = 100


def _is_fixed(issue: Union[Issue, Mapping[str, Any]]) -> bool:
    if isinstance(issue, Issue):
        return issue.fixed
    return bool(issue.get("fixed", False))


def count_unfixed(issues: Iterable[Union[Issue, Mapping[str, Any]]]) -> int:
    return sum(1 for issue in issues if not _is_fixed(issue))


def calculate_accessibility_score(issues: Iterable[Union[Issue, Mapping[str, Any]]]) -> int:
    """Return 100 when no unfixed issues remain, else ``max(0, 100 - 5 * unfixed)``."""
    unfixed = count_unfixed(issues or [])
    if unfixed == 0:
        return MAX_SCORE
    return max(0, MAX_SCORE - PENALTY_PER_ISSUE * unfixed)


__all__ = ["calculate_accessibility_score", "count_unfixed"]
