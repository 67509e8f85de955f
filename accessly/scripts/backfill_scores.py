"""Backfill PDFs whose stored accessibility score differs from the score of their report."""

import logging
from typing import Any, Optional

from ..exceptions import AccesslyError
from ..models import issues_from_json
from ..utils.app_helpers import execute_query
from ..utils.compliance_scoring import calculate_accessibility_score

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("accessly-backfill-scores")

BACKFILL_QUERY = """
SELECT
    id,
    raw_report,
    accessibility_score
FROM pdfs
WHERE raw_report IS NOT NULL
ORDER BY created_at
"""


def expected_score(raw_report: Any) -> Optional[int]:
    issues = issues_from_json(raw_report)
    if issues is None:
        return None
    return calculate_accessibility_score(issues)


def _update_row(pdf_id: str, raw_report: Any, stored_score: Optional[int]) -> bool:
    after_score = expected_score(raw_report)
    if after_score is None or after_score == stored_score:
        return False

    execute_query(
        "UPDATE pdfs SET accessibility_score=%s, updated_at=NOW() WHERE id=%s",
        (after_score, pdf_id),
        fetch=False,
    )
    logger.info("Adjusted pdf %s accessibility_score %s -> %s", pdf_id, stored_score, after_score)
    return True


def main():
    rows = execute_query(BACKFILL_QUERY, fetch=True) or []
    if not rows:
        logger.info("No PDFs with stored reports; nothing to backfill.")
        return

    updated = 0
    unchanged = 0
    for row in rows:
        pdf_id = row.get("id")
        if not pdf_id:
            continue

        try:
            if _update_row(pdf_id, row.get("raw_report"), row.get("accessibility_score")):
                updated += 1
            else:
                unchanged += 1
        except AccesslyError:
            logger.exception("Failed to backfill pdf %s", pdf_id)

    logger.info("Backfill complete: %d rows updated, %d unchanged", updated, unchanged)


if __name__ == "__main__":
    main()
