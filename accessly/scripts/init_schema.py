"""Create the ``pdfs`` and ``pdf_analyses`` tables when they do not exist."""

import logging

from ..utils.app_helpers import execute_query

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("accessly-init-schema")

SCHEMA_STATEMENTS = (
    'CREATE EXTENSION IF NOT EXISTS "pgcrypto"',
    """
    CREATE TABLE IF NOT EXISTS pdfs (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_id TEXT NOT NULL,
        file_name TEXT NOT NULL,
        file_url TEXT NOT NULL,
        file_size INTEGER NOT NULL,
        upload_status VARCHAR(50) NOT NULL DEFAULT 'uploaded',
        accessibility_score INTEGER,
        prep_source_id TEXT,
        analysis_status VARCHAR(50),
        report_url TEXT,
        raw_report JSONB,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS pdfs_user_id_idx ON pdfs (user_id)",
    """
    CREATE TABLE IF NOT EXISTS pdf_analyses (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        pdf_id UUID NOT NULL REFERENCES pdfs (id) ON DELETE CASCADE,
        source_id TEXT NOT NULL,
        status VARCHAR(50) NOT NULL DEFAULT 'queued',
        report_url TEXT,
        raw_report JSONB,
        error_message TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS pdf_analyses_source_id_idx ON pdf_analyses (source_id)",
)


def main():
    for statement in SCHEMA_STATEMENTS:
        execute_query(statement)
    logger.info("Schema ready: %d statements applied", len(SCHEMA_STATEMENTS))


if __name__ == "__main__":
    main()
