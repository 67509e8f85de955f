"""Helper utilities shared by the app module and the routers."""

import json
import logging
import os
import threading
import traceback
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Optional
from uuid import UUID

import psycopg2
from psycopg2.extras import RealDictCursor
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from dotenv import load_dotenv

from accessly.exceptions import ConfigurationError, InternalError

load_dotenv()

logger = logging.getLogger("accessly-backend")

NEON_DATABASE_URL = os.getenv("NEON_DATABASE_URL") or os.getenv("DATABASE_URL")

db_lock = threading.Lock()


def to_json_safe(data):
    """
    Recursively convert data into JSON-safe types:
    - datetime/date -> ISO string
    - Decimal -> float
    - UUID -> string
    - Enum -> its value
    - Nested dicts/lists handled automatically
    """
    if isinstance(data, (datetime, date)):
        return data.isoformat()
    elif isinstance(data, Decimal):
        return float(data)
    elif isinstance(data, UUID):
        return str(data)
    elif isinstance(data, Enum):
        return data.value
    elif isinstance(data, bytes):
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            return str(data)
    elif isinstance(data, set):
        return list(data)
    elif isinstance(data, dict):
        return {k: to_json_safe(v) for k, v in data.items()}
    elif isinstance(data, (list, tuple)):
        return [to_json_safe(v) for v in data]
    else:
        return data


class SafeJSONResponse(JSONResponse):
    def render(self, content: Any) -> bytes:
        safe = to_json_safe(content)
        return json.dumps(safe, ensure_ascii=False).encode("utf-8")


def mount_static_if_available(app_instance: Any, prefix: str, directory: str, name: str):
    path = Path(directory)
    try:
        if path.exists():
            app_instance.mount(prefix, StaticFiles(directory=directory), name=name)
        else:
            logger.info(
                "[Backend] Skipping static mount for %s; directory %s not available",
                prefix,
                directory,
            )
    except Exception:
        logger.warning(
            "[Backend] Failed to mount static directory %s at %s", directory, prefix
        )
        logger.debug(traceback.format_exc())


def get_db_connection():
    """Synchronous psycopg2 connection using RealDictCursor rows."""
    if not NEON_DATABASE_URL:
        raise ConfigurationError("NEON_DATABASE_URL not set")
    try:
        return psycopg2.connect(NEON_DATABASE_URL, cursor_factory=RealDictCursor)
    except psycopg2.Error as exc:
        logger.exception("[Backend] Database connection failed")
        raise InternalError("Database connection failed") from exc


def execute_query(query: str, params: Optional[tuple] = None, fetch: bool = False):
    """
    Execute a synchronous SQL query under the process-wide lock.
    Returns fetched rows if fetch=True, else True on success.
    """
    with db_lock:
        conn = get_db_connection()
        try:
            cur = conn.cursor()
            cur.execute(query, params or ())
            result = cur.fetchall() if fetch else True
            conn.commit()
            return result
        except psycopg2.Error as exc:
            conn.rollback()
            logger.exception("[Backend] Query execution failed")
            raise InternalError("Database query failed") from exc
        finally:
            conn.close()
