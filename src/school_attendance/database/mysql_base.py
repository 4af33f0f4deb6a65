from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import mysql.connector

from .connection import DatabaseConnection, active_connection

DUPLICATE_KEY_ERRNO = 1062


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    joined = active_connection()
    if joined is not None:
        # Inside DatabaseConnection.transaction(): the owner commits.
        cur = joined.cursor(dictionary=dictionary)
        try:
            yield joined, cur
        finally:
            cur.close()
        return

    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def is_duplicate_key(exc: BaseException) -> bool:
    return isinstance(exc, mysql.connector.IntegrityError) and getattr(exc, "errno", None) == DUPLICATE_KEY_ERRNO


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def to_json_column(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=_json_default, ensure_ascii=False)


def from_json_column(value: Any) -> Any:
    """MySQL JSON columns come back as str or bytes depending on the connector."""

    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return json.loads(value)
    return value


def in_clause(values) -> str:
    return ",".join(["%s"] * len(values))
