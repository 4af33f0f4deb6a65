from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import AuditAction, Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, from_json_column, in_clause, to_json_column
from .model import ActionStat, AuditLogEntry
from .repository import AuditLogRepository

_COLUMNS = """
    log_id, record_id, action, old_values, new_values, performed_by, performed_by_role, school_id,
    reason, performed_at, ip_address, user_agent, session_id, metadata
"""


def _map(r: dict) -> AuditLogEntry:
    return AuditLogEntry(
        log_id=int(r["log_id"]),
        record_id=int(r["record_id"]) if r.get("record_id") is not None else None,
        action=AuditAction(r["action"]),
        old_values=from_json_column(r.get("old_values")),
        new_values=from_json_column(r.get("new_values")),
        performed_by=int(r["performed_by"]),
        performed_by_role=Role(r["performed_by_role"]),
        school_id=int(r["school_id"]),
        reason=r.get("reason"),
        performed_at=r["performed_at"],
        ip_address=r.get("ip_address"),
        user_agent=r.get("user_agent"),
        session_id=r.get("session_id"),
        metadata=from_json_column(r.get("metadata")) or {},
    )


class MySQLAuditLogRepository(AuditLogRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def add(self, entry: AuditLogEntry) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_audit_logs(
                    record_id, action, old_values, new_values, performed_by, performed_by_role, school_id,
                    reason, performed_at, ip_address, user_agent, session_id, metadata
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    entry.record_id,
                    entry.action.value,
                    to_json_column(entry.old_values),
                    to_json_column(entry.new_values),
                    int(entry.performed_by),
                    entry.performed_by_role.value,
                    int(entry.school_id),
                    entry.reason,
                    entry.performed_at,
                    entry.ip_address,
                    entry.user_agent,
                    entry.session_id,
                    to_json_column(entry.metadata or {}),
                ),
            )
            return int(cur.lastrowid)

    def list_for_record(self, record_id: int, limit: int) -> Sequence[AuditLogEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_audit_logs
                WHERE record_id=%s
                ORDER BY performed_at DESC, log_id DESC
                LIMIT %s
                """,
                (int(record_id), int(limit)),
            )
            return [_map(r) for r in fetchall(cur)]

    def list_for_user(
        self,
        user_id: int,
        role: Role,
        *,
        school_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> Sequence[AuditLogEntry]:
        where = ["performed_by=%s", "performed_by_role=%s"]
        params: list = [int(user_id), Role(role).value]
        if school_id is not None:
            where.append("school_id=%s")
            params.append(int(school_id))
        if start is not None:
            where.append("performed_at>=%s")
            params.append(start)
        if end is not None:
            where.append("performed_at<=%s")
            params.append(end)
        params.append(int(limit))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_audit_logs
                WHERE {' AND '.join(where)}
                ORDER BY performed_at DESC, log_id DESC
                LIMIT %s
                """,
                tuple(params),
            )
            return [_map(r) for r in fetchall(cur)]

    def action_stats(
        self,
        school_id: int,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        actions: Optional[Sequence[AuditAction]] = None,
    ) -> Sequence[ActionStat]:
        where = ["school_id=%s"]
        params: list = [int(school_id)]
        if start is not None:
            where.append("performed_at>=%s")
            params.append(start)
        if end is not None:
            where.append("performed_at<=%s")
            params.append(end)
        if actions:
            where.append(f"action IN ({in_clause(actions)})")
            params.extend(a.value for a in actions)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT action, COUNT(*) AS cnt, MAX(performed_at) AS last_performed
                FROM attendance_audit_logs
                WHERE {' AND '.join(where)}
                GROUP BY action
                ORDER BY action
                """,
                tuple(params),
            )
            return [
                ActionStat(action=AuditAction(r["action"]), count=int(r["cnt"]), last_performed=r.get("last_performed"))
                for r in fetchall(cur)
            ]
