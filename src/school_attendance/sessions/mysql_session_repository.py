from __future__ import annotations

from typing import Sequence

from ..core.enums import SessionType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .model import SessionConfiguration
from .repository import SessionConfigurationRepository


class MySQLSessionConfigurationRepository(SessionConfigurationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_class_subject(self, class_id: int, subject_id: int) -> Sequence[SessionConfiguration]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT config_id, class_id, subject_id, session_type, sessions_per_week,
                       session_duration, total_sessions, is_active, school_id
                FROM session_configurations
                WHERE class_id=%s AND subject_id=%s
                ORDER BY FIELD(session_type, 'lecture', 'lab', 'tutorial')
                """,
                (int(class_id), int(subject_id)),
            )
            return [
                SessionConfiguration(
                    config_id=int(r["config_id"]),
                    class_id=int(r["class_id"]),
                    subject_id=int(r["subject_id"]),
                    session_type=SessionType(r["session_type"]),
                    sessions_per_week=int(r["sessions_per_week"]),
                    session_duration=int(r["session_duration"]),
                    total_sessions=int(r["total_sessions"]),
                    is_active=bool(r["is_active"]),
                    school_id=int(r["school_id"]),
                )
                for r in fetchall(cur)
            ]
