from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import AttendanceSummary
from .repository import SummaryRepository

_COLUMNS = """
    summary_id, student_id, subject_id, class_id, school_id, total_sessions, present_count,
    absent_count, late_count, excused_count, attendance_percentage, last_updated
"""


def _map(r: dict) -> AttendanceSummary:
    return AttendanceSummary(
        summary_id=int(r["summary_id"]),
        student_id=int(r["student_id"]),
        subject_id=int(r["subject_id"]),
        class_id=int(r["class_id"]),
        school_id=int(r["school_id"]),
        total_sessions=int(r["total_sessions"]),
        present_count=int(r["present_count"]),
        absent_count=int(r["absent_count"]),
        late_count=int(r["late_count"]),
        excused_count=int(r["excused_count"]),
        # DECIMAL comes back as decimal.Decimal
        attendance_percentage=float(r["attendance_percentage"]),
        last_updated=r.get("last_updated"),
    )


class MySQLSummaryRepository(SummaryRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, *, student_id: int, subject_id: int, class_id: int) -> Optional[AttendanceSummary]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_summaries
                WHERE student_id=%s AND subject_id=%s AND class_id=%s
                """,
                (int(student_id), int(subject_id), int(class_id)),
            )
            r = fetchone(cur)
            return _map(r) if r else None

    def save(self, summary: AttendanceSummary) -> AttendanceSummary:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_summaries(
                    student_id, subject_id, class_id, school_id, total_sessions, present_count,
                    absent_count, late_count, excused_count, attendance_percentage, last_updated
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    school_id=VALUES(school_id),
                    total_sessions=VALUES(total_sessions),
                    present_count=VALUES(present_count),
                    absent_count=VALUES(absent_count),
                    late_count=VALUES(late_count),
                    excused_count=VALUES(excused_count),
                    attendance_percentage=VALUES(attendance_percentage),
                    last_updated=VALUES(last_updated)
                """,
                (
                    summary.student_id,
                    summary.subject_id,
                    summary.class_id,
                    summary.school_id,
                    summary.total_sessions,
                    summary.present_count,
                    summary.absent_count,
                    summary.late_count,
                    summary.excused_count,
                    summary.attendance_percentage,
                    summary.last_updated,
                ),
            )
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_summaries
                WHERE student_id=%s AND subject_id=%s AND class_id=%s
                """,
                (summary.student_id, summary.subject_id, summary.class_id),
            )
            return _map(fetchone(cur))

    def list_for_student(
        self,
        student_id: int,
        *,
        subject_id: Optional[int] = None,
        class_id: Optional[int] = None,
    ) -> Sequence[AttendanceSummary]:
        where = ["student_id=%s"]
        params: list = [int(student_id)]
        if subject_id is not None:
            where.append("subject_id=%s")
            params.append(int(subject_id))
        if class_id is not None:
            where.append("class_id=%s")
            params.append(int(class_id))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_summaries WHERE {' AND '.join(where)} ORDER BY subject_id",
                tuple(params),
            )
            return [_map(r) for r in fetchall(cur)]

    def list_for_class(self, class_id: int, *, subject_id: Optional[int] = None) -> Sequence[AttendanceSummary]:
        where = ["class_id=%s"]
        params: list = [int(class_id)]
        if subject_id is not None:
            where.append("subject_id=%s")
            params.append(int(subject_id))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_summaries WHERE {' AND '.join(where)} ORDER BY student_id",
                tuple(params),
            )
            return [_map(r) for r in fetchall(cur)]

    def list_for_school(self, school_id: int) -> Sequence[AttendanceSummary]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_summaries WHERE school_id=%s ORDER BY class_id, subject_id",
                (int(school_id),),
            )
            return [_map(r) for r in fetchall(cur)]
