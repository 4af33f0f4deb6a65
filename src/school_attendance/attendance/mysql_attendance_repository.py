from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

import mysql.connector

from ..core.enums import AttendanceStatus, Role
from ..core.exceptions import AttendanceAlreadyMarkedError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key
from .model import AttendanceFilters, AttendanceRecord, SummaryKey
from .repository import AttendanceRepository

_COLUMNS = """
    record_id, class_id, subject_id, teacher_id, student_id, attendance_date, session, status,
    marked_by, marked_by_role, marked_at, last_modified_by, last_modified_at, school_id
"""

_SORT_COLUMNS = {
    "date": "attendance_date",
    "session": "session",
    "status": "status",
    "markedAt": "marked_at",
    "studentId": "student_id",
    "classId": "class_id",
    "subjectId": "subject_id",
}


def _map(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        record_id=int(r["record_id"]),
        class_id=int(r["class_id"]),
        subject_id=int(r["subject_id"]),
        teacher_id=int(r["teacher_id"]) if r.get("teacher_id") is not None else None,
        student_id=int(r["student_id"]),
        date=r["attendance_date"],
        session=r["session"],
        status=AttendanceStatus(r["status"]),
        marked_by=int(r["marked_by"]),
        marked_by_role=Role(r["marked_by_role"]),
        marked_at=r["marked_at"],
        last_modified_by=int(r["last_modified_by"]) if r.get("last_modified_by") is not None else None,
        last_modified_at=r.get("last_modified_at"),
        school_id=int(r["school_id"]),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, record_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE record_id=%s", (int(record_id),))
            r = fetchone(cur)
            return _map(r) if r else None

    def get_by_key(
        self,
        *,
        student_id: int,
        class_id: int,
        subject_id: int,
        on_date: date,
        session: str,
        for_update: bool = False,
    ) -> Optional[AttendanceRecord]:
        lock = " FOR UPDATE" if for_update else ""
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_records
                WHERE student_id=%s AND class_id=%s AND subject_id=%s AND attendance_date=%s AND session=%s
                {lock}
                """,
                (int(student_id), int(class_id), int(subject_id), on_date, session),
            )
            r = fetchone(cur)
            return _map(r) if r else None

    def upsert(
        self,
        *,
        student_id: int,
        class_id: int,
        subject_id: int,
        on_date: date,
        session: str,
        status: AttendanceStatus,
        teacher_id: Optional[int],
        actor_id: int,
        actor_role: Role,
        school_id: int,
        now: datetime,
    ) -> tuple[AttendanceRecord, bool]:
        with db_cursor(self._conn_factory) as (_, cur):
            # rowcount: 1 inserted, 2 updated, 0 unchanged.
            cur.execute(
                """
                INSERT INTO attendance_records(
                    class_id, subject_id, teacher_id, student_id, attendance_date, session, status,
                    marked_by, marked_by_role, marked_at, school_id
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    status=VALUES(status),
                    teacher_id=COALESCE(VALUES(teacher_id), teacher_id),
                    last_modified_by=VALUES(marked_by),
                    last_modified_at=VALUES(marked_at)
                """,
                (
                    int(class_id),
                    int(subject_id),
                    teacher_id,
                    int(student_id),
                    on_date,
                    session,
                    status.value,
                    int(actor_id),
                    actor_role.value,
                    now,
                    int(school_id),
                ),
            )
            created = cur.rowcount == 1
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_records
                WHERE student_id=%s AND class_id=%s AND subject_id=%s AND attendance_date=%s AND session=%s
                """,
                (int(student_id), int(class_id), int(subject_id), on_date, session),
            )
            return _map(fetchone(cur)), created

    def update_fields(
        self,
        record_id: int,
        *,
        status: AttendanceStatus,
        session: str,
        on_date: date,
        modified_by: int,
        modified_at: datetime,
    ) -> Optional[AttendanceRecord]:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    UPDATE attendance_records
                    SET status=%s, session=%s, attendance_date=%s, last_modified_by=%s, last_modified_at=%s
                    WHERE record_id=%s
                    """,
                    (status.value, session, on_date, int(modified_by), modified_at, int(record_id)),
                )
                cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE record_id=%s", (int(record_id),))
                r = fetchone(cur)
                return _map(r) if r else None
        except mysql.connector.IntegrityError as e:
            if is_duplicate_key(e):
                raise AttendanceAlreadyMarkedError(
                    "Attendance already marked for this student, date and session",
                    details={"recordId": int(record_id), "session": session, "date": on_date.isoformat()},
                ) from e
            raise

    def move_to_class(self, record_id: int, class_id: int) -> Optional[AttendanceRecord]:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    "UPDATE attendance_records SET class_id=%s WHERE record_id=%s",
                    (int(class_id), int(record_id)),
                )
                cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE record_id=%s", (int(record_id),))
                r = fetchone(cur)
                return _map(r) if r else None
        except mysql.connector.IntegrityError as e:
            if is_duplicate_key(e):
                raise AttendanceAlreadyMarkedError(
                    "Target class already has attendance for this student, date and session",
                    details={"recordId": int(record_id), "classId": int(class_id)},
                ) from e
            raise

    def delete(self, record_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_records WHERE record_id=%s", (int(record_id),))
            return cur.rowcount > 0

    def count_by_status(self, *, student_id: int, subject_id: int, class_id: int) -> dict[AttendanceStatus, int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT status, COUNT(*) AS cnt
                FROM attendance_records
                WHERE student_id=%s AND subject_id=%s AND class_id=%s
                GROUP BY status
                """,
                (int(student_id), int(subject_id), int(class_id)),
            )
            counts = {s: 0 for s in AttendanceStatus}
            for r in fetchall(cur):
                counts[AttendanceStatus(r["status"])] = int(r["cnt"])
            return counts

    def search(
        self,
        filters: AttendanceFilters,
        *,
        sort_by: str = "date",
        sort_order: str = "desc",
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> tuple[Sequence[AttendanceRecord], int]:
        where = ["1=1"]
        params: list = []

        for column, value in (
            ("class_id", filters.class_id),
            ("subject_id", filters.subject_id),
            ("teacher_id", filters.teacher_id),
            ("student_id", filters.student_id),
            ("school_id", filters.school_id),
            ("session", filters.session),
        ):
            if value is not None:
                where.append(f"{column}=%s")
                params.append(value)
        if filters.status is not None:
            where.append("status=%s")
            params.append(filters.status.value)
        if filters.start_date is not None:
            where.append("attendance_date>=%s")
            params.append(filters.start_date)
        if filters.end_date is not None:
            where.append("attendance_date<=%s")
            params.append(filters.end_date)

        where_sql = " AND ".join(where)
        column = _SORT_COLUMNS.get(sort_by, "attendance_date")
        direction = "ASC" if sort_order == "asc" else "DESC"

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM attendance_records WHERE {where_sql}", tuple(params))
            total = int(fetchone(cur)["total"])

            sql = f"SELECT {_COLUMNS} FROM attendance_records WHERE {where_sql} ORDER BY {column} {direction}, record_id {direction}"
            page_params = list(params)
            if limit is not None:
                sql += " LIMIT %s OFFSET %s"
                page_params.extend([int(limit), int(offset)])
            cur.execute(sql, tuple(page_params))
            return [_map(r) for r in fetchall(cur)], total

    def list_for_session(self, *, class_id: int, subject_id: int, on_date: date, session: str) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_records
                WHERE class_id=%s AND subject_id=%s AND attendance_date=%s AND session=%s
                ORDER BY student_id
                """,
                (int(class_id), int(subject_id), on_date, session),
            )
            return [_map(r) for r in fetchall(cur)]

    def list_for_student_class(self, *, student_id: int, class_id: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_records
                WHERE student_id=%s AND class_id=%s
                ORDER BY attendance_date, session
                """,
                (int(student_id), int(class_id)),
            )
            return [_map(r) for r in fetchall(cur)]

    def list_summary_keys(
        self,
        *,
        school_id: Optional[int] = None,
        class_id: Optional[int] = None,
        subject_id: Optional[int] = None,
    ) -> Sequence[SummaryKey]:
        where = ["1=1"]
        params: list = []
        for column, value in (("school_id", school_id), ("class_id", class_id), ("subject_id", subject_id)):
            if value is not None:
                where.append(f"{column}=%s")
                params.append(int(value))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT DISTINCT student_id, subject_id, class_id
                FROM attendance_records
                WHERE {' AND '.join(where)}
                ORDER BY class_id, subject_id, student_id
                """,
                tuple(params),
            )
            return [
                SummaryKey(student_id=int(r["student_id"]), subject_id=int(r["subject_id"]), class_id=int(r["class_id"]))
                for r in fetchall(cur)
            ]
