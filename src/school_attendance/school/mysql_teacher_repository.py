from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Teacher, TeacherAssignment
from .repository import TeacherRepository

_COLUMNS = "teacher_id, name, email, password_hash, school_id, is_active"


class MySQLTeacherRepository(TeacherRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _map(self, r: dict) -> Teacher:
        return Teacher(
            teacher_id=int(r["teacher_id"]),
            name=r["name"],
            email=r["email"],
            password_hash=r["password_hash"],
            school_id=int(r["school_id"]),
            is_active=bool(r.get("is_active", 1)),
        )

    def get_by_id(self, teacher_id: int) -> Optional[Teacher]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM teachers WHERE teacher_id=%s", (int(teacher_id),))
            r = fetchone(cur)
            return self._map(r) if r else None

    def get_by_email(self, email: str) -> Optional[Teacher]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM teachers WHERE email=%s", (email,))
            r = fetchone(cur)
            return self._map(r) if r else None

    def has_assignment(self, teacher_id: int, class_id: int, subject_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT 1 AS ok FROM teacher_assignments
                WHERE teacher_id=%s AND class_id=%s AND subject_id=%s
                """,
                (int(teacher_id), int(class_id), int(subject_id)),
            )
            return fetchone(cur) is not None

    def list_assignments(self, teacher_id: int) -> Sequence[TeacherAssignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT teacher_id, class_id, subject_id, assigned_at
                FROM teacher_assignments
                WHERE teacher_id=%s
                ORDER BY class_id, subject_id
                """,
                (int(teacher_id),),
            )
            return [
                TeacherAssignment(
                    teacher_id=int(r["teacher_id"]),
                    class_id=int(r["class_id"]),
                    subject_id=int(r["subject_id"]),
                    assigned_at=r.get("assigned_at"),
                )
                for r in fetchall(cur)
            ]

    def replace_assignments(self, teacher_id: int, pairs: Sequence[tuple[int, int]]) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM teacher_assignments WHERE teacher_id=%s", (int(teacher_id),))
            if pairs:
                cur.executemany(
                    "INSERT INTO teacher_assignments (teacher_id, class_id, subject_id) VALUES (%s, %s, %s)",
                    [(int(teacher_id), int(c), int(s)) for c, s in dict.fromkeys(pairs)],
                )
