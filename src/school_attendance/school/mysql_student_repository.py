from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import Student
from .repository import StudentRepository

_COLUMNS = "student_id, name, roll_num, university_id, class_id, school_id, password_hash, is_active"


class MySQLStudentRepository(StudentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _map(self, r: dict) -> Student:
        return Student(
            student_id=int(r["student_id"]),
            name=r["name"],
            roll_num=r["roll_num"],
            university_id=r["university_id"],
            class_id=int(r["class_id"]) if r.get("class_id") is not None else None,
            school_id=int(r["school_id"]),
            password_hash=r.get("password_hash") or "",
            is_active=bool(r.get("is_active", 1)),
        )

    def get_by_id(self, student_id: int) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM students WHERE student_id=%s", (int(student_id),))
            r = fetchone(cur)
            return self._map(r) if r else None

    def get_by_university_id(self, school_id: int, university_id: str) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM students WHERE school_id=%s AND university_id=%s",
                (int(school_id), university_id),
            )
            r = fetchone(cur)
            return self._map(r) if r else None

    def get_many(self, student_ids: Sequence[int]) -> Sequence[Student]:
        ids = [int(x) for x in student_ids]
        if not ids:
            return []
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM students WHERE student_id IN ({in_clause(ids)})", tuple(ids))
            return [self._map(r) for r in fetchall(cur)]

    def list_by_class(self, class_id: int) -> Sequence[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM students WHERE class_id=%s AND is_active=1 ORDER BY roll_num ASC",
                (int(class_id),),
            )
            return [self._map(r) for r in fetchall(cur)]

    def list_by_school(self, school_id: int) -> Sequence[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM students WHERE school_id=%s AND is_active=1 ORDER BY university_id ASC",
                (int(school_id),),
            )
            return [self._map(r) for r in fetchall(cur)]

    def set_class(self, student_id: int, class_id: Optional[int]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE students SET class_id=%s WHERE student_id=%s", (class_id, int(student_id)))
            return cur.rowcount > 0

    def list_subject_ids(self, student_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT subject_id FROM student_subjects WHERE student_id=%s ORDER BY subject_id",
                (int(student_id),),
            )
            return [int(r["subject_id"]) for r in fetchall(cur)]

    def replace_subjects(self, student_id: int, subject_ids: Sequence[int]) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM student_subjects WHERE student_id=%s", (int(student_id),))
            if subject_ids:
                cur.executemany(
                    "INSERT INTO student_subjects (student_id, subject_id) VALUES (%s, %s)",
                    [(int(student_id), int(s)) for s in dict.fromkeys(subject_ids)],
                )
