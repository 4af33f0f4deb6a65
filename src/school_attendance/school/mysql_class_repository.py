from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import SchoolClass, Subject
from .repository import ClassRepository


class MySQLClassRepository(ClassRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _map_subject(r: dict) -> Subject:
        return Subject(
            subject_id=int(r["subject_id"]),
            name=r["name"],
            code=r["code"],
            class_id=int(r["class_id"]) if r.get("class_id") is not None else None,
            school_id=int(r["school_id"]),
        )

    def get_class(self, class_id: int) -> Optional[SchoolClass]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT class_id, name, school_id FROM classes WHERE class_id=%s", (int(class_id),))
            r = fetchone(cur)
            if not r:
                return None
            return SchoolClass(class_id=int(r["class_id"]), name=r["name"], school_id=int(r["school_id"]))

    def get_subject(self, subject_id: int) -> Optional[Subject]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT subject_id, name, code, class_id, school_id FROM subjects WHERE subject_id=%s",
                (int(subject_id),),
            )
            r = fetchone(cur)
            return self._map_subject(r) if r else None

    def list_classes(self, school_id: int) -> Sequence[SchoolClass]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT class_id, name, school_id FROM classes WHERE school_id=%s ORDER BY name",
                (int(school_id),),
            )
            return [
                SchoolClass(class_id=int(r["class_id"]), name=r["name"], school_id=int(r["school_id"]))
                for r in fetchall(cur)
            ]

    def list_subjects(self, school_id: int) -> Sequence[Subject]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT subject_id, name, code, class_id, school_id FROM subjects WHERE school_id=%s ORDER BY code",
                (int(school_id),),
            )
            return [self._map_subject(r) for r in fetchall(cur)]
