from __future__ import annotations

from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import Admin
from .repository import AdminRepository


class MySQLAdminRepository(AdminRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _map(self, r: dict) -> Admin:
        return Admin(
            admin_id=int(r["admin_id"]),
            name=r["name"],
            email=r["email"],
            password_hash=r["password_hash"],
            school_name=r["school_name"],
        )

    def get_by_id(self, admin_id: int) -> Optional[Admin]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT admin_id, name, email, password_hash, school_name FROM admins WHERE admin_id=%s",
                (int(admin_id),),
            )
            r = fetchone(cur)
            return self._map(r) if r else None

    def get_by_email(self, email: str) -> Optional[Admin]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT admin_id, name, email, password_hash, school_name FROM admins WHERE email=%s",
                (email,),
            )
            r = fetchone(cur)
            return self._map(r) if r else None
