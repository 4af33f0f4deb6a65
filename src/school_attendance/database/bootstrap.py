from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import mysql.connector
from werkzeug.security import generate_password_hash

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DBTarget:
    host: str
    port: int
    user: str
    password: str
    database: str


def _as_target(db_config: dict) -> DBTarget:
    return DBTarget(
        host=str(db_config.get("host", "localhost")),
        port=int(db_config.get("port", 3306)),
        user=str(db_config.get("user", "root")),
        password=str(db_config.get("password", "")),
        database=str(db_config.get("database", "school_attendance_db")),
    )


def _connect(target: DBTarget, *, with_database: bool = True):
    kwargs = dict(host=target.host, port=target.port, user=target.user, password=target.password, use_pure=True)
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql compatible regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _strip_comments(sql: str) -> str:
    return re.sub(r"(?m)^\s*--.*$", "", sql)


def iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a script on ';' outside of quoted strings."""

    buf: list[str] = []
    in_single = False
    in_double = False
    escape = False

    for ch in sql:
        if escape:
            buf.append(ch)
            escape = False
            continue

        if ch == "\\":
            buf.append(ch)
            escape = True
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue

        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _run_script(db_config: dict, path: str | Path) -> None:
    target = _as_target(db_config)
    sql = _strip_create_db_and_use(_strip_comments(Path(path).read_text(encoding="utf-8")))

    conn = _connect(target)
    try:
        cur = conn.cursor()
        for stmt in iter_sql_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


def ensure_database_exists(db_config: dict) -> None:
    target = _as_target(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    _run_script(db_config, schema_path)
    logger.info("Applied schema %s", schema_path)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    _run_script(db_config, seed_path)
    logger.info("Applied seed %s", seed_path)


def ensure_demo_users(db_config: dict) -> None:
    """Upsert demo logins with freshly generated password hashes.

    Relies on seed.sql for the school (admin_id=1), classes and subjects.
    """

    target = _as_target(db_config)
    conn = _connect(target)
    try:
        cur = conn.cursor(dictionary=True)

        cur.execute(
            "UPDATE admins SET password_hash=%s WHERE email=%s",
            (generate_password_hash("admin123"), "admin@demo.school"),
        )

        cur.execute(
            """
            INSERT INTO teachers (name, email, password_hash, school_id)
            VALUES (%s, %s, %s, 1)
            ON DUPLICATE KEY UPDATE name=VALUES(name), password_hash=VALUES(password_hash), is_active=1
            """,
            ("Demo Teacher", "teacher@demo.school", generate_password_hash("teacher123")),
        )
        cur.execute("SELECT teacher_id FROM teachers WHERE email=%s", ("teacher@demo.school",))
        teacher_id = int(cur.fetchone()["teacher_id"])
        cur.execute(
            "INSERT IGNORE INTO teacher_assignments (teacher_id, class_id, subject_id) VALUES (%s, 1, 1), (%s, 1, 2)",
            (teacher_id, teacher_id),
        )

        student_hash = generate_password_hash("student123")
        for roll, uid, name in (
            ("01", "CSE2024001", "An Nguyen"),
            ("02", "CSE2024002", "Binh Tran"),
            ("03", "CSE2024003", "Chi Le"),
        ):
            cur.execute(
                """
                INSERT INTO students (name, roll_num, university_id, password_hash, class_id, school_id)
                VALUES (%s, %s, %s, %s, 1, 1)
                ON DUPLICATE KEY UPDATE name=VALUES(name), password_hash=VALUES(password_hash), is_active=1
                """,
                (name, roll, uid, student_hash),
            )
            cur.execute("SELECT student_id FROM students WHERE school_id=1 AND university_id=%s", (uid,))
            student_id = int(cur.fetchone()["student_id"])
            cur.execute(
                "INSERT IGNORE INTO student_subjects (student_id, subject_id) VALUES (%s, 1), (%s, 2)",
                (student_id, student_id),
            )

        conn.commit()
    finally:
        conn.close()


def list_tables(db_config: dict) -> list[str]:
    target = _as_target(db_config)
    conn = _connect(target)
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
