from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Admin:
    """School administrator. The admin account doubles as the school id."""

    admin_id: int
    name: str
    email: str
    password_hash: str
    school_name: str


@dataclass(frozen=True)
class Student:
    student_id: int
    name: str
    roll_num: str
    university_id: str
    class_id: Optional[int]
    school_id: int
    password_hash: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class Teacher:
    teacher_id: int
    name: str
    email: str
    password_hash: str
    school_id: int
    is_active: bool = True


@dataclass(frozen=True)
class TeacherAssignment:
    teacher_id: int
    class_id: int
    subject_id: int
    assigned_at: Optional[datetime] = None


@dataclass(frozen=True)
class SchoolClass:
    class_id: int
    name: str
    school_id: int


@dataclass(frozen=True)
class Subject:
    subject_id: int
    name: str
    code: str
    class_id: Optional[int]
    school_id: int
