"""Authenticated actors.

A principal is one of three shapes; authorization decisions look at the
concrete type instead of comparing role strings.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .enums import Role


@dataclass(frozen=True)
class AdminPrincipal:
    admin_id: int

    @property
    def user_id(self) -> int:
        return self.admin_id

    @property
    def school_id(self) -> int:
        # The admin account is the school.
        return self.admin_id

    @property
    def role(self) -> Role:
        return Role.ADMIN


@dataclass(frozen=True)
class TeacherPrincipal:
    teacher_id: int
    school_id: int

    @property
    def user_id(self) -> int:
        return self.teacher_id

    @property
    def role(self) -> Role:
        return Role.TEACHER


@dataclass(frozen=True)
class StudentPrincipal:
    student_id: int
    school_id: int

    @property
    def user_id(self) -> int:
        return self.student_id

    @property
    def role(self) -> Role:
        return Role.STUDENT


Principal = Union[AdminPrincipal, TeacherPrincipal, StudentPrincipal]
