from __future__ import annotations

import logging
from typing import Optional

from werkzeug.security import check_password_hash

from ..common.validators import require_int, require_non_empty
from ..core.enums import Role
from ..core.exceptions import AuthenticationError, ValidationError
from ..core.principal import AdminPrincipal, Principal, StudentPrincipal, TeacherPrincipal
from ..school.repository import AdminRepository, StudentRepository, TeacherRepository
from .tokens import TokenCodec

logger = logging.getLogger(__name__)


def _password_ok(password_hash: str, password: str) -> bool:
    try:
        return check_password_hash(password_hash, password)
    except ValueError:
        # e.g. placeholder hashes like 'CHANGE_ME'
        return False


class AuthService:
    """Use case: log in by role and turn bearer tokens back into principals."""

    def __init__(
        self,
        admins: AdminRepository,
        teachers: TeacherRepository,
        students: StudentRepository,
        tokens: TokenCodec,
    ):
        self._admins = admins
        self._teachers = teachers
        self._students = students
        self._tokens = tokens

    def login(
        self,
        role: str,
        identifier: str,
        password: str,
        *,
        school_id: Optional[int] = None,
    ) -> dict:
        """Admins and teachers log in by email, students by university id."""

        identifier = require_non_empty(identifier, "identifier")
        password = require_non_empty(password, "password")
        try:
            role_enum = Role(str(role).lower())
        except ValueError:
            raise ValidationError("role must be admin, teacher or student")

        principal: Optional[Principal] = None
        password_hash = ""
        if role_enum == Role.ADMIN:
            admin = self._admins.get_by_email(identifier)
            if admin:
                principal, password_hash = AdminPrincipal(admin.admin_id), admin.password_hash
        elif role_enum == Role.TEACHER:
            teacher = self._teachers.get_by_email(identifier)
            if teacher and teacher.is_active:
                principal = TeacherPrincipal(teacher.teacher_id, teacher.school_id)
                password_hash = teacher.password_hash
        else:
            if school_id is None:
                raise ValidationError("schoolId is required for student login")
            student = self._students.get_by_university_id(require_int(school_id, "schoolId"), identifier)
            if student and student.is_active:
                principal = StudentPrincipal(student.student_id, student.school_id)
                password_hash = student.password_hash

        if principal is None or not _password_ok(password_hash, password):
            logger.info("Failed %s login for %s", role_enum.value, identifier)
            raise AuthenticationError("Invalid credentials")

        token = self._tokens.create_access_token(
            user_id=principal.user_id, role=principal.role, school_id=principal.school_id
        )
        return {"token": token, "role": principal.role.value, "userId": principal.user_id, "schoolId": principal.school_id}

    def resolve_principal(self, token: str) -> Principal:
        """Decode a bearer token and re-read the account it names."""

        payload = self._tokens.decode_token(token)
        try:
            user_id = int(payload["sub"])
            role = Role(payload["role"])
        except (TypeError, ValueError):
            raise AuthenticationError("Invalid token claims")

        if role == Role.ADMIN:
            admin = self._admins.get_by_id(user_id)
            if admin:
                return AdminPrincipal(admin.admin_id)
        elif role == Role.TEACHER:
            teacher = self._teachers.get_by_id(user_id)
            if teacher and teacher.is_active:
                return TeacherPrincipal(teacher.teacher_id, teacher.school_id)
        else:
            student = self._students.get_by_id(user_id)
            if student and student.is_active:
                return StudentPrincipal(student.student_id, student.school_id)

        raise AuthenticationError("User not found or inactive")
