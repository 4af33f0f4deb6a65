from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Admin, SchoolClass, Student, Subject, Teacher, TeacherAssignment


class AdminRepository(Protocol):
    def get_by_id(self, admin_id: int) -> Optional[Admin]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[Admin]:
        raise NotImplementedError


class StudentRepository(Protocol):
    def get_by_id(self, student_id: int) -> Optional[Student]:
        raise NotImplementedError

    def get_by_university_id(self, school_id: int, university_id: str) -> Optional[Student]:
        raise NotImplementedError

    def get_many(self, student_ids: Sequence[int]) -> Sequence[Student]:
        raise NotImplementedError

    def list_by_class(self, class_id: int) -> Sequence[Student]:
        """Active students of a class, ordered by roll number."""

        raise NotImplementedError

    def list_by_school(self, school_id: int) -> Sequence[Student]:
        raise NotImplementedError

    def set_class(self, student_id: int, class_id: Optional[int]) -> bool:
        raise NotImplementedError

    def list_subject_ids(self, student_id: int) -> Sequence[int]:
        raise NotImplementedError

    def replace_subjects(self, student_id: int, subject_ids: Sequence[int]) -> None:
        raise NotImplementedError


class TeacherRepository(Protocol):
    def get_by_id(self, teacher_id: int) -> Optional[Teacher]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[Teacher]:
        raise NotImplementedError

    def has_assignment(self, teacher_id: int, class_id: int, subject_id: int) -> bool:
        raise NotImplementedError

    def list_assignments(self, teacher_id: int) -> Sequence[TeacherAssignment]:
        raise NotImplementedError

    def replace_assignments(self, teacher_id: int, pairs: Sequence[tuple[int, int]]) -> None:
        """Replace all (class_id, subject_id) assignments of a teacher."""

        raise NotImplementedError


class ClassRepository(Protocol):
    def get_class(self, class_id: int) -> Optional[SchoolClass]:
        raise NotImplementedError

    def get_subject(self, subject_id: int) -> Optional[Subject]:
        raise NotImplementedError

    def list_classes(self, school_id: int) -> Sequence[SchoolClass]:
        raise NotImplementedError

    def list_subjects(self, school_id: int) -> Sequence[Subject]:
        raise NotImplementedError
