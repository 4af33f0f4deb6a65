from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import AttendanceSummary


class SummaryRepository(Protocol):
    def get(self, *, student_id: int, subject_id: int, class_id: int) -> Optional[AttendanceSummary]:
        raise NotImplementedError

    def save(self, summary: AttendanceSummary) -> AttendanceSummary:
        """Upsert on (student_id, subject_id, class_id)."""

        raise NotImplementedError

    def list_for_student(
        self,
        student_id: int,
        *,
        subject_id: Optional[int] = None,
        class_id: Optional[int] = None,
    ) -> Sequence[AttendanceSummary]:
        raise NotImplementedError

    def list_for_class(self, class_id: int, *, subject_id: Optional[int] = None) -> Sequence[AttendanceSummary]:
        raise NotImplementedError

    def list_for_school(self, school_id: int) -> Sequence[AttendanceSummary]:
        raise NotImplementedError
