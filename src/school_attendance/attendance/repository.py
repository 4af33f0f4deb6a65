from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus, Role
from .model import AttendanceFilters, AttendanceRecord, SummaryKey


class AttendanceRepository(Protocol):
    def get_by_id(self, record_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_by_key(
        self,
        *,
        student_id: int,
        class_id: int,
        subject_id: int,
        on_date: date,
        session: str,
        for_update: bool = False,
    ) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def upsert(
        self,
        *,
        student_id: int,
        class_id: int,
        subject_id: int,
        on_date: date,
        session: str,
        status: AttendanceStatus,
        teacher_id: Optional[int],
        actor_id: int,
        actor_role: Role,
        school_id: int,
        now: datetime,
    ) -> tuple[AttendanceRecord, bool]:
        """Insert or update the row for the natural key in one statement.

        Returns the stored record and whether it was created. An update
        keeps marked_by/marked_at and stamps last_modified_by/at.
        """

        raise NotImplementedError

    def update_fields(
        self,
        record_id: int,
        *,
        status: AttendanceStatus,
        session: str,
        on_date: date,
        modified_by: int,
        modified_at: datetime,
    ) -> Optional[AttendanceRecord]:
        """Raises AttendanceAlreadyMarkedError when the new key is taken."""

        raise NotImplementedError

    def move_to_class(self, record_id: int, class_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def delete(self, record_id: int) -> bool:
        raise NotImplementedError

    def count_by_status(self, *, student_id: int, subject_id: int, class_id: int) -> dict[AttendanceStatus, int]:
        raise NotImplementedError

    def search(
        self,
        filters: AttendanceFilters,
        *,
        sort_by: str = "date",
        sort_order: str = "desc",
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> tuple[Sequence[AttendanceRecord], int]:
        """Conjunctive filter; returns one page and the total match count."""

        raise NotImplementedError

    def list_for_session(self, *, class_id: int, subject_id: int, on_date: date, session: str) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_for_student_class(self, *, student_id: int, class_id: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_summary_keys(
        self,
        *,
        school_id: Optional[int] = None,
        class_id: Optional[int] = None,
        subject_id: Optional[int] = None,
    ) -> Sequence[SummaryKey]:
        """Distinct (student, subject, class) keys that have records."""

        raise NotImplementedError
