from __future__ import annotations

from abc import ABC, abstractmethod

from ..model import AttendanceSummary


class PercentageCalculator(ABC):
    """Calculator interface (Strategy Pattern for attendance percentage)."""

    name: str = ""

    @abstractmethod
    def attended(self, summary: AttendanceSummary) -> float:
        raise NotImplementedError

    def percentage(self, summary: AttendanceSummary) -> float:
        if summary.total_sessions <= 0:
            return 0.0
        return round(self.attended(summary) / summary.total_sessions * 100, 2)
