from __future__ import annotations

from ..model import AttendanceSummary
from .base import PercentageCalculator


class StandardPercentageCalculator(PercentageCalculator):
    """Standard rule: present + excused + half of late."""

    name = "standard"

    def attended(self, summary: AttendanceSummary) -> float:
        return summary.present_count + summary.excused_count + summary.late_count * 0.5
