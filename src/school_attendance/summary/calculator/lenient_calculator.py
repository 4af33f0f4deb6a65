from __future__ import annotations

from ..model import AttendanceSummary
from .base import PercentageCalculator


class LenientPercentageCalculator(PercentageCalculator):
    """Present, late and excused all count as attended."""

    name = "lenient"

    def attended(self, summary: AttendanceSummary) -> float:
        return float(summary.present_count + summary.late_count + summary.excused_count)
