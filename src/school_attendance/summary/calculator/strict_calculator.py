from __future__ import annotations

from ..model import AttendanceSummary
from .base import PercentageCalculator


class StrictPercentageCalculator(PercentageCalculator):
    """Only present counts."""

    name = "strict"

    def attended(self, summary: AttendanceSummary) -> float:
        return float(summary.present_count)
