from school_attendance.core.enums import AttendanceStatus
from school_attendance.summary.calculator.lenient_calculator import LenientPercentageCalculator
from school_attendance.summary.calculator.standard_calculator import StandardPercentageCalculator
from school_attendance.summary.calculator.strict_calculator import StrictPercentageCalculator
from school_attendance.summary.model import AttendanceSummary


def _summary(present=0, absent=0, late=0, excused=0):
    return AttendanceSummary.from_counts(
        student_id=1,
        subject_id=1,
        class_id=1,
        school_id=1,
        counts={
            AttendanceStatus.PRESENT: present,
            AttendanceStatus.ABSENT: absent,
            AttendanceStatus.LATE: late,
            AttendanceStatus.EXCUSED: excused,
        },
        last_updated=None,
    )


def test_stored_percentage_counts_present_only():
    s = _summary(present=6, absent=2, late=1, excused=1)
    assert s.total_sessions == 10
    assert s.attendance_percentage == 60.0


def test_stored_percentage_rounds_to_two_places():
    assert _summary(present=1, absent=2).attendance_percentage == 33.33


def test_standard_counts_half_late():
    s = _summary(present=6, absent=2, late=1, excused=1)
    assert StandardPercentageCalculator().percentage(s) == 75.0


def test_strict_counts_present_only():
    s = _summary(present=6, absent=2, late=1, excused=1)
    assert StrictPercentageCalculator().percentage(s) == 60.0


def test_lenient_counts_late_and_excused():
    s = _summary(present=6, absent=2, late=1, excused=1)
    assert LenientPercentageCalculator().percentage(s) == 80.0


def test_no_sessions_is_zero():
    s = _summary()
    assert s.attendance_percentage == 0.0
    assert StandardPercentageCalculator().percentage(s) == 0.0
    assert LenientPercentageCalculator().percentage(s) == 0.0
