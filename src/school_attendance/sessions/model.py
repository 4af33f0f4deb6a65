from __future__ import annotations

from dataclasses import dataclass

from ..core.enums import SessionType


@dataclass(frozen=True)
class SessionConfiguration:
    """Which session labels a (class, subject) pair accepts."""

    config_id: int
    class_id: int
    subject_id: int
    session_type: SessionType
    sessions_per_week: int
    session_duration: int
    total_sessions: int
    school_id: int
    is_active: bool = True

    @property
    def session_names(self) -> list[str]:
        if self.session_type == SessionType.LECTURE:
            return [f"Lecture {i}" for i in range(1, int(self.sessions_per_week) + 1)]
        return [self.session_type.value.capitalize()]


@dataclass(frozen=True)
class SessionOption:
    value: str
    label: str
    type: str
    duration: int

    def to_dict(self) -> dict:
        return {"value": self.value, "label": self.label, "type": self.type, "duration": self.duration}
