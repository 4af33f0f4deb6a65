from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..core.enums import AuditAction, Role


@dataclass(frozen=True)
class AuditInfo:
    """Request context captured alongside every audited write."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None


@dataclass(frozen=True)
class AuditLogEntry:
    log_id: Optional[int]
    record_id: Optional[int]
    action: AuditAction
    old_values: Optional[dict]
    new_values: Optional[dict]
    performed_by: int
    performed_by_role: Role
    school_id: int
    performed_at: datetime
    reason: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "logId": self.log_id,
            "recordId": self.record_id,
            "action": self.action.value,
            "oldValues": self.old_values,
            "newValues": self.new_values,
            "performedBy": self.performed_by,
            "performedByRole": self.performed_by_role.value,
            "schoolId": self.school_id,
            "reason": self.reason,
            "performedAt": self.performed_at.isoformat(),
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "sessionId": self.session_id,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class ActionStat:
    action: AuditAction
    count: int
    last_performed: Optional[datetime]
