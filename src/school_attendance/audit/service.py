from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Optional

from ..common.datetime_utils import now_local
from ..core.constants import (
    DEFAULT_AUDIT_HISTORY_LIMIT,
    DEFAULT_USER_ACTIVITY_LIMIT,
    MAX_IP_ADDRESS_LENGTH,
    MAX_REASON_LENGTH,
    MAX_SESSION_ID_LENGTH,
    MAX_USER_AGENT_LENGTH,
)
from ..core.enums import AuditAction, Role
from ..core.principal import Principal
from .model import AuditInfo, AuditLogEntry
from .repository import AuditLogRepository

logger = logging.getLogger(__name__)


def _clip(value: Optional[str], width: int) -> Optional[str]:
    if value is None:
        return None
    return value.strip()[:width] or None


class AuditService:
    """Writes and reads the append-only attendance audit trail."""

    def __init__(self, logs: AuditLogRepository, *, clock: Callable[[], datetime] = now_local):
        self._logs = logs
        self._clock = clock

    def record(
        self,
        action: AuditAction,
        principal: Principal,
        *,
        school_id: int,
        record_id: Optional[int] = None,
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
        reason: Optional[str] = None,
        audit_info: Optional[AuditInfo] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuditLogEntry:
        info = audit_info or AuditInfo()
        entry = AuditLogEntry(
            log_id=None,
            record_id=record_id,
            action=action,
            old_values=old_values,
            new_values=new_values,
            performed_by=principal.user_id,
            performed_by_role=principal.role,
            school_id=int(school_id),
            performed_at=self._clock(),
            reason=_clip(reason, MAX_REASON_LENGTH),
            ip_address=_clip(info.ip_address, MAX_IP_ADDRESS_LENGTH),
            user_agent=_clip(info.user_agent, MAX_USER_AGENT_LENGTH),
            session_id=_clip(info.session_id, MAX_SESSION_ID_LENGTH),
            metadata=dict(metadata or {}),
        )
        log_id = self._logs.add(entry)
        logger.debug("audit %s record=%s by %s:%s", action.value, record_id, principal.role.value, principal.user_id)
        return replace(entry, log_id=log_id)

    def get_record_history(self, record_id: int, *, limit: int = DEFAULT_AUDIT_HISTORY_LIMIT) -> list[AuditLogEntry]:
        return list(self._logs.list_for_record(int(record_id), int(limit)))

    def get_user_activity(
        self,
        user_id: int,
        role: Role,
        *,
        school_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = DEFAULT_USER_ACTIVITY_LIMIT,
    ) -> list[AuditLogEntry]:
        return list(
            self._logs.list_for_user(int(user_id), Role(role), school_id=school_id, start=start, end=end, limit=int(limit))
        )

    def get_school_audit_summary(
        self,
        school_id: int,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[dict]:
        return [
            {
                "action": s.action.value,
                "count": s.count,
                "lastPerformed": s.last_performed.isoformat() if s.last_performed else None,
            }
            for s in self._logs.action_stats(int(school_id), start=start, end=end)
        ]

    def count_actions(
        self,
        school_id: int,
        actions: list[AuditAction],
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> tuple[dict[AuditAction, int], Optional[datetime]]:
        """Per-action counts plus the latest timestamp among them."""

        counts = {a: 0 for a in actions}
        last: Optional[datetime] = None
        for s in self._logs.action_stats(int(school_id), start=start, end=end, actions=actions):
            counts[s.action] = s.count
            if s.last_performed and (last is None or s.last_performed > last):
                last = s.last_performed
        return counts, last
