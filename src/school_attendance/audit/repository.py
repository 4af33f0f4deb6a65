from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import AuditAction, Role
from .model import ActionStat, AuditLogEntry


class AuditLogRepository(Protocol):
    """Append-only store: there is no update or delete."""

    def add(self, entry: AuditLogEntry) -> int:
        raise NotImplementedError

    def list_for_record(self, record_id: int, limit: int) -> Sequence[AuditLogEntry]:
        raise NotImplementedError

    def list_for_user(
        self,
        user_id: int,
        role: Role,
        *,
        school_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> Sequence[AuditLogEntry]:
        raise NotImplementedError

    def action_stats(
        self,
        school_id: int,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        actions: Optional[Sequence[AuditAction]] = None,
    ) -> Sequence[ActionStat]:
        raise NotImplementedError
