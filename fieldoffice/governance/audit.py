"""Append-only audit trail of privileged actions"""

from datetime import datetime
from typing import List, Optional

from fieldoffice.governance.models import AuditLogEntry
from fieldoffice.governance.state import PortalState
from fieldoffice.utils.logger import get_logger

class AuditRecorder:
    def __init__(self, state: PortalState):
        self.state = state

    def record(self, actor_nickname: str, action: str, details: str, now: datetime) -> AuditLogEntry:
        entry = AuditLogEntry(
            id=self.state.ids.next_id(),
            created_at=now,
            actor_nickname=actor_nickname,
            action=action,
            details=details
        )
        self.state.audit_log.append(entry)
        get_logger('audit', actor=actor_nickname, action=action).info(f"Audit: {details or action}")
        return entry

    def entries(self) -> List[AuditLogEntry]:
        """All entries, newest first"""
        return sorted(self.state.audit_log, key=lambda e: (e.created_at, e.id), reverse=True)

    def search(self, query: Optional[str]) -> List[AuditLogEntry]:
        needle = (query or '').strip().lower()
        if not needle:
            return self.entries()
        return [
            e for e in self.entries()
            if needle in e.actor_nickname.lower()
            or needle in e.action.lower()
            or needle in e.details.lower()
        ]
