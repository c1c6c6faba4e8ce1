"""Process-wide portal state shared by every engine operation"""

from dataclasses import dataclass, field, fields
from typing import Dict, Iterable, List, Optional

from fieldoffice.governance.errors import NotFound
from fieldoffice.governance.models import (
    AuditLogEntry,
    BlacklistEntry,
    ChatMessage,
    Member,
    NewsItem,
    Notification,
    PenaltySystem,
    PromotionSystem,
    Role
)
from fieldoffice.governance.requests import RequestStore

class IdSequence:
    """Monotonic id source shared by every record kind"""

    def __init__(self, start: int = 1):
        self._next = start

    def next_id(self) -> int:
        value = self._next
        self._next += 1
        return value

    def advance_past(self, used_ids: Iterable[int]) -> None:
        highest = max(used_ids, default=0)
        if highest >= self._next:
            self._next = highest + 1

    @property
    def peek(self) -> int:
        return self._next

@dataclass
class PortalState:
    """Container for members, requests, notifications, audit log and rule tables

    Engine operations receive the container explicitly and are the only code
    expected to mutate it.
    """
    rank_names: List[str]
    departments: Dict[str, str]
    promotion_system: PromotionSystem = field(default_factory=PromotionSystem)
    penalty_system: PenaltySystem = field(default_factory=PenaltySystem)
    charter_text: str = ''
    members: Dict[int, Member] = field(default_factory=dict)
    requests: RequestStore = field(default_factory=RequestStore)
    notifications: List[Notification] = field(default_factory=list)
    audit_log: List[AuditLogEntry] = field(default_factory=list)
    news: List[NewsItem] = field(default_factory=list)
    blacklist: List[BlacklistEntry] = field(default_factory=list)
    chats: Dict[str, List[ChatMessage]] = field(default_factory=dict)
    ids: IdSequence = field(default_factory=IdSequence)

    @property
    def max_rank(self) -> int:
        return len(self.rank_names) - 1

    def rank_name(self, rank: int) -> str:
        if 0 <= rank < len(self.rank_names):
            return self.rank_names[rank]
        return str(rank)

    def department_name(self, key: Optional[str]) -> str:
        if key is None:
            return ''
        return self.departments.get(key, key)

    def get_member(self, member_id: int) -> Member:
        member = self.members.get(member_id)
        if member is None:
            raise NotFound(f"Member {member_id} was not found.")
        return member

    def find_member_by_nickname(self, nickname: str) -> Optional[Member]:
        wanted = nickname.lower()
        return next(
            (m for m in self.members.values() if m.nickname.lower() == wanted),
            None
        )

    def find_department_by_name(self, name: str) -> Optional[str]:
        wanted = name.lower()
        return next(
            (key for key, display in self.departments.items() if display.lower() == wanted),
            None
        )

    def members_in_department(self, key: str) -> List[Member]:
        return [m for m in self.members.values() if m.department == key]

    def director(self) -> Optional[Member]:
        return next(
            (m for m in self.members.values() if m.role is Role.DIRECTOR),
            None
        )

    def add_member(self, member: Member) -> Member:
        self.members[member.id] = member
        self.ids.advance_past([member.id])
        return member

    def replace_with(self, other: 'PortalState') -> None:
        """Adopt every field of other, keeping this container's identity"""
        for f in fields(self):
            setattr(self, f.name, getattr(other, f.name))
