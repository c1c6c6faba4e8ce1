"""Domain records for the FieldOffice governance engine"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from fieldoffice.utils.constants import (
    DEPUTY_DIRECTOR_RANK,
    DIRECTOR_RANK,
    REQUEST_TITLES
)

class Role(str, Enum):
    AGENT = 'Agent'
    DEPUTY_DIRECTOR = 'DeputyDirector'
    DIRECTOR = 'Director'
    ADMIN = 'Admin'

LEADERSHIP_ROLES = frozenset({Role.ADMIN, Role.DIRECTOR, Role.DEPUTY_DIRECTOR})

def role_for_rank(rank: int) -> Role:
    """Map a numeric rank to its role; Admin is never rank-derived"""
    if rank == DIRECTOR_RANK:
        return Role.DIRECTOR
    if rank == DEPUTY_DIRECTOR_RANK:
        return Role.DEPUTY_DIRECTOR
    return Role.AGENT

class RequestKind(str, Enum):
    PROMOTION = 'promotion'
    PENALTY_REMOVAL = 'penalty_removal'
    DEPARTMENT_JOIN = 'department_join'

class RequestStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'

class NotificationKind(str, Enum):
    GLOBAL = 'global'
    PERSONAL = 'personal'

@dataclass(frozen=True)
class Penalty:
    type: str
    reason: str
    issued_by: str

@dataclass
class Member:
    """A tracked member of the Bureau"""
    id: int
    nickname: str
    rank: int = 0
    position: str = ''
    department: str = ''
    on_duty: bool = False
    penalties: List[Penalty] = field(default_factory=list)
    last_promotion_date: Optional[datetime] = None
    is_head: bool = False
    department_history: List[str] = field(default_factory=list)
    is_admin: bool = False

    @property
    def role(self) -> Role:
        # Recomputed on every access so it can never drift from rank
        if self.is_admin:
            return Role.ADMIN
        return role_for_rank(self.rank)

    @property
    def is_leadership(self) -> bool:
        return self.role in LEADERSHIP_ROLES

@dataclass
class Request:
    """A member-submitted request awaiting (or past) a decision"""
    id: int
    author_id: int
    author_nickname: str
    kind: RequestKind
    content: str
    submitted_at: datetime
    status: RequestStatus = RequestStatus.PENDING
    department: Optional[str] = None
    is_first_department_request: bool = False
    reviewer_nickname: Optional[str] = None
    decided_at: Optional[datetime] = None
    archive_id: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status is RequestStatus.PENDING

    def title(self, department_name: Optional[str] = None) -> str:
        return REQUEST_TITLES[self.kind.value].format(
            department=department_name or self.department
        )

@dataclass
class Notification:
    id: int
    recipient_id: Optional[int]
    text: str
    kind: NotificationKind
    created_at: datetime
    read: bool = False
    link: Optional[str] = None

    def is_relevant_to(self, viewer_id: int) -> bool:
        return self.kind is NotificationKind.GLOBAL or self.recipient_id == viewer_id

@dataclass(frozen=True)
class AuditLogEntry:
    id: int
    created_at: datetime
    actor_nickname: str
    action: str
    details: str = ''

@dataclass(frozen=True)
class NewsItem:
    id: int
    title: str
    content: str
    author: str
    created_at: datetime
    pinned: bool = False

@dataclass(frozen=True)
class BlacklistEntry:
    id: int
    nickname: str
    reason: str
    term: str
    issued_by: str
    created_at: datetime

@dataclass(frozen=True)
class ChatMessage:
    id: int
    channel: str
    author: str
    text: str
    created_at: datetime

@dataclass
class PromotionRule:
    rank: str
    requirements: List[str] = field(default_factory=list)
    probation: Optional[str] = None

@dataclass
class PromotionSystem:
    """Promotion rule tables; agent rule rows are indexed from rank 3"""
    academy_title: str = ''
    academy_rules: List[PromotionRule] = field(default_factory=list)
    agents_title: str = ''
    agent_promotions: List[PromotionRule] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PromotionSystem':
        return cls(
            academy_title=data.get('academy_title', ''),
            academy_rules=[PromotionRule(**rule) for rule in data.get('academy_rules', [])],
            agents_title=data.get('agents_title', ''),
            agent_promotions=[PromotionRule(**rule) for rule in data.get('agent_promotions', [])]
        )

@dataclass
class PenaltySystem:
    title: str = ''
    requirements: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PenaltySystem':
        return cls(title=data.get('title', ''), requirements=list(data.get('requirements', [])))
