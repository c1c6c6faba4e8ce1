from datetime import datetime, timezone
from typing import Optional, Dict, Any
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from fieldoffice.governance.models import (
    AuditLogEntry,
    BlacklistEntry,
    ChatMessage,
    Member,
    NewsItem,
    Notification,
    NotificationKind,
    Penalty,
    Request,
    RequestKind,
    RequestStatus
)

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), 'postgresql')

def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes returned by backends without tz support"""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)

class TimestampMixin:
    """Mixin for adding timestamp columns"""
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

class MemberRecord(Base, TimestampMixin):
    """Whitelisted Bureau member; role is derived from rank and never stored"""
    __tablename__ = 'members'

    id = Column(Integer, primary_key=True, autoincrement=False)
    nickname = Column(String(64), unique=True, nullable=False, index=True)
    rank = Column(Integer, nullable=False, default=0)
    position = Column(String(128), nullable=False, default='')
    department = Column(String(64), nullable=False, default='')
    on_duty = Column(Boolean, nullable=False, default=False)
    penalties = Column(JSONType, nullable=False, default=list)
    last_promotion_date = Column(DateTime(timezone=True))
    is_head = Column(Boolean, nullable=False, default=False)
    department_history = Column(JSONType, nullable=False, default=list)
    is_admin = Column(Boolean, nullable=False, default=False)

    @classmethod
    def from_domain(cls, member: Member) -> 'MemberRecord':
        return cls(
            id=member.id,
            nickname=member.nickname,
            rank=member.rank,
            position=member.position,
            department=member.department,
            on_duty=member.on_duty,
            penalties=[
                {'type': p.type, 'reason': p.reason, 'issued_by': p.issued_by}
                for p in member.penalties
            ],
            last_promotion_date=member.last_promotion_date,
            is_head=member.is_head,
            department_history=list(member.department_history),
            is_admin=member.is_admin
        )

    def to_domain(self) -> Member:
        return Member(
            id=self.id,
            nickname=self.nickname,
            rank=self.rank,
            position=self.position,
            department=self.department,
            on_duty=self.on_duty,
            penalties=[Penalty(**p) for p in self.penalties or []],
            last_promotion_date=as_utc(self.last_promotion_date),
            is_head=self.is_head,
            department_history=list(self.department_history or []),
            is_admin=self.is_admin
        )

class RequestRecord(Base, TimestampMixin):
    """Pending or archived request; archive_id is set only once decided"""
    __tablename__ = 'requests'

    id = Column(Integer, primary_key=True, autoincrement=False)
    author_id = Column(Integer, nullable=False, index=True)
    author_nickname = Column(String(64), nullable=False)
    kind = Column(String(32), nullable=False)
    content = Column(Text, nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(16), nullable=False, index=True)
    department = Column(String(64))
    is_first_department_request = Column(Boolean, nullable=False, default=False)
    reviewer_nickname = Column(String(64))
    decided_at = Column(DateTime(timezone=True))
    archive_id = Column(String(16), unique=True)

    @classmethod
    def from_domain(cls, request: Request) -> 'RequestRecord':
        return cls(
            id=request.id,
            author_id=request.author_id,
            author_nickname=request.author_nickname,
            kind=request.kind.value,
            content=request.content,
            submitted_at=request.submitted_at,
            status=request.status.value,
            department=request.department,
            is_first_department_request=request.is_first_department_request,
            reviewer_nickname=request.reviewer_nickname,
            decided_at=request.decided_at,
            archive_id=request.archive_id
        )

    def to_domain(self) -> Request:
        return Request(
            id=self.id,
            author_id=self.author_id,
            author_nickname=self.author_nickname,
            kind=RequestKind(self.kind),
            content=self.content,
            submitted_at=as_utc(self.submitted_at),
            status=RequestStatus(self.status),
            department=self.department,
            is_first_department_request=self.is_first_department_request,
            reviewer_nickname=self.reviewer_nickname,
            decided_at=as_utc(self.decided_at),
            archive_id=self.archive_id
        )

class NotificationRecord(Base, TimestampMixin):
    __tablename__ = 'notifications'

    id = Column(Integer, primary_key=True, autoincrement=False)
    recipient_id = Column(Integer, index=True)
    text = Column(Text, nullable=False)
    kind = Column(String(16), nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    link = Column(String(64))

    @classmethod
    def from_domain(cls, notification: Notification) -> 'NotificationRecord':
        return cls(
            id=notification.id,
            recipient_id=notification.recipient_id,
            text=notification.text,
            kind=notification.kind.value,
            created_at=notification.created_at,
            read=notification.read,
            link=notification.link
        )

    def to_domain(self) -> Notification:
        return Notification(
            id=self.id,
            recipient_id=self.recipient_id,
            text=self.text,
            kind=NotificationKind(self.kind),
            created_at=as_utc(self.created_at),
            read=self.read,
            link=self.link
        )

class AuditLogRecord(Base, TimestampMixin):
    __tablename__ = 'audit_log'

    id = Column(Integer, primary_key=True, autoincrement=False)
    actor_nickname = Column(String(64), nullable=False, index=True)
    action = Column(String(128), nullable=False)
    details = Column(Text, nullable=False, default='')

    @classmethod
    def from_domain(cls, entry: AuditLogEntry) -> 'AuditLogRecord':
        return cls(
            id=entry.id,
            created_at=entry.created_at,
            actor_nickname=entry.actor_nickname,
            action=entry.action,
            details=entry.details
        )

    def to_domain(self) -> AuditLogEntry:
        return AuditLogEntry(
            id=self.id,
            created_at=as_utc(self.created_at),
            actor_nickname=self.actor_nickname,
            action=self.action,
            details=self.details
        )

class NewsRecord(Base, TimestampMixin):
    __tablename__ = 'news_items'

    id = Column(Integer, primary_key=True, autoincrement=False)
    title = Column(String(256), nullable=False)
    content = Column(Text, nullable=False)
    author = Column(String(64), nullable=False)
    pinned = Column(Boolean, nullable=False, default=False)

    @classmethod
    def from_domain(cls, item: NewsItem) -> 'NewsRecord':
        return cls(
            id=item.id,
            title=item.title,
            content=item.content,
            author=item.author,
            created_at=item.created_at,
            pinned=item.pinned
        )

    def to_domain(self) -> NewsItem:
        return NewsItem(
            id=self.id,
            title=self.title,
            content=self.content,
            author=self.author,
            created_at=as_utc(self.created_at),
            pinned=self.pinned
        )

class BlacklistRecord(Base, TimestampMixin):
    __tablename__ = 'blacklist'

    id = Column(Integer, primary_key=True, autoincrement=False)
    nickname = Column(String(64), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    term = Column(String(64), nullable=False)
    issued_by = Column(String(64), nullable=False)

    @classmethod
    def from_domain(cls, entry: BlacklistEntry) -> 'BlacklistRecord':
        return cls(
            id=entry.id,
            nickname=entry.nickname,
            reason=entry.reason,
            term=entry.term,
            issued_by=entry.issued_by,
            created_at=entry.created_at
        )

    def to_domain(self) -> BlacklistEntry:
        return BlacklistEntry(
            id=self.id,
            nickname=self.nickname,
            reason=self.reason,
            term=self.term,
            issued_by=self.issued_by,
            created_at=as_utc(self.created_at)
        )

class ChatMessageRecord(Base, TimestampMixin):
    __tablename__ = 'chat_messages'

    id = Column(Integer, primary_key=True, autoincrement=False)
    channel = Column(String(64), nullable=False, index=True)
    author = Column(String(64), nullable=False)
    text = Column(Text, nullable=False)

    @classmethod
    def from_domain(cls, message: ChatMessage) -> 'ChatMessageRecord':
        return cls(
            id=message.id,
            channel=message.channel,
            author=message.author,
            text=message.text,
            created_at=message.created_at
        )

    def to_domain(self) -> ChatMessage:
        return ChatMessage(
            id=self.id,
            channel=self.channel,
            author=self.author,
            text=self.text,
            created_at=as_utc(self.created_at)
        )

class PortalSetting(Base, TimestampMixin):
    """Key/value store for name tables, rule tables and the id counter"""
    __tablename__ = 'portal_settings'

    key = Column(String(64), primary_key=True)
    value = Column(JSONType)

    def to_dict(self) -> Dict[str, Any]:
        return {'key': self.key, 'value': self.value}
