import asyncio
import logging
from typing import Any, Dict, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError

from fieldoffice.db.models import (
    AuditLogRecord,
    BlacklistRecord,
    ChatMessageRecord,
    MemberRecord,
    NewsRecord,
    NotificationRecord,
    PortalSetting,
    RequestRecord
)
from fieldoffice.governance.models import PenaltySystem, PromotionSystem
from fieldoffice.governance.requests import RequestStore
from fieldoffice.governance.state import IdSequence, PortalState

logger = logging.getLogger('FieldOffice')

RECORD_TABLES = (
    MemberRecord,
    RequestRecord,
    NotificationRecord,
    AuditLogRecord,
    NewsRecord,
    BlacklistRecord,
    ChatMessageRecord,
    PortalSetting
)

class StateRepository:
    """Persists the whole portal state as flat tables

    Each save replaces every table inside a single transaction, so a reader
    never observes half of a state transition.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self._save_lock = asyncio.Lock()

    def _settings_rows(self, state: PortalState) -> Dict[str, Any]:
        return {
            'rank_names': list(state.rank_names),
            'departments': dict(state.departments),
            'promotion_system': state.promotion_system.to_dict(),
            'penalty_system': state.penalty_system.to_dict(),
            'charter_text': state.charter_text,
            'next_id': state.ids.peek
        }

    async def save_state(self, state: PortalState) -> None:
        """Replace the stored snapshot with state"""
        async with self._save_lock:
            async with self.session_factory() as session:
                try:
                    for table in RECORD_TABLES:
                        await session.execute(delete(table))

                    session.add_all(MemberRecord.from_domain(m) for m in state.members.values())
                    session.add_all(RequestRecord.from_domain(r) for r in state.requests.all_requests())
                    session.add_all(NotificationRecord.from_domain(n) for n in state.notifications)
                    session.add_all(AuditLogRecord.from_domain(e) for e in state.audit_log)
                    session.add_all(NewsRecord.from_domain(n) for n in state.news)
                    session.add_all(BlacklistRecord.from_domain(b) for b in state.blacklist)
                    session.add_all(
                        ChatMessageRecord.from_domain(message)
                        for messages in state.chats.values()
                        for message in messages
                    )
                    session.add_all(
                        PortalSetting(key=key, value=value)
                        for key, value in self._settings_rows(state).items()
                    )

                    await session.commit()
                    logger.debug(f"Portal state saved ({len(state.members)} members)")

                except SQLAlchemyError as e:
                    await session.rollback()
                    logger.error(f"Error saving portal state: {e}")
                    raise

    async def load_state(self) -> Optional[PortalState]:
        """Rebuild the portal state, or None when nothing has been saved yet"""
        async with self.session_factory() as session:
            try:
                result = await session.execute(select(PortalSetting))
                settings = {row.key: row.value for row in result.scalars().all()}
                if not settings:
                    return None

                members = (await session.execute(select(MemberRecord))).scalars().all()
                requests = (await session.execute(select(RequestRecord))).scalars().all()
                notifications = (await session.execute(
                    select(NotificationRecord).order_by(NotificationRecord.id)
                )).scalars().all()
                audit_entries = (await session.execute(
                    select(AuditLogRecord).order_by(AuditLogRecord.id)
                )).scalars().all()
                news = (await session.execute(
                    select(NewsRecord).order_by(NewsRecord.created_at.desc(), NewsRecord.id.desc())
                )).scalars().all()
                blacklist = (await session.execute(
                    select(BlacklistRecord).order_by(BlacklistRecord.created_at.desc(), BlacklistRecord.id.desc())
                )).scalars().all()
                messages = (await session.execute(
                    select(ChatMessageRecord).order_by(ChatMessageRecord.id)
                )).scalars().all()

            except SQLAlchemyError as e:
                logger.error(f"Error loading portal state: {e}")
                raise

        request_store = RequestStore()
        request_store.restore(r.to_domain() for r in requests)

        chats: Dict[str, list] = {}
        for message in messages:
            chats.setdefault(message.channel, []).append(message.to_domain())

        state = PortalState(
            rank_names=list(settings['rank_names']),
            departments=dict(settings['departments']),
            promotion_system=PromotionSystem.from_dict(settings.get('promotion_system') or {}),
            penalty_system=PenaltySystem.from_dict(settings.get('penalty_system') or {}),
            charter_text=settings.get('charter_text', ''),
            members={m.id: m.to_domain() for m in members},
            requests=request_store,
            notifications=[n.to_domain() for n in notifications],
            audit_log=[e.to_domain() for e in audit_entries],
            news=[n.to_domain() for n in news],
            blacklist=[b.to_domain() for b in blacklist],
            chats=chats,
            ids=IdSequence(settings.get('next_id', 1))
        )

        # Never hand out an id that a stored record already uses
        state.ids.advance_past(
            [m.id for m in members] + [r.id for r in requests]
            + [n.id for n in notifications] + [e.id for e in audit_entries]
            + [n.id for n in news] + [b.id for b in blacklist] + [m.id for m in messages]
        )
        logger.debug(
            f"Portal state loaded: {len(state.members)} members, "
            f"{len(request_store)} pending requests"
        )
        return state
