"""Governance engine: the only entry point that mutates portal state

Every public coroutine that changes state is a transaction: it takes the
state lock, reloads the stored snapshot, validates, applies its whole change
in one synchronous block and persists before the lock is released. A
rejected call leaves no request, notification, audit entry or news item
behind, and with a shared lock provider several workers over one database
see each other's decisions.
"""

import functools
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from fieldoffice.governance.audit import AuditRecorder
from fieldoffice.governance.authority import (
    can_manage,
    can_review,
    ensure_can_assign_rank,
    is_leadership
)
from fieldoffice.governance.consequences import (
    CONSEQUENCE_HANDLERS,
    install_director,
    notify_rejection
)
from fieldoffice.governance.cooldown import check_promotion_cooldown, remaining_cooldown
from fieldoffice.governance.delivery import NotificationSink
from fieldoffice.governance.errors import (
    DuplicateNickname,
    DuplicatePending,
    Forbidden,
    NotFound,
    ValidationError
)
from fieldoffice.governance.locks import LocalLockProvider, LockProvider
from fieldoffice.governance.models import (
    AuditLogEntry,
    BlacklistEntry,
    ChatMessage,
    Member,
    NewsItem,
    Notification,
    Penalty,
    PenaltySystem,
    PromotionSystem,
    Request,
    RequestKind,
    RequestStatus,
    Role,
    role_for_rank
)
from fieldoffice.governance.notifications import NotificationDispatcher
from fieldoffice.governance.state import PortalState
from fieldoffice.utils.constants import (
    AUDIT_ACTIONS,
    DEFAULT_CHAT_CHANNEL,
    DEPARTMENT_KEYS,
    LOCK_SETTINGS,
    NOTIFICATION_MESSAGES,
    PENALTY_TYPE,
    PERMANENT_TERM,
    POSITIONS,
    RANK_SETTINGS,
    REQUEST_EVIDENCE,
    SYSTEM_UPDATE_NEWS,
    SYSTEM_UPDATES
)
from fieldoffice.utils.logger import get_logger

logger = logging.getLogger('FieldOffice')

class StateStore(Protocol):
    async def save_state(self, state: PortalState) -> None:
        ...

    async def load_state(self) -> Optional[PortalState]:
        ...

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def transaction(method: Callable[..., Any]) -> Callable[..., Any]:
    """Run an engine coroutine under the state lock on fresh state, then commit"""
    @functools.wraps(method)
    async def wrapper(self: 'GovernanceEngine', *args, **kwargs):
        async with self.locks.acquire(LOCK_SETTINGS['STATE_KEY']):
            await self._reload()
            try:
                result = await method(self, *args, **kwargs)
            except Exception:
                self.notifications.discard()
                raise
            await self._commit()
            return result
    return wrapper

def parse_outcome(outcome: Union[RequestStatus, str]) -> RequestStatus:
    """Final decision status from an enum member or its spelling in any case"""
    if not isinstance(outcome, str):
        raise ValidationError("A decision must approve or reject the request.")
    try:
        status = RequestStatus(outcome.strip().lower())
    except ValueError as e:
        raise ValidationError(f"Unknown decision outcome: {outcome}.") from e
    if status is RequestStatus.PENDING:
        raise ValidationError("A decision must approve or reject the request.")
    return status

def _require_text(value: Optional[str], field_name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field_name} cannot be empty.")
    return value.strip()

def normalize_nickname(nickname: str) -> str:
    """Whitelist form of a nickname: trimmed, spaces replaced by underscores"""
    return _require_text(nickname, "Nickname").replace(' ', '_')

class GovernanceEngine:
    """Request lifecycle, management actions and system updates for the portal"""

    def __init__(self,
                 state: PortalState,
                 locks: Optional[LockProvider] = None,
                 sinks: Optional[Sequence[NotificationSink]] = None,
                 repository: Optional[StateStore] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.state = state
        self.locks = locks or LocalLockProvider()
        self.notifications = NotificationDispatcher(state, sinks)
        self.audit = AuditRecorder(state)
        self.repository = repository
        self._clock = clock or utc_now

    def now(self) -> datetime:
        return self._clock()

    async def _reload(self) -> None:
        if self.repository is None:
            return
        stored = await self.repository.load_state()
        if stored is not None:
            self.state.replace_with(stored)

    async def _commit(self) -> None:
        """Persist a completed transition, then hand off its deliveries"""
        if self.repository is not None:
            try:
                await self.repository.save_state(self.state)
            except Exception:
                # The next transaction reloads the stored snapshot over this one
                self.notifications.discard()
                logger.error("Portal state was not saved; unsaved changes will be discarded")
                raise
        self.notifications.flush()

    async def refresh(self) -> None:
        """Pick up transitions persisted by other workers"""
        async with self.locks.acquire(LOCK_SETTINGS['STATE_KEY']):
            await self._reload()

    async def aclose(self) -> None:
        await self.notifications.drain()

    def _require_leadership(self, actor: Member) -> None:
        if not is_leadership(actor):
            logger.warning(f"{actor.nickname} denied: leadership role required")
            raise Forbidden()

    def _require_admin(self, actor: Member) -> None:
        if actor.role is not Role.ADMIN:
            logger.warning(f"{actor.nickname} denied: administrator role required")
            raise Forbidden()

    def _require_manageable(self, actor: Member, target: Member) -> None:
        if not can_manage(actor, target):
            logger.warning(f"{actor.nickname} denied management of {target.nickname}")
            raise Forbidden()

    # Request submission

    def _format_content(self, kind: RequestKind, content: str,
                        evidence: Optional[Mapping[str, str]]) -> str:
        body = _require_text(content, "Request content")
        fields = REQUEST_EVIDENCE.get(kind.value)
        if evidence is None or not fields:
            return body

        lines = []
        for key, label in fields.items():
            lines.append(f"{label}: {_require_text(evidence.get(key), label)}")
        lines.append("")
        lines.append("Work completed:")
        lines.append(body)
        return "\n".join(lines)

    def _new_request(self, author: Member, kind: RequestKind, content: str,
                     department: Optional[str] = None) -> Request:
        return Request(
            id=self.state.ids.peek,
            author_id=author.id,
            author_nickname=author.nickname,
            kind=kind,
            content=content,
            submitted_at=self.now(),
            department=department,
            is_first_department_request=(
                kind is RequestKind.DEPARTMENT_JOIN and not author.department_history
            )
        )

    def _check_duplicate(self, author: Member, kind: RequestKind) -> None:
        if self.state.requests.has_pending(author.id, kind):
            raise DuplicatePending()

    @transaction
    async def submit_promotion_request(self,
                                       author_id: int,
                                       content: str,
                                       evidence: Optional[Mapping[str, str]] = None) -> Request:
        author = self.state.get_member(author_id)
        check_promotion_cooldown(author, self.state.promotion_system.agent_promotions, self.now())
        body = self._format_content(RequestKind.PROMOTION, content, evidence)
        return await self._submit(author, RequestKind.PROMOTION, body)

    @transaction
    async def submit_penalty_removal_request(self,
                                             author_id: int,
                                             content: str,
                                             evidence: Optional[Mapping[str, str]] = None) -> Request:
        author = self.state.get_member(author_id)
        body = self._format_content(RequestKind.PENALTY_REMOVAL, content, evidence)
        return await self._submit(author, RequestKind.PENALTY_REMOVAL, body)

    @transaction
    async def submit_department_join_request(self, author_id: int, department_key: str) -> Request:
        author = self.state.get_member(author_id)
        if department_key not in self.state.departments:
            raise NotFound(f"Department {department_key} does not exist.")
        department_name = self.state.department_name(department_key)
        if author.department == department_key:
            raise ValidationError(f"You are already a member of {department_name}.")

        content = f"Please consider my application to join the {department_name} department."
        return await self._submit(author, RequestKind.DEPARTMENT_JOIN, content, department_key)

    async def _submit(self, author: Member, kind: RequestKind, content: str,
                      department: Optional[str] = None) -> Request:
        self._check_duplicate(author, kind)
        request = self._new_request(author, kind, content, department)
        self.state.ids.next_id()
        self.state.requests.submit(request)
        return request

    # Review

    def list_pending_for(self, reviewer_id: int) -> List[Request]:
        reviewer = self.state.get_member(reviewer_id)
        return self.state.requests.list_pending_for(reviewer)

    def pending_requests_of(self, author_id: int) -> List[Request]:
        return self.state.requests.pending_for_author(author_id)

    @transaction
    async def decide(self, reviewer_id: int, request_id: int,
                     outcome: Union[RequestStatus, str]) -> Request:
        """Approve or reject a pending request and apply its consequence"""
        outcome = parse_outcome(outcome)
        reviewer = self.state.get_member(reviewer_id)
        request = self.state.requests.get_pending(request_id)
        log = get_logger('decisions', request_id=request_id, reviewer=reviewer.nickname)
        if not can_review(reviewer, request):
            log.warning(f"{reviewer.nickname} may not review request {request_id}")
            raise Forbidden()

        now = self.now()
        request.status = outcome
        request.reviewer_nickname = reviewer.nickname
        request.decided_at = now
        self.state.requests.archive(request)

        self.audit.record(
            reviewer.nickname,
            AUDIT_ACTIONS['REQUEST_REVIEWED'].format(outcome=outcome.value.capitalize()),
            f"Type: {request.title(self.state.department_name(request.department))}, "
            f"Author: {request.author_nickname}",
            now
        )

        author = self.state.members.get(request.author_id)
        if author is None:
            log.warning(
                f"Author {request.author_nickname} of request {request.id} no longer exists; "
                "consequence skipped"
            )
        elif outcome is RequestStatus.APPROVED:
            CONSEQUENCE_HANDLERS[request.kind](self.state, self.notifications, request, author, now)
        else:
            notify_rejection(self.state, self.notifications, request, now)

        log.info(f"Request {request.archive_id} {outcome.value} by {reviewer.nickname}")
        return request

    def list_archive(self) -> List[Request]:
        return self.state.requests.list_archive()

    def search_archive(self, query: str) -> List[Request]:
        return self.state.requests.search_archive(query)

    def find_archived(self, archive_id: str) -> Request:
        request = self.state.requests.find_archived(archive_id)
        if request is None:
            raise NotFound(f"Archived request {archive_id} was not found.")
        return request

    def promotion_cooldown(self, member_id: int) -> Optional[timedelta]:
        member = self.state.get_member(member_id)
        return remaining_cooldown(member, self.state.promotion_system.agent_promotions, self.now())

    # Direct management

    def can_manage(self, manager_id: int, target_id: int) -> bool:
        return can_manage(self.state.get_member(manager_id), self.state.get_member(target_id))

    @transaction
    async def issue_penalty(self, actor_id: int, target_id: int, reason: str) -> Penalty:
        actor = self.state.get_member(actor_id)
        target = self.state.get_member(target_id)
        reason = _require_text(reason, "Penalty reason")
        self._require_manageable(actor, target)

        now = self.now()
        penalty = Penalty(type=PENALTY_TYPE, reason=reason, issued_by=actor.nickname)
        target.penalties.append(penalty)
        self.notifications.notify(
            target.id,
            NOTIFICATION_MESSAGES['PENALTY_ISSUED'].format(
                penalty_type=PENALTY_TYPE.lower(),
                actor=actor.nickname,
                reason=reason
            ),
            now
        )
        self.audit.record(
            actor.nickname,
            AUDIT_ACTIONS['PENALTY_ISSUED'],
            f"Agent: {target.nickname}, Reason: {reason}",
            now
        )
        return penalty

    @transaction
    async def remove_penalty(self, actor_id: int, target_id: int, index: int) -> Penalty:
        actor = self.state.get_member(actor_id)
        target = self.state.get_member(target_id)
        self._require_manageable(actor, target)
        if not 0 <= index < len(target.penalties):
            raise NotFound(f"{target.nickname} has no penalty #{index + 1}.")

        removed = target.penalties.pop(index)
        self.audit.record(
            actor.nickname,
            AUDIT_ACTIONS['PENALTY_REMOVED'],
            f"Agent: {target.nickname}, Penalty: {removed.reason}",
            self.now()
        )
        return removed

    @transaction
    async def change_rank(self, actor_id: int, target_id: int,
                          new_rank: int, new_position: str) -> Member:
        actor = self.state.get_member(actor_id)
        target = self.state.get_member(target_id)
        if not 0 <= new_rank <= self.state.max_rank:
            raise ValidationError(f"Rank must be between 0 and {self.state.max_rank}.")
        new_position = _require_text(new_position, "Position")
        self._require_manageable(actor, target)
        ensure_can_assign_rank(actor, new_rank, target.role)

        now = self.now()
        old_rank_name = self.state.rank_name(target.rank)
        old_position = target.position
        if role_for_rank(new_rank) is Role.DIRECTOR:
            install_director(self.state, target)
        else:
            target.rank = new_rank
        target.position = new_position
        new_rank_name = self.state.rank_name(target.rank)

        self.audit.record(
            actor.nickname,
            AUDIT_ACTIONS['RANK_CHANGED'],
            f'Agent: {target.nickname}. Rank: {old_rank_name} -> {new_rank_name}. '
            f'Position: "{old_position}" -> "{new_position}"',
            now
        )
        self.notifications.notify(
            target.id,
            NOTIFICATION_MESSAGES['RANK_CHANGED'].format(
                rank=new_rank_name,
                position=new_position,
                actor=actor.nickname
            ),
            now
        )
        return target

    @transaction
    async def fire_member(self, actor_id: int, target_id: int, reason: str) -> Member:
        actor = self.state.get_member(actor_id)
        target = self.state.get_member(target_id)
        reason = _require_text(reason, "Dismissal reason")
        self._require_manageable(actor, target)

        now = self.now()
        del self.state.members[target.id]
        self.notifications.notify(
            target.id,
            NOTIFICATION_MESSAGES['FIRED'].format(actor=actor.nickname, reason=reason),
            now,
            link=None
        )
        self.audit.record(
            actor.nickname,
            AUDIT_ACTIONS['MEMBER_FIRED'],
            f"Agent: {target.nickname}, Reason: {reason}",
            now
        )
        return target

    @transaction
    async def assign_director(self, actor_id: int, target_id: int) -> Member:
        actor = self.state.get_member(actor_id)
        target = self.state.get_member(target_id)
        self._require_admin(actor)
        if target.role is Role.ADMIN:
            raise ValidationError("An administrator cannot be appointed Director.")

        demoted = install_director(self.state, target)
        details = f"New director: {target.nickname}"
        if demoted is not None:
            details += f", previous director: {demoted.nickname}"
        self.audit.record(actor.nickname, AUDIT_ACTIONS['DIRECTOR_ASSIGNED'], details, self.now())
        return target

    @transaction
    async def set_on_duty(self, member_id: int, on_duty: bool) -> Member:
        member = self.state.get_member(member_id)
        member.on_duty = on_duty
        return member

    # Whitelist

    def _ensure_unique_nickname(self, nickname: str) -> None:
        if self.state.find_member_by_nickname(nickname) is not None:
            raise DuplicateNickname()

    @transaction
    async def add_to_whitelist(self, actor_id: int, nickname: str) -> Member:
        actor = self.state.get_member(actor_id)
        self._require_leadership(actor)
        nickname = normalize_nickname(nickname)
        self._ensure_unique_nickname(nickname)

        member = self.state.add_member(Member(
            id=self.state.ids.next_id(),
            nickname=nickname,
            rank=RANK_SETTINGS['WHITELIST_RANK'],
            position=POSITIONS['CADET'],
            department=DEPARTMENT_KEYS['ACADEMY']
        ))
        self.audit.record(actor.nickname, AUDIT_ACTIONS['WHITELIST_ADDED'], f"Nickname: {nickname}", self.now())
        return member

    @transaction
    async def add_admin(self, actor_id: int, nickname: str) -> Member:
        actor = self.state.get_member(actor_id)
        self._require_admin(actor)
        nickname = normalize_nickname(nickname)
        self._ensure_unique_nickname(nickname)

        member = self.state.add_member(Member(
            id=self.state.ids.next_id(),
            nickname=nickname,
            rank=RANK_SETTINGS['ADMIN_RANK'],
            position=POSITIONS['ADMIN'],
            department=DEPARTMENT_KEYS['MANAGEMENT'],
            is_head=True,
            is_admin=True
        ))
        self.audit.record(actor.nickname, AUDIT_ACTIONS['ADMIN_ADDED'], f"Nickname: {nickname}", self.now())
        return member

    # Name tables

    @transaction
    async def update_rank_names(self, actor_id: int, names: Sequence[str]) -> List[str]:
        actor = self.state.get_member(actor_id)
        self._require_admin(actor)
        if len(names) != len(self.state.rank_names):
            raise ValidationError(f"Exactly {len(self.state.rank_names)} rank names are required.")
        cleaned = [_require_text(name, "Rank name") for name in names]

        self.state.rank_names = cleaned
        self.audit.record(
            actor.nickname,
            AUDIT_ACTIONS['RANK_NAMES_UPDATED'],
            f"New names: {', '.join(cleaned)}",
            self.now()
        )
        return cleaned

    @transaction
    async def update_department_names(self, actor_id: int, names: Mapping[str, str]) -> Dict[str, str]:
        actor = self.state.get_member(actor_id)
        self._require_admin(actor)
        if set(names) != set(self.state.departments):
            raise ValidationError("Department keys cannot be added or removed.")
        cleaned = {key: _require_text(names[key], "Department name") for key in self.state.departments}

        self.state.departments = cleaned
        self.audit.record(
            actor.nickname,
            AUDIT_ACTIONS['DEPARTMENT_NAMES_UPDATED'],
            "; ".join(f"{key}: {name}" for key, name in cleaned.items()),
            self.now()
        )
        return cleaned

    # System settings

    def _announce_system_update(self, actor: Member, update_key: str, now: datetime) -> None:
        update = SYSTEM_UPDATES[update_key]
        self.state.news.insert(0, NewsItem(
            id=self.state.ids.next_id(),
            title=SYSTEM_UPDATE_NEWS['TITLE'].format(title=update['title']),
            content=SYSTEM_UPDATE_NEWS['CONTENT'].format(actor=actor.nickname, subject=update['subject']),
            author=actor.nickname,
            created_at=now
        ))
        self.notifications.broadcast(
            NOTIFICATION_MESSAGES['SYSTEM_UPDATE'].format(actor=actor.nickname, subject=update['subject']),
            now,
            link=update['link']
        )
        self.audit.record(
            actor.nickname,
            AUDIT_ACTIONS['SYSTEM_UPDATED'].format(title=update['title']),
            '',
            now
        )

    @transaction
    async def save_promotion_system(self, actor_id: int, system: PromotionSystem) -> PromotionSystem:
        actor = self.state.get_member(actor_id)
        self._require_leadership(actor)
        self.state.promotion_system = system
        self._announce_system_update(actor, 'PROMOTIONS', self.now())
        return system

    @transaction
    async def save_penalty_system(self, actor_id: int, system: PenaltySystem) -> PenaltySystem:
        actor = self.state.get_member(actor_id)
        self._require_leadership(actor)
        self.state.penalty_system = system
        self._announce_system_update(actor, 'PENALTIES', self.now())
        return system

    @transaction
    async def save_charter(self, actor_id: int, text: str) -> str:
        actor = self.state.get_member(actor_id)
        self._require_leadership(actor)
        text = _require_text(text, "Charter text")
        self.state.charter_text = text
        self._announce_system_update(actor, 'CHARTER', self.now())
        return text

    # Blacklist

    @transaction
    async def add_to_blacklist(self, actor_id: int, nickname: str, reason: str,
                               term: Optional[str] = None) -> BlacklistEntry:
        actor = self.state.get_member(actor_id)
        self._require_leadership(actor)
        nickname = _require_text(nickname, "Nickname")
        reason = _require_text(reason, "Reason")

        now = self.now()
        entry = BlacklistEntry(
            id=self.state.ids.next_id(),
            nickname=nickname,
            reason=reason,
            term=(term or '').strip() or PERMANENT_TERM,
            issued_by=actor.nickname,
            created_at=now
        )
        self.state.blacklist.insert(0, entry)
        self.audit.record(
            actor.nickname,
            AUDIT_ACTIONS['BLACKLIST_ADDED'],
            f"Nickname: {nickname}, Reason: {reason}",
            now
        )
        return entry

    @transaction
    async def remove_from_blacklist(self, actor_id: int, entry_id: int) -> BlacklistEntry:
        actor = self.state.get_member(actor_id)
        self._require_leadership(actor)
        entry = next((e for e in self.state.blacklist if e.id == entry_id), None)
        if entry is None:
            raise NotFound(f"Blacklist entry {entry_id} was not found.")

        self.state.blacklist.remove(entry)
        self.audit.record(
            actor.nickname,
            AUDIT_ACTIONS['BLACKLIST_REMOVED'],
            f"Nickname: {entry.nickname}",
            self.now()
        )
        return entry

    # Chat and notifications

    @transaction
    async def send_chat_message(self, sender_id: int, text: str,
                                channel: str = DEFAULT_CHAT_CHANNEL) -> ChatMessage:
        sender = self.state.get_member(sender_id)
        text = _require_text(text, "Message")
        channel = _require_text(channel, "Channel")

        now = self.now()
        message = ChatMessage(
            id=self.state.ids.next_id(),
            channel=channel,
            author=sender.nickname,
            text=text,
            created_at=now
        )
        self.state.chats.setdefault(channel, []).append(message)
        self.notifications.notify_mentions(sender, channel, text, now)
        return message

    def notifications_for(self, viewer_id: int) -> List[Notification]:
        self.state.get_member(viewer_id)
        return self.notifications.relevant_to(viewer_id)

    @transaction
    async def mark_notifications_read(self, viewer_id: int) -> int:
        self.state.get_member(viewer_id)
        return self.notifications.mark_all_read(viewer_id)

    def audit_log(self, query: Optional[str] = None) -> List[AuditLogEntry]:
        return self.audit.search(query)
