"""Notification fan-out, read-state tracking and delivery scheduling"""

import asyncio
import logging
import re
from datetime import datetime
from typing import List, Optional, Sequence, Set

from fieldoffice.governance.delivery import NotificationSink
from fieldoffice.governance.models import Member, Notification, NotificationKind
from fieldoffice.governance.state import PortalState
from fieldoffice.utils.constants import LINKS, NOTIFICATION_MESSAGES

logger = logging.getLogger('FieldOffice')

MENTION_PATTERN = re.compile(r'@(\w+)')

class NotificationDispatcher:
    """Appends notifications to the portal state and hands them to sinks

    Notifications are never edited after creation apart from the read flag.
    Delivery to external sinks happens in background tasks scheduled by
    flush(); a failing sink is logged and otherwise ignored.
    """

    def __init__(self, state: PortalState, sinks: Optional[Sequence[NotificationSink]] = None):
        self.state = state
        self._sinks: List[NotificationSink] = list(sinks or [])
        self._outbox: List[Notification] = []
        self._tasks: Set[asyncio.Task] = set()

    def register_sink(self, sink: NotificationSink) -> None:
        self._sinks.append(sink)

    def _append(self,
                recipient_id: Optional[int],
                text: str,
                kind: NotificationKind,
                now: datetime,
                link: Optional[str] = None) -> Notification:
        notification = Notification(
            id=self.state.ids.next_id(),
            recipient_id=recipient_id,
            text=text,
            kind=kind,
            created_at=now,
            link=link
        )
        self.state.notifications.append(notification)
        self._outbox.append(notification)
        return notification

    def broadcast(self, text: str, now: datetime, link: Optional[str] = None) -> Notification:
        """Global notice visible to every member"""
        return self._append(None, text, NotificationKind.GLOBAL, now, link)

    def notify(self, recipient_id: int, text: str, now: datetime,
               link: Optional[str] = LINKS['PROFILE']) -> Notification:
        return self._append(recipient_id, text, NotificationKind.PERSONAL, now, link)

    def resolve_mentions(self, sender: Member, text: str) -> Set[int]:
        """Member ids addressed by @mentions in text, excluding the sender"""
        recipients: Set[int] = set()
        for token in MENTION_PATTERN.findall(text):
            department_key = self.state.find_department_by_name(token)
            if department_key is not None:
                recipients.update(
                    m.id for m in self.state.members_in_department(department_key)
                )
                continue
            member = self.state.find_member_by_nickname(token)
            if member is not None:
                recipients.add(member.id)
        recipients.discard(sender.id)
        return recipients

    def notify_mentions(self, sender: Member, channel: str, text: str, now: datetime) -> List[Notification]:
        message = NOTIFICATION_MESSAGES['MENTION'].format(
            sender=sender.nickname,
            channel=channel,
            text=text
        )
        return [
            self.notify(recipient_id, message, now, link=LINKS['CHAT'])
            for recipient_id in sorted(self.resolve_mentions(sender, text))
        ]

    def relevant_to(self, viewer_id: int) -> List[Notification]:
        """Notifications the viewer can see, newest first"""
        return sorted(
            (n for n in self.state.notifications if n.is_relevant_to(viewer_id)),
            key=lambda n: (n.created_at, n.id),
            reverse=True
        )

    def unread_count(self, viewer_id: int) -> int:
        return sum(1 for n in self.relevant_to(viewer_id) if not n.read)

    def mark_all_read(self, viewer_id: int) -> int:
        changed = 0
        for notification in self.state.notifications:
            if notification.is_relevant_to(viewer_id) and not notification.read:
                notification.read = True
                changed += 1
        return changed

    def discard(self) -> None:
        """Drop undelivered notifications of a transition that was not persisted"""
        self._outbox.clear()

    def flush(self) -> None:
        """Schedule delivery of everything appended since the last flush"""
        outbox, self._outbox = self._outbox, []
        if not self._sinks or not outbox:
            return

        loop = asyncio.get_running_loop()
        for notification in outbox:
            for sink in self._sinks:
                task = loop.create_task(self._deliver(sink, notification))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    async def _deliver(self, sink: NotificationSink, notification: Notification) -> None:
        try:
            await sink.deliver(notification)
        except Exception as e:
            logger.error(f"Error delivering notification {notification.id} via {type(sink).__name__}: {e}")

    async def drain(self) -> None:
        """Wait for scheduled deliveries to finish"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
