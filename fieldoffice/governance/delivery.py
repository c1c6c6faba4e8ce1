"""External delivery sinks for portal notifications"""

import logging
from typing import Optional, Protocol, runtime_checkable

import aiohttp
import discord

from fieldoffice.governance.models import Notification
from fieldoffice.utils.constants import DELIVERY_SETTINGS

logger = logging.getLogger('FieldOffice')

@runtime_checkable
class NotificationSink(Protocol):
    """Anything that can push a notification outside the portal"""

    async def deliver(self, notification: Notification) -> None:
        ...

class LoggingSink:
    """Writes every notification to the portal log"""

    async def deliver(self, notification: Notification) -> None:
        target = 'everyone' if notification.recipient_id is None else f"member {notification.recipient_id}"
        logger.info(f"Notification {notification.id} for {target}: {notification.text}")

class DiscordWebhookSink:
    """Posts global notifications to a Discord channel webhook

    Personal notifications stay inside the portal; only broadcasts are
    mirrored to the announcements channel.
    """

    def __init__(self,
                 webhook_url: str,
                 session: aiohttp.ClientSession,
                 username: Optional[str] = None):
        self.webhook = discord.Webhook.from_url(webhook_url, session=session)
        self.username = username or DELIVERY_SETTINGS['WEBHOOK_USERNAME']

    def format_message(self, notification: Notification) -> str:
        text = f"📢 {notification.text}"
        if notification.link:
            text += f"\n➡️ Section: {notification.link}"
        limit = DELIVERY_SETTINGS['MAX_MESSAGE_LENGTH']
        if len(text) > limit:
            text = text[:limit - 1] + "…"
        return text

    async def deliver(self, notification: Notification) -> None:
        if notification.recipient_id is not None:
            return

        try:
            await self.webhook.send(
                content=self.format_message(notification),
                username=self.username,
                allowed_mentions=discord.AllowedMentions.none()
            )
            logger.info(f"Broadcast notification {notification.id} posted to Discord")
        except discord.HTTPException as e:
            logger.error(f"Discord webhook rejected notification {notification.id}: {e}")
            raise
