"""Tests for system updates, chat, notifications and blacklist operations"""

from datetime import timedelta

import pytest

from fieldoffice.governance.errors import Forbidden, NotFound, ValidationError
from fieldoffice.governance.models import NotificationKind, PenaltySystem
from fieldoffice.utils.defaults import build_promotion_system

class TestSystemUpdates:
    async def test_promotion_system_saved_and_announced(self, engine, state, deputy, clock):
        system = build_promotion_system()
        system.agents_title = 'Revised agent promotions'

        await engine.save_promotion_system(deputy.id, system)

        assert state.promotion_system is system
        news = state.news[0]
        assert news.title == 'Update: Promotion System'
        assert news.author == deputy.nickname
        assert news.created_at == clock()
        [notice] = state.notifications
        assert notice.kind is NotificationKind.GLOBAL
        assert notice.link == 'promotions'
        [entry] = state.audit_log
        assert entry.action == 'System updated: Promotion System'

    async def test_penalty_system(self, engine, state, director):
        system = PenaltySystem(title='New rules', requirements=['Wait a week'])

        await engine.save_penalty_system(director.id, system)

        assert state.penalty_system == system
        assert state.news[0].title == 'Update: Penalty Removal System'
        assert state.notifications[0].link == 'penalties'

    async def test_charter(self, engine, state, director):
        await engine.save_charter(director.id, 'Article 1. Be excellent.')

        assert state.charter_text == 'Article 1. Be excellent.'
        assert state.audit_log[0].action == 'System updated: Bureau Charter'

    async def test_newest_news_first(self, engine, state, director, clock):
        await engine.save_charter(director.id, 'First draft')
        clock.advance(minutes=1)
        await engine.save_charter(director.id, 'Second draft')

        assert [n.created_at for n in state.news[:2]] == [clock(), clock() - timedelta(minutes=1)]

    async def test_agent_cannot_update(self, engine, state, agent):
        charter = state.charter_text

        with pytest.raises(Forbidden):
            await engine.save_charter(agent.id, 'Anarchy')
        assert state.charter_text == charter
        assert state.news == []
        assert state.notifications == []
        assert state.audit_log == []

    async def test_blank_charter(self, engine, director):
        with pytest.raises(ValidationError):
            await engine.save_charter(director.id, '')

class TestChat:
    async def test_message_stored_by_channel(self, engine, state, agent):
        message = await engine.send_chat_message(agent.id, 'Morning all')

        assert state.chats['general'] == [message]
        assert message.author == agent.nickname

    async def test_mentions_notify_once_per_recipient(self, engine, state, cadet, agent, cid_head):
        await engine.send_chat_message(cadet.id, '@CID need backup, @John_Doe especially', channel='ops')

        recipients = sorted(n.recipient_id for n in state.notifications)
        assert recipients == sorted([agent.id, cid_head.id])
        assert all(n.link == 'chat' for n in state.notifications)
        assert '#ops' in state.notifications[0].text

    async def test_blank_message(self, engine, state, agent):
        with pytest.raises(ValidationError):
            await engine.send_chat_message(agent.id, '   ')
        assert state.chats == {}

class TestNotificationQueries:
    async def test_notifications_for_viewer(self, engine, director, agent, cadet, clock):
        await engine.issue_penalty(director.id, agent.id, 'Late')
        clock.advance(minutes=1)
        await engine.save_charter(director.id, 'Updated charter')

        agent_view = engine.notifications_for(agent.id)
        assert [n.kind for n in agent_view] == [NotificationKind.GLOBAL, NotificationKind.PERSONAL]
        assert [n.kind for n in engine.notifications_for(cadet.id)] == [NotificationKind.GLOBAL]

    async def test_mark_read(self, engine, director, agent):
        await engine.issue_penalty(director.id, agent.id, 'Late')

        assert await engine.mark_notifications_read(agent.id) == 1
        assert await engine.mark_notifications_read(agent.id) == 0
        assert all(n.read for n in engine.notifications_for(agent.id))

    def test_unknown_viewer(self, engine):
        with pytest.raises(NotFound):
            engine.notifications_for(999)

class TestBlacklist:
    async def test_add_and_remove(self, engine, state, deputy):
        entry = await engine.add_to_blacklist(deputy.id, 'Bad_Actor', 'Leaked orders')

        assert entry.term == 'Permanent'
        assert entry.issued_by == deputy.nickname
        assert state.blacklist == [entry]

        removed = await engine.remove_from_blacklist(deputy.id, entry.id)
        assert removed is entry
        assert state.blacklist == []
        assert [e.action for e in engine.audit_log()] == [
            'Blacklist entry removed',
            'Blacklist entry added'
        ]

    async def test_custom_term(self, engine, deputy):
        entry = await engine.add_to_blacklist(deputy.id, 'Bad_Actor', 'Spam', term='30 days')
        assert entry.term == '30 days'

    async def test_requires_reason(self, engine, state, deputy):
        with pytest.raises(ValidationError):
            await engine.add_to_blacklist(deputy.id, 'Bad_Actor', '')
        assert state.blacklist == []

    async def test_agent_forbidden(self, engine, agent):
        with pytest.raises(Forbidden):
            await engine.add_to_blacklist(agent.id, 'Bad_Actor', 'Spam')

    async def test_remove_unknown(self, engine, deputy):
        with pytest.raises(NotFound):
            await engine.remove_from_blacklist(deputy.id, 404)

class TestAuditQuery:
    async def test_search(self, engine, director, agent, cadet):
        await engine.issue_penalty(director.id, agent.id, 'Late')
        await engine.issue_penalty(director.id, cadet.id, 'Rude')

        assert len(engine.audit_log()) == 2
        [entry] = engine.audit_log('rookie')
        assert 'Rude' in entry.details
