"""Tests for portal start-up wiring"""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from fieldoffice.config.settings import Settings
from fieldoffice.db.database import create_session_factory, create_sqlalchemy_engine, init_db
from fieldoffice.db.repository import StateRepository
from fieldoffice.governance.delivery import DiscordWebhookSink, LoggingSink
from fieldoffice.governance.errors import LockUnavailable
from fieldoffice.governance.locks import LocalLockProvider, RedisLockProvider
from fieldoffice.governance.models import Role
from portal import build_engine, load_or_seed_state, serve

WEBHOOK_URL = 'https://discord.com/api/webhooks/123456789012345678/' + 'a1B2c3D4' * 9

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(_env_file=None, bootstrap_admin='Chief Admin', log_dir=tmp_path / 'logs')

@pytest.fixture
async def state_repository(tmp_path):
    engine = create_sqlalchemy_engine(f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}")
    await init_db(engine)
    yield StateRepository(create_session_factory(engine))
    await engine.dispose()

class TestLoadOrSeed:
    async def test_first_run_seeds_admin(self, state_repository, settings):
        state = await load_or_seed_state(state_repository, settings)

        admin = state.find_member_by_nickname('Chief_Admin')
        assert admin.role is Role.ADMIN
        assert len(state.rank_names) == 10

    async def test_second_run_loads_saved_state(self, state_repository, settings):
        first = await load_or_seed_state(state_repository, settings)
        first.charter_text = 'Amended'
        await state_repository.save_state(first)

        second = await load_or_seed_state(state_repository, settings)
        assert second.charter_text == 'Amended'
        assert second.members == first.members

class TestBuildEngine:
    def test_local_defaults(self, settings, state):
        engine = build_engine(settings, state)

        assert isinstance(engine.locks, LocalLockProvider)
        assert [type(s) for s in engine.notifications._sinks] == [LoggingSink]

    def test_redis_locks(self, settings, state):
        engine = build_engine(settings, state, redis_client=MagicMock())

        assert isinstance(engine.locks, RedisLockProvider)
        assert engine.locks.timeout == settings.decision_lock_timeout

    async def test_webhook_sink(self, tmp_path, state):
        settings = Settings(_env_file=None, discord_webhook_url=WEBHOOK_URL, log_dir=tmp_path)

        async with aiohttp.ClientSession() as session:
            engine = build_engine(settings, state, http_session=session)

        assert [type(s) for s in engine.notifications._sinks] == [LoggingSink, DiscordWebhookSink]

class TestServe:
    async def test_refreshes_until_stopped(self):
        stop = asyncio.Event()
        engine = MagicMock()

        async def refresh_then_stop():
            stop.set()

        engine.refresh = AsyncMock(side_effect=refresh_then_stop)

        await serve(engine, stop, interval=0.01)
        engine.refresh.assert_awaited_once()

    async def test_refresh_failure_logged(self, caplog):
        stop = asyncio.Event()
        engine = MagicMock()

        async def lock_busy():
            stop.set()
            raise LockUnavailable()

        engine.refresh = AsyncMock(side_effect=lock_busy)

        with caplog.at_level(logging.ERROR, logger='FieldOffice'):
            await serve(engine, stop, interval=0.01)
        assert 'Error refreshing portal state' in caplog.text

    async def test_returns_when_already_stopped(self):
        stop = asyncio.Event()
        stop.set()
        engine = MagicMock()
        engine.refresh = AsyncMock()

        await serve(engine, stop, interval=0.01)
        engine.refresh.assert_not_awaited()
