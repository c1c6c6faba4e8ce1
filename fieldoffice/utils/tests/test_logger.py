"""Tests for logging setup helpers"""

import json
import logging
import os
import sys
import time

import pytest

from fieldoffice.utils.logger import (
    APP_LOGGER,
    ConsoleFormatter,
    ContextAdapter,
    JSONFormatter,
    cleanup_old_logs,
    get_logger,
    setup_logging
)

@pytest.fixture
def restore_logging(monkeypatch):
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    monkeypatch.setattr(sys, 'excepthook', sys.excepthook)
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)

class TestSetupLogging:
    def test_creates_log_files(self, tmp_path, restore_logging):
        setup_logging(level='DEBUG', log_dir=tmp_path)
        logging.getLogger(APP_LOGGER).error('disk full')

        assert 'disk full' in (tmp_path / 'fieldoffice.log').read_text()
        assert 'disk full' in (tmp_path / 'error.log').read_text()

    def test_info_not_in_error_log(self, tmp_path, restore_logging):
        setup_logging(log_dir=tmp_path)
        logging.getLogger(APP_LOGGER).info('request decided')

        assert 'request decided' in (tmp_path / 'fieldoffice.log').read_text()
        assert 'request decided' not in (tmp_path / 'error.log').read_text()

    def test_json_file_format(self, tmp_path, restore_logging):
        setup_logging(json_logging=True, log_dir=tmp_path)
        logging.getLogger(APP_LOGGER).warning('lock expired')

        lines = (tmp_path / 'fieldoffice.log').read_text().splitlines()
        records = [json.loads(line) for line in lines]
        assert any(r['message'] == 'lock expired' and r['level'] == 'WARNING' for r in records)

class TestFormatters:
    def test_json_formatter_includes_exception(self):
        try:
            raise ValueError('bad rank')
        except ValueError:
            record = logging.LogRecord(APP_LOGGER, logging.ERROR, __file__, 1, 'failed', None, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))
        assert data['message'] == 'failed'
        assert 'bad rank' in data['exception']

    def test_json_formatter_includes_context(self):
        record = logging.LogRecord(APP_LOGGER, logging.INFO, __file__, 1, 'decided', None, None)
        record.request_id = 12
        record.reviewer = 'Walter_Hale'

        data = json.loads(JSONFormatter().format(record))
        assert data['request_id'] == 12
        assert data['reviewer'] == 'Walter_Hale'
        assert 'actor' not in data

    def test_console_appends_context(self):
        record = logging.LogRecord(APP_LOGGER, logging.INFO, __file__, 1, 'Audit: Nickname: Bob', None, None)
        record.actor = 'Dana_Ross'
        record.action = 'Whitelisted'

        line = ConsoleFormatter().format(record)
        assert '[actor=Dana_Ross action=Whitelisted]' in line

class TestGetLogger:
    def test_child_of_app_logger(self):
        assert get_logger('engine').name == f'{APP_LOGGER}.engine'

    def test_context_adapter(self):
        adapter = get_logger('decisions', request_id=7)

        assert isinstance(adapter, ContextAdapter)
        msg, kwargs = adapter.process('decided', {'extra': {'reviewer': 'Dana_Ross'}})
        assert kwargs['extra']['request_id'] == 7
        assert kwargs['extra']['reviewer'] == 'Dana_Ross'
        assert 'logged_at' in kwargs['extra']

    async def test_decisions_logged_with_context(self, engine, director, agent, caplog):
        request = await engine.submit_promotion_request(agent.id, 'Led two raids')

        with caplog.at_level(logging.INFO, logger=APP_LOGGER):
            await engine.decide(director.id, request.id, 'approved')

        [decided] = [r for r in caplog.records if r.name == f'{APP_LOGGER}.decisions']
        assert decided.request_id == request.id
        assert decided.reviewer == director.nickname
        [audited] = [r for r in caplog.records if r.name == f'{APP_LOGGER}.audit']
        assert audited.actor == director.nickname
        assert audited.action == 'Request reviewed: Approved'

class TestCleanupOldLogs:
    def test_removes_only_old_files(self, tmp_path):
        old_log = tmp_path / 'old.log'
        fresh_log = tmp_path / 'fresh.log'
        old_log.write_text('old')
        fresh_log.write_text('fresh')
        forty_days_ago = time.time() - 40 * 24 * 3600
        os.utime(old_log, (forty_days_ago, forty_days_ago))

        assert cleanup_old_logs(days=30, log_dir=tmp_path) == 1
        assert not old_log.exists()
        assert fresh_log.exists()
