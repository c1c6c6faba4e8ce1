"""Shared fixtures for the FieldOffice test suite"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from fieldoffice.governance.engine import GovernanceEngine
from fieldoffice.governance.models import Member, Notification
from fieldoffice.governance.state import PortalState
from fieldoffice.utils.constants import DEPARTMENT_KEYS
from fieldoffice.utils.defaults import build_initial_state

class FakeClock:
    """Deterministic clock; time only moves when advance() is called"""

    def __init__(self, frozen_at: Optional[datetime] = None):
        self._now = frozen_at or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> datetime:
        self._now += timedelta(**kwargs)
        return self._now

class RecordingSink:
    """Collects delivered notifications in memory"""

    def __init__(self):
        self.delivered: List[Notification] = []

    async def deliver(self, notification: Notification) -> None:
        self.delivered.append(notification)

class RecordingRepository:
    """Counts snapshot saves without touching a database"""

    def __init__(self):
        self.saves = 0

    async def save_state(self, state: PortalState) -> None:
        self.saves += 1

    async def load_state(self) -> Optional[PortalState]:
        return None

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

@pytest.fixture
def state() -> PortalState:
    return build_initial_state('Portal_Admin')

@pytest.fixture
def make_member(state):
    def _make(nickname: str,
              rank: int = 0,
              department: str = DEPARTMENT_KEYS['ACADEMY'],
              **kwargs) -> Member:
        return state.add_member(Member(
            id=state.ids.next_id(),
            nickname=nickname,
            rank=rank,
            department=department,
            **kwargs
        ))
    return _make

@pytest.fixture
def admin(state) -> Member:
    return state.find_member_by_nickname('Portal_Admin')

@pytest.fixture
def director(make_member) -> Member:
    return make_member('Walter_Hale', rank=9, department=DEPARTMENT_KEYS['MANAGEMENT'], position='Director')

@pytest.fixture
def deputy(make_member) -> Member:
    return make_member('Dana_Ross', rank=8, department=DEPARTMENT_KEYS['MANAGEMENT'], position='Deputy Director')

@pytest.fixture
def cid_head(make_member) -> Member:
    return make_member('Mark_Stone', rank=6, department='CID', position='Head of CID', is_head=True)

@pytest.fixture
def agent(make_member) -> Member:
    return make_member('John_Doe', rank=4, department='CID', position='Field agent')

@pytest.fixture
def cadet(make_member) -> Member:
    return make_member('Rookie_Lee', rank=0, position='Cadet')

@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()

@pytest.fixture
def repository() -> RecordingRepository:
    return RecordingRepository()

@pytest.fixture
def engine(state, clock) -> GovernanceEngine:
    return GovernanceEngine(state, clock=clock)
