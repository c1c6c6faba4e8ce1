"""Seed data for a fresh portal"""

import logging

from fieldoffice.governance.models import (
    Member,
    PenaltySystem,
    PromotionRule,
    PromotionSystem
)
from fieldoffice.governance.state import PortalState
from fieldoffice.utils.constants import DEPARTMENT_KEYS, POSITIONS, RANK_SETTINGS

logger = logging.getLogger('FieldOffice')

DEFAULT_RANK_NAMES = [
    'Cadet',
    'Junior Agent',
    'Agent',
    'Senior Agent',
    'Special Agent',
    'Supervisory Agent',
    'Inspector',
    'Assistant Director',
    'Deputy Director',
    'Director'
]

DEFAULT_DEPARTMENTS = {
    DEPARTMENT_KEYS['ACADEMY']: 'Academy',
    DEPARTMENT_KEYS['MANAGEMENT']: 'Management',
    'CID': 'CID',
    'SWAT': 'SWAT',
    'IAD': 'IAD'
}

DEFAULT_PROMOTION_SYSTEM = {
    'academy_title': 'Academy graduation',
    'academy_rules': [
        {'rank': 'Cadet -> Junior Agent', 'requirements': ['Pass the charter exam', 'Complete two supervised patrols']},
        {'rank': 'Junior Agent -> Agent', 'requirements': ['Complete five field reports']},
        {'rank': 'Agent -> Senior Agent', 'requirements': ['Join a department', 'Complete ten field reports']}
    ],
    'agents_title': 'Agent promotions',
    'agent_promotions': [
        {'rank': 'Senior Agent -> Special Agent', 'requirements': ['Lead two raids'], 'probation': 'Probation period [24 hours]'},
        {'rank': 'Special Agent -> Supervisory Agent', 'requirements': ['Lead five raids'], 'probation': 'Probation period [48 hours]'},
        {'rank': 'Supervisory Agent -> Inspector', 'requirements': ['Train three cadets'], 'probation': 'Probation period [72 hours]'},
        {'rank': 'Inspector -> Assistant Director', 'requirements': ['Head a department for a week'], 'probation': 'Probation period [96 hours]'},
        {'rank': 'Assistant Director -> Deputy Director', 'requirements': ['Appointed by the Director'], 'probation': None}
    ]
}

DEFAULT_PENALTY_SYSTEM = {
    'title': 'Removing a severe reprimand',
    'requirements': [
        'Attach a city hall statement taken after the reprimand',
        'Attach the current staff list',
        'Complete three additional field reports'
    ]
}

DEFAULT_CHARTER = (
    "1. Agents carry out the orders of the leadership.\n"
    "2. Every privileged action is recorded in the audit log.\n"
    "3. Requests are reviewed in the order they were submitted."
)

def build_promotion_system() -> PromotionSystem:
    return PromotionSystem.from_dict(DEFAULT_PROMOTION_SYSTEM)

def build_initial_state(admin_nickname: str) -> PortalState:
    """Fresh state holding the default tables and a single administrator"""
    state = PortalState(
        rank_names=list(DEFAULT_RANK_NAMES),
        departments=dict(DEFAULT_DEPARTMENTS),
        promotion_system=build_promotion_system(),
        penalty_system=PenaltySystem.from_dict(DEFAULT_PENALTY_SYSTEM),
        charter_text=DEFAULT_CHARTER
    )
    state.add_member(Member(
        id=state.ids.next_id(),
        nickname=admin_nickname.strip().replace(' ', '_'),
        rank=RANK_SETTINGS['ADMIN_RANK'],
        position=POSITIONS['ADMIN'],
        department=DEPARTMENT_KEYS['MANAGEMENT'],
        is_head=True,
        is_admin=True
    ))
    logger.info(f"Initial portal state created with administrator {admin_nickname}")
    return state
