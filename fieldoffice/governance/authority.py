"""Authority rules deciding who may act on or review whom"""

import logging

from fieldoffice.governance.errors import (
    DeputyAssignmentRestricted,
    DirectorAssignmentRestricted,
    GovernanceError,
    ImmutableAdmin,
    InsufficientAuthority
)
from fieldoffice.governance.models import (
    LEADERSHIP_ROLES,
    Member,
    Request,
    RequestKind,
    Role,
    role_for_rank
)

logger = logging.getLogger('FieldOffice')

__all__ = [
    'can_manage',
    'can_review',
    'can_assign_rank',
    'ensure_can_assign_rank',
    'is_leadership',
    'role_for_rank'
]

def is_leadership(member: Member) -> bool:
    return member.role in LEADERSHIP_ROLES

def can_manage(manager: Member, target: Member) -> bool:
    """Whether manager may discipline, re-rank or dismiss target"""
    if manager.id == target.id:
        return False
    if target.role is Role.ADMIN:
        return False
    if manager.role is Role.ADMIN:
        return True
    if manager.role is Role.DIRECTOR and target.role is Role.DIRECTOR:
        return False
    if manager.role is Role.DEPUTY_DIRECTOR and target.role in (Role.DIRECTOR, Role.DEPUTY_DIRECTOR):
        return False
    return manager.rank > target.rank

def can_review(reviewer: Member, request: Request) -> bool:
    """Whether reviewer may decide request"""
    if reviewer.id == request.author_id:
        return False
    if is_leadership(reviewer):
        return True
    if request.kind is not RequestKind.DEPARTMENT_JOIN:
        return False
    # Heads only see first-ever transfers into their own department
    return (
        request.is_first_department_request
        and reviewer.is_head
        and reviewer.department == request.department
    )

def ensure_can_assign_rank(assigner: Member, new_rank: int, target_role: Role) -> None:
    """Raise the matching guardrail error if assigner may not set new_rank"""
    if assigner.role is not Role.ADMIN and new_rank >= assigner.rank:
        raise InsufficientAuthority()
    if target_role is Role.ADMIN:
        raise ImmutableAdmin()

    new_role = role_for_rank(new_rank)
    if new_role is Role.DIRECTOR and assigner.role is not Role.ADMIN:
        raise DirectorAssignmentRestricted()
    if new_role is Role.DEPUTY_DIRECTOR and assigner.role not in (Role.ADMIN, Role.DIRECTOR):
        raise DeputyAssignmentRestricted()

def can_assign_rank(assigner: Member, new_rank: int, target_role: Role) -> bool:
    try:
        ensure_can_assign_rank(assigner, new_rank, target_role)
    except GovernanceError as e:
        logger.debug(f"Rank assignment by {assigner.nickname} to {new_rank} denied: {e.code}")
        return False
    return True
