"""Tests for role derivation and the authority rules"""

from datetime import datetime, timezone

import pytest

from fieldoffice.governance.authority import (
    can_assign_rank,
    can_manage,
    can_review,
    ensure_can_assign_rank
)
from fieldoffice.governance.errors import (
    DeputyAssignmentRestricted,
    DirectorAssignmentRestricted,
    ImmutableAdmin,
    InsufficientAuthority
)
from fieldoffice.governance.models import Member, Request, RequestKind, Role, role_for_rank

def make_request(kind: RequestKind, author: Member, department=None, first=False) -> Request:
    return Request(
        id=100,
        author_id=author.id,
        author_nickname=author.nickname,
        kind=kind,
        content='Please review',
        submitted_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        department=department,
        is_first_department_request=first
    )

class TestRoleDerivation:
    @pytest.mark.parametrize('rank,role', [
        (9, Role.DIRECTOR),
        (8, Role.DEPUTY_DIRECTOR),
        (7, Role.AGENT),
        (0, Role.AGENT)
    ])
    def test_role_follows_rank(self, rank, role):
        assert role_for_rank(rank) is role
        assert Member(id=1, nickname='x', rank=rank).role is role

    def test_admin_flag_overrides_rank(self):
        assert Member(id=1, nickname='x', rank=0, is_admin=True).role is Role.ADMIN
        assert Member(id=1, nickname='x', rank=9, is_admin=True).role is Role.ADMIN

    def test_role_recomputed_after_rank_change(self, agent):
        agent.rank = 8
        assert agent.role is Role.DEPUTY_DIRECTOR
        agent.rank = 2
        assert agent.role is Role.AGENT

    def test_leadership(self, admin, director, deputy, agent):
        assert admin.is_leadership
        assert director.is_leadership
        assert deputy.is_leadership
        assert not agent.is_leadership

class TestCanManage:
    def test_nobody_manages_themselves(self, admin, agent):
        assert not can_manage(admin, admin)
        assert not can_manage(agent, agent)

    def test_admins_are_unmanageable(self, make_member, admin, director):
        other_admin = make_member('Second_Admin', rank=9, is_admin=True)
        assert not can_manage(director, admin)
        assert not can_manage(other_admin, admin)

    def test_admin_manages_everyone_else(self, admin, director, deputy, cadet):
        assert can_manage(admin, director)
        assert can_manage(admin, deputy)
        assert can_manage(admin, cadet)

    def test_director_cannot_manage_director(self, make_member, director):
        other = make_member('Other_Director', rank=9)
        assert not can_manage(director, other)

    def test_deputy_cannot_manage_upward_or_sideways(self, make_member, director, deputy):
        other_deputy = make_member('Other_Deputy', rank=8)
        assert not can_manage(deputy, director)
        assert not can_manage(deputy, other_deputy)

    def test_strictly_higher_rank_required(self, make_member, director, deputy, agent, cadet):
        peer = make_member('Peer_Agent', rank=agent.rank)
        assert can_manage(director, deputy)
        assert can_manage(agent, cadet)
        assert not can_manage(agent, peer)
        assert not can_manage(cadet, agent)

class TestCanReview:
    @pytest.mark.parametrize('kind', list(RequestKind))
    def test_leadership_reviews_every_kind(self, kind, admin, director, deputy, cadet):
        request = make_request(kind, cadet, department='CID')
        assert can_review(admin, request)
        assert can_review(director, request)
        assert can_review(deputy, request)

    def test_nobody_reviews_own_request(self, admin, director, deputy):
        for author in (admin, director, deputy):
            assert not can_review(author, make_request(RequestKind.PROMOTION, author))

    def test_head_cannot_review_own_join(self, cid_head):
        request = make_request(RequestKind.DEPARTMENT_JOIN, cid_head, department='CID', first=True)
        assert not can_review(cid_head, request)

    def test_agent_cannot_review_promotions(self, cid_head, cadet):
        request = make_request(RequestKind.PROMOTION, cadet)
        assert not can_review(cid_head, request)

    def test_head_reviews_first_join_into_own_department(self, cid_head, cadet):
        request = make_request(RequestKind.DEPARTMENT_JOIN, cadet, department='CID', first=True)
        assert can_review(cid_head, request)

    def test_head_cannot_review_repeat_join(self, cid_head, cadet):
        request = make_request(RequestKind.DEPARTMENT_JOIN, cadet, department='CID', first=False)
        assert not can_review(cid_head, request)

    def test_head_cannot_review_other_department(self, cid_head, cadet):
        request = make_request(RequestKind.DEPARTMENT_JOIN, cadet, department='SWAT', first=True)
        assert not can_review(cid_head, request)

    def test_non_head_cannot_review_join(self, agent, cadet):
        request = make_request(RequestKind.DEPARTMENT_JOIN, cadet, department='CID', first=True)
        assert not can_review(agent, request)

class TestRankAssignment:
    def test_cannot_assign_own_rank_or_above(self, deputy):
        with pytest.raises(InsufficientAuthority):
            ensure_can_assign_rank(deputy, 8, Role.AGENT)
        with pytest.raises(InsufficientAuthority):
            ensure_can_assign_rank(deputy, 9, Role.AGENT)

    def test_admin_target_is_immutable(self, admin):
        with pytest.raises(ImmutableAdmin):
            ensure_can_assign_rank(admin, 3, Role.ADMIN)

    def test_only_admin_appoints_director(self, make_member):
        # Rank tables longer than the director tier still leave appointment to admins
        senior = make_member('Senior', rank=10)
        with pytest.raises(DirectorAssignmentRestricted):
            ensure_can_assign_rank(senior, 9, Role.AGENT)

    def test_only_director_or_admin_appoints_deputy(self, make_member, director):
        senior = make_member('Senior', rank=10)
        with pytest.raises(DeputyAssignmentRestricted):
            ensure_can_assign_rank(senior, 8, Role.AGENT)
        ensure_can_assign_rank(director, 8, Role.AGENT)

    def test_insufficient_authority_checked_before_immutable_admin(self, agent):
        with pytest.raises(InsufficientAuthority):
            ensure_can_assign_rank(agent, 5, Role.ADMIN)

    def test_admin_may_assign_any_tier(self, admin):
        for rank in (0, 5, 8, 9):
            ensure_can_assign_rank(admin, rank, Role.AGENT)

    def test_boolean_form(self, admin, deputy):
        assert can_assign_rank(admin, 9, Role.AGENT)
        assert can_assign_rank(deputy, 7, Role.AGENT)
        assert not can_assign_rank(deputy, 8, Role.AGENT)
