"""Tests for the membership guard."""

from decimal import Decimal

import pytest

from conftest import run
from minabung.errors import AuthError, NotFoundError
from minabung.ledger.guard import (
    ADMIN_ROLES,
    OWNER_ROLES,
    Allowed,
    Denied,
    DenialReason,
    MembershipGuard,
    check_membership,
)
from minabung.models.audit import AuditEventType
from minabung.models.group import Expense, Group, Income, LedgerKind, Member, MemberRole
from minabung.models.ids import new_id
from minabung.services.storage import InMemoryGroupRepository

OWNER_ID = new_id()
ADMIN_ID = new_id()
MEMBER_ID = new_id()


@pytest.fixture
def group():
    return Group(
        name="Rumah",
        invite="invite-1",
        members=[
            Member(id=OWNER_ID, name="Alice", role=MemberRole.OWNER),
            Member(id=ADMIN_ID, name="Bob", role=MemberRole.ADMIN),
            Member(id=MEMBER_ID, name="Carol", role=MemberRole.MEMBER),
        ],
        incomes=[Income(name="Salary", amount=Decimal("100"))],
        expenses=[Expense(name="Rice", amount=Decimal("10"))],
    )


class TestCheckMembership:
    """Tests for the pure membership decision."""

    def test_any_member_allowed_without_roles(self, group):
        decision = check_membership(group, MEMBER_ID)
        assert isinstance(decision, Allowed)
        assert decision.member.name == "Carol"

    def test_stranger_denied(self, group):
        decision = check_membership(group, new_id())
        assert isinstance(decision, Denied)
        assert decision.reason == DenialReason.NOT_MEMBER

    def test_admin_roles(self, group):
        """Owner and Admin pass, Member is refused as not admin."""
        assert isinstance(check_membership(group, OWNER_ID, ADMIN_ROLES), Allowed)
        assert isinstance(check_membership(group, ADMIN_ID, ADMIN_ROLES), Allowed)
        decision = check_membership(group, MEMBER_ID, ADMIN_ROLES)
        assert decision.reason == DenialReason.NOT_ADMIN

    def test_owner_roles(self, group):
        """Only the Owner passes; Admin is refused with the owner message."""
        assert isinstance(check_membership(group, OWNER_ID, OWNER_ROLES), Allowed)
        decision = check_membership(group, ADMIN_ID, OWNER_ROLES, DenialReason.NOT_OWNER)
        assert decision.reason == DenialReason.NOT_OWNER

    def test_non_member_reason_wins_over_role(self, group):
        decision = check_membership(group, new_id(), OWNER_ROLES, DenialReason.NOT_OWNER)
        assert decision.reason == DenialReason.NOT_MEMBER

    def test_denied_raise_for(self):
        with pytest.raises(AuthError) as exc_info:
            Denied(reason=DenialReason.NOT_ADMIN).raise_for()
        assert exc_info.value.message == "You are not the admin of this group"


class TestMembershipGuard:
    """Tests for group resolution strategies."""

    @pytest.fixture
    def guard(self, group, audit_logger):
        repo = InMemoryGroupRepository()
        run(repo.insert_group(group))
        return MembershipGuard(repo, audit_logger)

    def test_by_group_id_missing(self, guard):
        with pytest.raises(NotFoundError) as exc_info:
            run(guard.by_group_id(new_id()))
        assert exc_info.value.message == "Group not found"

    def test_by_group_and_entry_id(self, guard, group):
        found, entry = run(guard.by_group_and_entry_id(
            group.id, LedgerKind.INCOMES, group.incomes[0].id
        ))
        assert found.id == group.id
        assert entry.name == "Salary"

    def test_by_group_and_entry_id_unknown_entry(self, guard, group):
        """The entry is None, not an error, so the membership check runs first."""
        found, entry = run(guard.by_group_and_entry_id(group.id, LedgerKind.INCOMES, new_id()))
        assert found.id == group.id
        assert entry is None

    def test_by_entry_id_across_groups(self, guard, group):
        found, entry = run(guard.by_entry_id_across_groups(
            LedgerKind.EXPENSES, group.expenses[0].id
        ))
        assert found.id == group.id
        assert entry.name == "Rice"

    def test_by_entry_id_across_groups_missing(self, guard):
        with pytest.raises(NotFoundError) as exc_info:
            run(guard.by_entry_id_across_groups(LedgerKind.BUDGETS, new_id()))
        assert exc_info.value.message == "Budget not found"

    def test_require_returns_member(self, guard, group):
        member = run(guard.require(group, ADMIN_ID, ADMIN_ROLES))
        assert member.role == MemberRole.ADMIN

    def test_require_raises(self, guard, group):
        with pytest.raises(AuthError) as exc_info:
            run(guard.require(group, new_id()))
        assert exc_info.value.message == "You are not a member of this group"

    def test_require_audits_refusal(self, guard, group, audit_storage):
        """A refused caller leaves an access-denied event behind."""
        with pytest.raises(AuthError):
            run(guard.require(group, MEMBER_ID, OWNER_ROLES, DenialReason.NOT_OWNER))
        events = run(audit_storage.get_recent_events())
        assert len(events) == 1
        assert events[0].event_type == AuditEventType.ACCESS_DENIED
        assert events[0].actor_id == MEMBER_ID
        assert events[0].error_message == "Only owners can delete the group"

    def test_require_allowed_is_not_audited(self, guard, group, audit_storage):
        run(guard.require(group, OWNER_ID, OWNER_ROLES))
        assert run(audit_storage.get_recent_events()) == []

    def test_require_without_audit_logger(self, group):
        guard = MembershipGuard(InMemoryGroupRepository())
        with pytest.raises(AuthError):
            run(guard.require(group, new_id()))
