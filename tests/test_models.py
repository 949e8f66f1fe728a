"""
Tests for Minabung

Test strategy:
1. Unit tests for individual components (models, guard, credentials)
2. Integration tests for the directory and the ledger (in-memory storage)
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from minabung.errors import ValidationError
from minabung.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from minabung.models.group import (
    Budget,
    BudgetColor,
    BudgetIcon,
    BudgetUpdate,
    Expense,
    ExpenseUpdate,
    Group,
    Income,
    LedgerKind,
    Member,
    MemberRole,
)
from minabung.models.clock import utcnow
from minabung.models.ids import is_valid_id, new_id
from minabung.models.parsing import build_model
from minabung.models.user import Principal, ProfileUpdate, User


def owner(user_id=None):
    return Member(id=user_id or new_id(), name="Alice", role=MemberRole.OWNER)


class TestIds:
    """Tests for identifier helpers."""

    def test_new_id_is_24_hex(self):
        """Test generated ids look like ObjectIds."""
        value = new_id()
        assert len(value) == 24
        assert is_valid_id(value)

    def test_new_ids_are_unique(self):
        assert new_id() != new_id()

    def test_malformed_ids_rejected(self):
        """Test that non-ObjectId strings are not valid ids."""
        assert not is_valid_id("not-an-id")
        assert not is_valid_id("")
        assert not is_valid_id(None)
        assert not is_valid_id(12345)


class TestGroupModels:
    """Tests for the group aggregate and its embedded entities."""

    def test_group_creation(self):
        """Test Group model creation with a single owner."""
        group = Group(name="Rumah", invite="abc123", members=[owner()])
        assert group.name == "Rumah"
        assert group.description == ""
        assert group.incomes == []
        assert group.expenses == []
        assert group.budgets == []
        assert is_valid_id(group.id)

    def test_group_requires_owner(self):
        """Test that a group without an owner is rejected."""
        with pytest.raises(ValueError):
            Group(
                name="Rumah",
                invite="abc123",
                members=[Member(id=new_id(), name="Bob", role=MemberRole.MEMBER)],
            )

    def test_group_rejects_duplicate_members(self):
        """Test that a user cannot appear twice in the member list."""
        user_id = new_id()
        with pytest.raises(ValueError):
            Group(
                name="Rumah",
                invite="abc123",
                members=[owner(user_id), Member(id=user_id, name="Alice")],
            )

    def test_find_member_and_entry(self):
        """Test lookups on the aggregate."""
        user_id = new_id()
        income = Income(name="Salary", amount=Decimal("1000"))
        group = Group(name="Rumah", invite="x", members=[owner(user_id)], incomes=[income])

        assert group.find_member(user_id).role == MemberRole.OWNER
        assert group.find_member(new_id()) is None
        assert group.find_entry(LedgerKind.INCOMES, income.id) == income
        assert group.find_entry(LedgerKind.EXPENSES, income.id) is None

    def test_income_defaults(self):
        """Test that income date defaults to now and note to None."""
        before = utcnow()
        income = Income(name="Salary", amount=Decimal("5000000"))
        assert income.note is None
        assert income.date >= before
        assert income.date.tzinfo is not None

    def test_amount_sign_not_validated(self):
        """Test that negative amounts are accepted as given."""
        expense = Expense(name="Refund", amount=Decimal("-25.50"))
        assert expense.amount == Decimal("-25.50")
        assert expense.budget_id is None

    def test_budget_defaults(self):
        budget = Budget(name="Food", limit=Decimal("100"))
        assert budget.icon == ""
        assert budget.color == ""

    def test_ledger_kind_labels(self):
        assert LedgerKind.INCOMES.label == "Income"
        assert LedgerKind.EXPENSES.label == "Expense"
        assert LedgerKind.BUDGETS.label == "Budget"

    def test_enum_fallback_tokens(self):
        """Test the first token of each enum, used as the AI fallback."""
        assert list(BudgetIcon)[0].value == "attach-money"
        assert list(BudgetColor)[0].value == "blue"
        assert "shopping-cart" in {icon.value for icon in BudgetIcon}


class TestPartialUpdates:
    """Tests for truthy-only partial updates."""

    def test_expense_update_drops_falsy_values(self):
        """Test that empty strings and None never overwrite."""
        update = ExpenseUpdate(name="", note=None, amount=Decimal("20"))
        assert update.changed_fields() == {"amount": Decimal("20")}

    def test_budget_update_drops_zero_limit(self):
        """Zero is falsy, so it does not overwrite a limit."""
        update = BudgetUpdate(name="Food", limit=Decimal("0"))
        assert update.changed_fields() == {"name": "Food"}

    def test_profile_update_changed_fields(self):
        update = ProfileUpdate(name="Alicia", username="", birth_date=date(1990, 1, 2))
        assert update.changed_fields() == {"name": "Alicia", "birth_date": date(1990, 1, 2)}


class TestUserModels:
    """Tests for user-related models."""

    def test_password_hidden_from_repr(self):
        user = User(
            name="Alice",
            username="alice",
            email="alice@example.com",
            password="$2b$04$hash",
            gender="female",
        )
        assert "$2b$04$hash" not in repr(user)

    def test_principal_is_frozen(self):
        principal = Principal(id=new_id(), name="Alice")
        with pytest.raises(Exception):
            principal.name = "Mallory"


class TestBuildModel:
    """Tests for input parsing into domain errors."""

    def test_returns_model(self):
        income = build_model(Income, {"name": "Salary", "amount": "10.5"})
        assert income.amount == Decimal("10.5")

    def test_raises_domain_validation_error(self):
        """Test that pydantic errors surface as ValidationError."""
        with pytest.raises(ValidationError) as exc_info:
            build_model(Income, {"name": "", "amount": "10"})
        assert "name" in exc_info.value.message


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.GROUP_CREATED,
            description="Group created",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to structured log dict."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_ADDED,
            entity_type="income",
            entity_id="abc",
            correlation_id=correlation_id,
            description="Income added",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "entry_added"
        assert log_dict["entity_type"] == "income"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_audit_event_builder_group_created(self):
        """Test AuditEventBuilder for group creation."""
        event = AuditEventBuilder.group_created("g1", "Rumah", "u1", ai_generated=True)
        assert event.event_type == AuditEventType.GROUP_CREATED
        assert event.entity_id == "g1"
        assert event.actor_id == "u1"
        assert event.details["ai_generated"] is True

    def test_audit_event_builder_access_denied(self):
        """Test that refusals are logged as warnings with a reason."""
        event = AuditEventBuilder.access_denied("g1", "u2", "You are not a member of this group")
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "You are not a member of this group"
