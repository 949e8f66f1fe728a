"""
Tests for storage and audit logging.

The in-memory repositories back every other test, so they must report
modified counts the way MongoDB does. The document mappers are tested
without a server.
"""

from datetime import date
from decimal import Decimal

import pytest
from bson import ObjectId
from bson.decimal128 import Decimal128

from conftest import run
from minabung.audit import AuditLogger, create_correlation_id
from minabung.models.audit import AuditEventBuilder
from minabung.models.group import Budget, Expense, Group, Income, LedgerKind, Member, MemberRole
from minabung.models.ids import new_id
from minabung.models.user import User
from minabung.services.storage import (
    InMemoryAuditRepository,
    InMemoryGroupRepository,
    InMemoryUserRepository,
    StorageError,
)
from minabung.services.storage.mongo import (
    _document_to_group,
    _document_to_user,
    _group_to_document,
    _user_to_document,
)


@pytest.fixture
def group():
    return Group(
        name="Rumah",
        invite="inv",
        members=[Member(id=new_id(), name="Alice", role=MemberRole.OWNER)],
        incomes=[Income(name="Salary", amount=Decimal("10.50"))],
        expenses=[
            Expense(name="Rice", amount=Decimal("3")),
            Expense(name="Milk", amount=Decimal("2"), budget_id=new_id()),
        ],
        budgets=[Budget(name="Food", limit=Decimal("100"), icon="restaurant", color="red")],
    )


class TestInMemoryGroupRepository:
    """Tests for modified-count semantics."""

    def test_reads_are_copies(self, group):
        repo = InMemoryGroupRepository()
        run(repo.insert_group(group))
        loaded = run(repo.get_group_by_id(group.id))
        loaded.incomes.clear()
        assert len(run(repo.get_group_by_id(group.id)).incomes) == 1

    def test_no_change_reports_zero(self, group):
        repo = InMemoryGroupRepository()
        run(repo.insert_group(group))
        assert run(repo.update_group_details(group.id, "Rumah", "")) == 0
        assert run(repo.update_group_details(group.id, "Kos", "")) == 1
        assert run(repo.pull_entry(group.id, LedgerKind.INCOMES, new_id())) == 0
        assert run(repo.set_entry_fields(group.id, LedgerKind.BUDGETS, new_id(), {"name": "X"})) == 0

    def test_count_by_role(self, group):
        repo = InMemoryGroupRepository()
        run(repo.insert_group(group))
        owner_id = group.members[0].id
        assert run(repo.count_groups_by_member(owner_id)) == 1
        assert run(repo.count_groups_by_member(owner_id, MemberRole.OWNER)) == 1
        assert run(repo.count_groups_by_member(owner_id, MemberRole.ADMIN)) == 0

    def test_find_group_by_entry(self, group):
        repo = InMemoryGroupRepository()
        run(repo.insert_group(group))
        found = run(repo.find_group_by_entry(LedgerKind.BUDGETS, group.budgets[0].id))
        assert found.id == group.id
        assert run(repo.find_group_by_entry(LedgerKind.INCOMES, group.budgets[0].id)) is None


class TestDocumentMapping:
    """Tests for the MongoDB document shape."""

    def test_group_document_shape(self, group):
        doc = _group_to_document(group)
        assert isinstance(doc["_id"], ObjectId)
        assert isinstance(doc["members"][0]["_id"], ObjectId)
        assert doc["members"][0]["role"] == "Owner"
        assert isinstance(doc["incomes"][0]["amount"], Decimal128)
        assert "budgetId" not in doc["expenses"][0]
        assert isinstance(doc["expenses"][1]["budgetId"], ObjectId)

    def test_group_round_trip(self, group):
        assert _document_to_group(_group_to_document(group)) == group

    def test_user_document_uses_camel_case(self):
        user = User(
            name="Alice",
            username="alice",
            email="alice@example.com",
            password="$2b$04$hash",
            gender="female",
            birth_date=date(1990, 3, 4),
            group_id=new_id(),
        )
        doc = _user_to_document(user)
        assert doc["birthDate"] == "1990-03-04"
        assert isinstance(doc["groupId"], ObjectId)
        assert "profilePicture" in doc
        assert _document_to_user(doc) == user


class TestInMemoryUserRepository:
    """Tests for user lookups."""

    def test_lookups_match_one_field_exactly(self):
        repo = InMemoryUserRepository()
        user = User(
            name="Alice",
            username="alice",
            email="alice@example.com",
            password="$2b$04$hash",
            gender="female",
        )
        run(repo.insert_user(user))
        assert run(repo.get_user_by_username("alice")).id == user.id
        assert run(repo.get_user_by_username("alice@example.com")) is None
        assert run(repo.get_user_by_email("alice@example.com")).id == user.id
        assert run(repo.get_user_by_email("alice")) is None


class FailingAuditRepository(InMemoryAuditRepository):
    async def append_event(self, event):
        raise StorageError("disk full")


class TestAuditLogger:
    """Tests for audit logging."""

    def test_persists_event(self):
        storage = InMemoryAuditRepository()
        logger = AuditLogger(storage)
        assert run(logger.log(AuditEventBuilder.group_deleted("g1", "u1"))) is True
        assert len(run(storage.get_events_by_entity("group", "g1"))) == 1

    def test_local_only(self):
        assert run(AuditLogger().log(AuditEventBuilder.user_logged_in("u1"))) is True

    def test_storage_failure_does_not_raise(self):
        logger = AuditLogger(FailingAuditRepository())
        assert run(logger.log(AuditEventBuilder.user_logged_in("u1"))) is False

    def test_correlation_id_attached(self):
        storage = InMemoryAuditRepository()
        logger = AuditLogger(storage)
        correlation_id = create_correlation_id()
        run(logger.log(AuditEventBuilder.user_logged_in("u1"), correlation_id=correlation_id))
        run(logger.log_access_denied("g1", "u2", "You are not a member of this group"))

        events = run(storage.get_events_by_correlation_id(correlation_id))
        assert [e.actor_id for e in events] == ["u1"]
