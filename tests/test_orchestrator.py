"""Tests for component wiring."""

from decimal import Decimal

import pytest

from conftest import run
from minabung.config import get_settings
from minabung.directory import UserDirectory
from minabung.ledger import GroupLedger
from minabung.models.user import Principal
from minabung.orchestrator import create_app_components


@pytest.fixture
def environment(monkeypatch):
    monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017")
    monkeypatch.setenv("JWT_SECRET_KEY", "a-long-enough-secret-key-0123456789")
    monkeypatch.setenv("JWT_BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("CLOUDINARY_CLOUD_NAME", "demo")
    monkeypatch.setenv("CLOUDINARY_API_KEY", "key")
    monkeypatch.setenv("CLOUDINARY_API_SECRET", "secret")
    monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-key")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestCreateAppComponents:
    """Tests for the composition root with in-memory storage."""

    def test_components_are_wired(self, environment):
        directory, ledger, connection = create_app_components(use_mongo=False)
        assert isinstance(directory, UserDirectory)
        assert isinstance(ledger, GroupLedger)
        assert connection is None

    def test_end_to_end_flow(self, environment):
        """Register, log in, authenticate, create a group, add an income."""
        directory, ledger, _ = create_app_components(use_mongo=False)

        run(directory.register("Alice", "alice", "alice@example.com", "secret123", "female"))
        login = run(directory.login("alice@example.com", "secret123"))
        principal = directory.authenticate(f"Bearer {login.access_token}")
        assert isinstance(principal, Principal)

        group = run(ledger.create_group(principal, "Rumah", "Family"))
        income = run(ledger.add_income(principal, group.id, "Salary", Decimal("100")))

        stored = run(ledger.find_group_by_id(group.id))
        assert stored.incomes == [income]
        assert run(directory.get_user_by_id(principal.id)).group_id == group.id
