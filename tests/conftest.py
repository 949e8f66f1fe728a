"""
Shared fixtures.

Everything external is faked:
- storage: the in-memory repositories
- Cloudinary: FakeImageService (or a monkeypatched uploader in the
  image service tests)
- Gemini: FakeModel, which returns a canned response text
"""

import asyncio
from types import SimpleNamespace
from typing import Optional

import pytest

from minabung.agents import GroupPlannerAgent
from minabung.audit import AuditLogger
from minabung.config import AppSettings, GeminiSettings, SecuritySettings
from minabung.directory import UserDirectory
from minabung.ledger import GroupLedger
from minabung.models.user import Principal
from minabung.services.auth import TokenSigner
from minabung.services.image import ImageUploadError
from minabung.services.storage import (
    InMemoryAuditRepository,
    InMemoryGroupRepository,
    InMemoryUserRepository,
)

TEST_SECRET = "test-secret-key-for-minabung-0123456789"

VALID_PLAN = """{
    "name": "Rumah Kita",
    "description": "Shared household budget",
    "budgets": [
        {"name": "Groceries", "limit": 1500000, "icon": "shopping-cart", "color": "green"},
        {"name": "Eating out", "limit": 500000, "icon": "restaurant", "color": "red"}
    ]
}"""


class FakeModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(self, text: str = VALID_PLAN, error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls = []

    async def generate_content_async(self, prompt, request_options=None):
        self.calls.append({"prompt": prompt, "request_options": request_options})
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


class FakeImageService:
    """Stands in for CloudinaryImageService."""

    def __init__(self, url: str = "https://res.cloudinary.com/demo/image/upload/avatar.png"):
        self.url = url
        self.error: Optional[Exception] = None
        self.uploads = []

    async def upload_profile_picture(self, image_bytes: bytes, user_id: str) -> str:
        self.uploads.append((image_bytes, user_id))
        if self.error is not None:
            raise self.error
        return self.url


def run(coro):
    """Drive a coroutine to completion."""
    return asyncio.run(coro)


@pytest.fixture
def app_settings():
    return AppSettings()


@pytest.fixture
def security_settings():
    return SecuritySettings(secret_key=TEST_SECRET, bcrypt_rounds=4)


@pytest.fixture
def gemini_settings():
    return GeminiSettings(api_key="test-gemini-key", request_timeout_seconds=5)


@pytest.fixture
def signer(security_settings):
    return TokenSigner(security_settings)


@pytest.fixture
def audit_storage():
    return InMemoryAuditRepository()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def user_repo():
    return InMemoryUserRepository()


@pytest.fixture
def group_repo():
    return InMemoryGroupRepository()


@pytest.fixture
def image_service():
    return FakeImageService()


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def planner(gemini_settings, app_settings, fake_model):
    return GroupPlannerAgent(gemini_settings, app_settings, model=fake_model)


@pytest.fixture
def directory(user_repo, signer, image_service, audit_logger):
    return UserDirectory(user_repo, signer, image_service, audit_logger)


@pytest.fixture
def ledger(group_repo, directory, planner, audit_logger, app_settings):
    return GroupLedger(group_repo, directory, planner, audit_logger, app_settings)


def register(directory: UserDirectory, name: str) -> Principal:
    user = run(directory.register(
        name=name.capitalize(),
        username=name,
        email=f"{name}@example.com",
        password="secret123",
        gender="female",
    ))
    return Principal(id=user.id, name=user.name, email=user.email)


@pytest.fixture
def alice(directory) -> Principal:
    return register(directory, "alice")


@pytest.fixture
def bob(directory) -> Principal:
    return register(directory, "bob")


@pytest.fixture
def carol(directory) -> Principal:
    return register(directory, "carol")


@pytest.fixture
def upload_failure():
    return ImageUploadError("Cloudinary error: timeout")
