"""
Storage Services Package

Provides abstract repositories and concrete implementations for data storage.
MongoDB is the production backend; the in-memory backend implements the
same interfaces for tests and local runs.
"""

from minabung.services.storage.interface import (
    AuditRepository,
    ConnectionError,
    GroupRepository,
    StorageError,
    UserRepository,
)
from minabung.services.storage.memory import (
    InMemoryAuditRepository,
    InMemoryGroupRepository,
    InMemoryUserRepository,
)
from minabung.services.storage.mongo import (
    MongoAuditRepository,
    MongoConnection,
    MongoGroupRepository,
    MongoUserRepository,
)

__all__ = [
    # Interfaces
    "AuditRepository",
    "GroupRepository",
    "UserRepository",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditRepository",
    "InMemoryGroupRepository",
    "InMemoryUserRepository",
    # MongoDB implementation
    "MongoAuditRepository",
    "MongoConnection",
    "MongoGroupRepository",
    "MongoUserRepository",
]
