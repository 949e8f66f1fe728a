"""Services package."""

from minabung.services.auth import (
    TokenSigner,
    hash_password,
    verify_password,
)
from minabung.services.image import (
    CloudinaryImageService,
    ImageServiceError,
    ImageUploadError,
    InvalidImageError,
)
from minabung.services.storage import (
    AuditRepository,
    ConnectionError,
    GroupRepository,
    InMemoryAuditRepository,
    InMemoryGroupRepository,
    InMemoryUserRepository,
    MongoAuditRepository,
    MongoConnection,
    MongoGroupRepository,
    MongoUserRepository,
    StorageError,
    UserRepository,
)

__all__ = [
    # Credentials
    "TokenSigner",
    "hash_password",
    "verify_password",
    # Image services
    "CloudinaryImageService",
    "ImageServiceError",
    "ImageUploadError",
    "InvalidImageError",
    # Storage services
    "AuditRepository",
    "ConnectionError",
    "GroupRepository",
    "InMemoryAuditRepository",
    "InMemoryGroupRepository",
    "InMemoryUserRepository",
    "MongoAuditRepository",
    "MongoConnection",
    "MongoGroupRepository",
    "MongoUserRepository",
    "StorageError",
    "UserRepository",
]
