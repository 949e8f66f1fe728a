"""
Composition Root

DESIGN DECISION: Collaborators are built ONCE, here, at process start
and passed to the components through their constructors. Nothing in
the core reaches for a global client or collection.

Wiring:
    MongoConnection ─┬─ MongoUserRepository ──┐
                     ├─ MongoGroupRepository ─┼─ GroupLedger
                     └─ MongoAuditRepository ─┤
    TokenSigner ──────────────────────────────┼─ UserDirectory
    CloudinaryImageService ───────────────────┤
    GroupPlannerAgent ────────────────────────┘

The transport layer (HTTP/GraphQL) sits outside this package and calls
UserDirectory.authenticate to turn a request header into a Principal.
"""

from typing import Optional

import structlog

from minabung.agents import GroupPlannerAgent
from minabung.audit import AuditLogger
from minabung.config import Settings, get_settings
from minabung.directory import UserDirectory
from minabung.ledger import GroupLedger
from minabung.services.auth import TokenSigner
from minabung.services.image import CloudinaryImageService
from minabung.services.storage import (
    InMemoryAuditRepository,
    InMemoryGroupRepository,
    InMemoryUserRepository,
    MongoAuditRepository,
    MongoConnection,
    MongoGroupRepository,
    MongoUserRepository,
)

logger = structlog.get_logger("minabung.orchestrator")


def create_app_components(
    use_mongo: bool = True,
    settings: Optional[Settings] = None,
) -> tuple[UserDirectory, GroupLedger, Optional[MongoConnection]]:
    """
    Factory function to create all application components.

    Args:
        use_mongo: Whether to back the components with MongoDB.
                   Set to False to run against in-memory storage.
        settings: Settings to use instead of the cached environment ones

    Returns:
        (user_directory, group_ledger, mongo_connection)
        mongo_connection is None when use_mongo is False.
    """
    settings = settings or get_settings()
    connection = None

    if use_mongo:
        connection = MongoConnection(settings.mongo)
        users = MongoUserRepository(connection)
        groups = MongoGroupRepository(connection)
        audit_storage = MongoAuditRepository(connection)
    else:
        users = InMemoryUserRepository()
        groups = InMemoryGroupRepository()
        audit_storage = InMemoryAuditRepository()

    audit_logger = AuditLogger(audit_storage)

    user_directory = UserDirectory(
        users=users,
        signer=TokenSigner(settings.security),
        image_service=CloudinaryImageService(settings.cloudinary, settings.app),
        audit_logger=audit_logger,
    )

    group_ledger = GroupLedger(
        groups=groups,
        user_directory=user_directory,
        planner=GroupPlannerAgent(settings.gemini, settings.app),
        audit_logger=audit_logger,
        app_settings=settings.app,
    )

    logger.info(
        "components_created",
        storage="mongodb" if use_mongo else "memory",
        environment=settings.app.app_environment,
    )
    return user_directory, group_ledger, connection


async def start_storage(connection: MongoConnection) -> None:
    """Check connectivity and create indexes. Call once before serving."""
    await connection.connect()
    await connection.ensure_indexes()
    logger.info("storage_ready")
