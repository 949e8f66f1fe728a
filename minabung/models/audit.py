"""
Audit Models for Minabung

Every successful mutation, and every notable failure, is recorded as
an AuditEvent. This gives members a history of who changed what in a
shared ledger.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from minabung.models.clock import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # User directory
    USER_REGISTERED = "user_registered"
    USER_LOGGED_IN = "user_logged_in"
    LOGIN_FAILED = "login_failed"
    PROFILE_UPDATED = "profile_updated"
    PROFILE_PICTURE_UPDATED = "profile_picture_updated"
    USER_GROUP_UPDATED = "user_group_updated"

    # Group lifecycle
    GROUP_CREATED = "group_created"
    GROUP_JOINED = "group_joined"
    GROUP_UPDATED = "group_updated"
    GROUP_DELETED = "group_deleted"

    # Ledger entries
    ENTRY_ADDED = "entry_added"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"

    # Failures
    ACCESS_DENIED = "access_denied"
    LIMIT_REACHED = "limit_reached"
    AI_GENERATION_FAILED = "ai_generation_failed"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about, and who did it?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'user', 'group', 'expense')"
    )
    entity_id: Optional[str] = None
    actor_id: Optional[str] = Field(
        default=None,
        description="User who triggered the event"
    )

    # Correlation - for tracking related events in one request
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.group_created(group_id, name, actor_id)
        event = AuditEventBuilder.entry_deleted(LedgerKind.INCOMES, ...)
    """

    @staticmethod
    def user_registered(user_id: str, username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            entity_type="user",
            entity_id=user_id,
            actor_id=user_id,
            description=f"User registered: {username}",
            details={"username": username},
        )

    @staticmethod
    def user_logged_in(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_LOGGED_IN,
            entity_type="user",
            entity_id=user_id,
            actor_id=user_id,
            description="User logged in",
        )

    @staticmethod
    def login_failed(email: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            description="Login attempt failed",
            details={"email": email},
            error_message=reason,
        )

    @staticmethod
    def profile_updated(user_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_UPDATED,
            entity_type="user",
            entity_id=user_id,
            actor_id=user_id,
            description="Profile updated",
            details={"fields": fields},
        )

    @staticmethod
    def profile_picture_updated(user_id: str, url: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_PICTURE_UPDATED,
            entity_type="user",
            entity_id=user_id,
            actor_id=user_id,
            description="Profile picture updated",
            details={"url": url},
        )

    @staticmethod
    def user_group_updated(user_id: str, group_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_GROUP_UPDATED,
            entity_type="user",
            entity_id=user_id,
            description=f"User assigned to group {group_id}",
            details={"group_id": group_id},
        )

    @staticmethod
    def group_created(
        group_id: str,
        name: str,
        actor_id: str,
        ai_generated: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_CREATED,
            entity_type="group",
            entity_id=group_id,
            actor_id=actor_id,
            description=f"Group created: {name}",
            details={"ai_generated": ai_generated},
        )

    @staticmethod
    def group_joined(group_id: str, actor_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_JOINED,
            entity_type="group",
            entity_id=group_id,
            actor_id=actor_id,
            description="Member joined group",
        )

    @staticmethod
    def group_updated(group_id: str, actor_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_UPDATED,
            entity_type="group",
            entity_id=group_id,
            actor_id=actor_id,
            description="Group details updated",
        )

    @staticmethod
    def group_deleted(group_id: str, actor_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="group",
            entity_id=group_id,
            actor_id=actor_id,
            description="Group deleted",
        )

    @staticmethod
    def entry_added(
        entity_type: str,
        entry_id: str,
        group_id: str,
        actor_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_ADDED,
            entity_type=entity_type,
            entity_id=entry_id,
            actor_id=actor_id,
            description=f"{entity_type.capitalize()} added",
            details={"group_id": group_id},
        )

    @staticmethod
    def entry_updated(
        entity_type: str,
        entry_id: str,
        group_id: str,
        actor_id: str,
        fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_UPDATED,
            entity_type=entity_type,
            entity_id=entry_id,
            actor_id=actor_id,
            description=f"{entity_type.capitalize()} updated",
            details={"group_id": group_id, "fields": fields},
        )

    @staticmethod
    def entry_deleted(
        entity_type: str,
        entry_id: str,
        group_id: str,
        actor_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            entity_type=entity_type,
            entity_id=entry_id,
            actor_id=actor_id,
            description=f"{entity_type.capitalize()} deleted",
            details={"group_id": group_id},
        )

    @staticmethod
    def access_denied(group_id: str, actor_id: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_DENIED,
            severity=AuditSeverity.WARNING,
            entity_type="group",
            entity_id=group_id,
            actor_id=actor_id,
            description="Group access denied",
            error_message=reason,
        )

    @staticmethod
    def limit_reached(actor_id: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LIMIT_REACHED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            entity_id=actor_id,
            actor_id=actor_id,
            description="Group limit reached",
            error_message=reason,
        )

    @staticmethod
    def ai_generation_failed(actor_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_GENERATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="group",
            actor_id=actor_id,
            description="AI group generation failed",
            error_message=error_message,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            actor_id=actor_id,
            description=f"External service error: {service}",
            details={"service": service},
            error_message=error_message,
        )
