"""
Audit Logger

DESIGN DECISION: Every mutation of a user record or a group ledger is
logged, and so is every refused action. Members of a shared group can
then see who changed what.

The audit logger:
- Always writes a structured local log line
- Persists to the audit collection when a repository is configured
- Never raises: a failed audit write is logged, the operation stands
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from minabung.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from minabung.services.storage import AuditRepository


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit repository (for persistence and member visibility)
    """

    def __init__(self, storage: Optional[AuditRepository] = None):
        """
        Args:
            storage: Repository for persistence. If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("minabung.audit")

    async def log(
        self,
        event: AuditEvent,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        if correlation_id is not None and event.correlation_id is None:
            event.correlation_id = correlation_id

        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_access_denied(
        self,
        group_id: str,
        actor_id: str,
        reason: str,
    ) -> None:
        """Log a refused membership or role check."""
        await self.log(AuditEventBuilder.access_denied(group_id, actor_id, reason))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        actor_id: Optional[str] = None,
    ) -> None:
        """Log external service error."""
        await self.log(
            AuditEventBuilder.external_service_error(
                service=service,
                error_message=error_message,
                actor_id=actor_id,
            )
        )


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step action (e.g. AI group creation)
    and pass it to every event the action logs.
    """
    return uuid4()
