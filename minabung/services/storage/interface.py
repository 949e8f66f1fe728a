"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract repository per aggregate.
This allows us to:
1. Keep business logic decoupled from the MongoDB driver
2. Use in-memory storage for testing
3. Construct storage once at startup and pass it in explicitly

The operations mirror what a document store gives us in a single
atomic call: find one, find many, insert, update one (push, pull,
positional set), delete one. Write methods return the number of
documents they changed so callers can detect a write with no effect.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from minabung.models.audit import AuditEvent
from minabung.models.group import Group, LedgerEntry, LedgerKind, Member, MemberRole
from minabung.models.user import User


class UserRepository(ABC):
    """Storage operations for User records."""

    @abstractmethod
    async def insert_user(self, user: User) -> Optional[str]:
        """
        Insert a new user.

        Returns:
            The stored id, or None if the store did not report one
        """
        pass

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Return the user with this id, or None."""
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Return the user with this exact email, or None."""
        pass

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]:
        """Return the user with this exact username, or None."""
        pass

    @abstractmethod
    async def find_user_by_email_or_username(
        self,
        email: str,
        username: str,
    ) -> Optional[User]:
        """Return any user holding this email or this username."""
        pass

    @abstractmethod
    async def list_users(self) -> list[User]:
        """Return every user."""
        pass

    @abstractmethod
    async def update_user(
        self,
        user_id: str,
        fields: dict[str, Any],
    ) -> Optional[User]:
        """
        Overwrite fields on a user and return the document after the write.

        Args:
            user_id: The user's id
            fields: Model field names mapped to their new values

        Returns:
            The updated user, or None if no user has this id
        """
        pass

    @abstractmethod
    async def set_user_group(self, user_id: str, group_id: str) -> int:
        """
        Point a user's group reference at a group.

        Returns:
            Number of documents modified
        """
        pass


class GroupRepository(ABC):
    """
    Storage operations for the Group aggregate.

    Embedded entries are addressed by LedgerKind plus entry id.
    """

    @abstractmethod
    async def insert_group(self, group: Group) -> Optional[str]:
        """
        Insert a new group with all of its embedded lists.

        Returns:
            The stored id, or None if the store did not report one
        """
        pass

    @abstractmethod
    async def get_group_by_id(self, group_id: str) -> Optional[Group]:
        """Return the group with this id, or None (also for malformed ids)."""
        pass

    @abstractmethod
    async def find_group_by_invite(self, invite: str) -> Optional[Group]:
        """Return the group with this invite token, or None."""
        pass

    @abstractmethod
    async def find_group_by_entry(
        self,
        kind: LedgerKind,
        entry_id: str,
    ) -> Optional[Group]:
        """Return whichever group embeds an entry with this id, or None."""
        pass

    @abstractmethod
    async def list_groups_by_member(self, user_id: str) -> list[Group]:
        """Return every group listing this user as a member."""
        pass

    @abstractmethod
    async def count_groups_by_member(
        self,
        user_id: str,
        role: Optional[MemberRole] = None,
    ) -> int:
        """
        Count groups this user belongs to.

        Args:
            user_id: The user's id
            role: If given, only count groups where the user has this role
        """
        pass

    @abstractmethod
    async def update_group_details(
        self,
        group_id: str,
        name: str,
        description: str,
    ) -> int:
        """Overwrite name and description. Returns documents modified."""
        pass

    @abstractmethod
    async def delete_group(self, group_id: str) -> int:
        """Remove the whole aggregate. Returns documents deleted."""
        pass

    @abstractmethod
    async def add_member(self, group_id: str, member: Member) -> int:
        """Append a member to the member list. Returns documents modified."""
        pass

    @abstractmethod
    async def push_entry(
        self,
        group_id: str,
        kind: LedgerKind,
        entry: LedgerEntry,
    ) -> int:
        """Append an entry to one ledger. Returns documents modified."""
        pass

    @abstractmethod
    async def set_entry_fields(
        self,
        group_id: str,
        kind: LedgerKind,
        entry_id: str,
        fields: dict[str, Any],
    ) -> int:
        """
        Overwrite fields of one embedded entry in place.

        Args:
            group_id: Owning group
            kind: Which ledger the entry lives in
            entry_id: The entry's id
            fields: Model field names mapped to their new values

        Returns:
            Documents modified (0 if nothing matched or nothing changed)
        """
        pass

    @abstractmethod
    async def pull_entry(
        self,
        group_id: str,
        kind: LedgerKind,
        entry_id: str,
    ) -> int:
        """Remove one embedded entry. Returns documents modified."""
        pass


class AuditRepository(ABC):
    """
    Storage for the audit log.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True if stored."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for one request, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get all events for one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Get the most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
