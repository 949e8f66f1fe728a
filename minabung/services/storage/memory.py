"""
In-Memory Storage Implementation

Same repository interfaces as the MongoDB backend, held in dicts.
Used by the test suite and for running the core without a database.

Every read returns a deep copy, so callers can never mutate stored
state except through the repository. Write methods report modified
counts the way MongoDB does: a write that changes nothing reports 0.
"""

from typing import Any, Optional
from uuid import UUID

from minabung.models.audit import AuditEvent
from minabung.models.group import Group, LedgerEntry, LedgerKind, Member, MemberRole
from minabung.models.user import User
from minabung.services.storage.interface import (
    AuditRepository,
    GroupRepository,
    UserRepository,
)


class InMemoryUserRepository(UserRepository):
    """Dict-backed user storage."""

    def __init__(self):
        self._users: dict[str, User] = {}

    async def insert_user(self, user: User) -> Optional[str]:
        self._users[user.id] = user.model_copy(deep=True)
        return user.id

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        user = self._users.get(str(user_id))
        return user.model_copy(deep=True) if user else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return next(
            (u.model_copy(deep=True) for u in self._users.values() if u.email == email),
            None,
        )

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return next(
            (u.model_copy(deep=True) for u in self._users.values() if u.username == username),
            None,
        )

    async def find_user_by_email_or_username(
        self,
        email: str,
        username: str,
    ) -> Optional[User]:
        return next(
            (
                u.model_copy(deep=True)
                for u in self._users.values()
                if u.email == email or u.username == username
            ),
            None,
        )

    async def list_users(self) -> list[User]:
        return [u.model_copy(deep=True) for u in self._users.values()]

    async def update_user(
        self,
        user_id: str,
        fields: dict[str, Any],
    ) -> Optional[User]:
        user = self._users.get(str(user_id))
        if user is None:
            return None
        self._users[user.id] = user.model_copy(update=fields)
        return self._users[user.id].model_copy(deep=True)

    async def set_user_group(self, user_id: str, group_id: str) -> int:
        user = self._users.get(str(user_id))
        if user is None or user.group_id == group_id:
            return 0
        self._users[user.id] = user.model_copy(update={"group_id": group_id})
        return 1


class InMemoryGroupRepository(GroupRepository):
    """Dict-backed group storage."""

    def __init__(self):
        self._groups: dict[str, Group] = {}

    def _replace(self, group: Group, **update: Any) -> int:
        updated = group.model_copy(update=update)
        if updated == group:
            return 0
        self._groups[group.id] = updated
        return 1

    async def insert_group(self, group: Group) -> Optional[str]:
        self._groups[group.id] = group.model_copy(deep=True)
        return group.id

    async def get_group_by_id(self, group_id: str) -> Optional[Group]:
        group = self._groups.get(str(group_id))
        return group.model_copy(deep=True) if group else None

    async def find_group_by_invite(self, invite: str) -> Optional[Group]:
        return next(
            (g.model_copy(deep=True) for g in self._groups.values() if g.invite == invite),
            None,
        )

    async def find_group_by_entry(
        self,
        kind: LedgerKind,
        entry_id: str,
    ) -> Optional[Group]:
        return next(
            (
                g.model_copy(deep=True)
                for g in self._groups.values()
                if g.find_entry(kind, entry_id) is not None
            ),
            None,
        )

    async def list_groups_by_member(self, user_id: str) -> list[Group]:
        return [
            g.model_copy(deep=True)
            for g in self._groups.values()
            if g.find_member(user_id) is not None
        ]

    async def count_groups_by_member(
        self,
        user_id: str,
        role: Optional[MemberRole] = None,
    ) -> int:
        count = 0
        for group in self._groups.values():
            member = group.find_member(user_id)
            if member is not None and (role is None or member.role == role):
                count += 1
        return count

    async def update_group_details(
        self,
        group_id: str,
        name: str,
        description: str,
    ) -> int:
        group = self._groups.get(str(group_id))
        if group is None:
            return 0
        return self._replace(group, name=name, description=description)

    async def delete_group(self, group_id: str) -> int:
        return 1 if self._groups.pop(str(group_id), None) is not None else 0

    async def add_member(self, group_id: str, member: Member) -> int:
        group = self._groups.get(str(group_id))
        if group is None:
            return 0
        return self._replace(group, members=[*group.members, member.model_copy()])

    async def push_entry(
        self,
        group_id: str,
        kind: LedgerKind,
        entry: LedgerEntry,
    ) -> int:
        group = self._groups.get(str(group_id))
        if group is None:
            return 0
        entries = [*group.entries(kind), entry.model_copy()]
        return self._replace(group, **{kind.value: entries})

    async def set_entry_fields(
        self,
        group_id: str,
        kind: LedgerKind,
        entry_id: str,
        fields: dict[str, Any],
    ) -> int:
        group = self._groups.get(str(group_id))
        if group is None or group.find_entry(kind, entry_id) is None:
            return 0
        entries = [
            e.model_copy(update=fields) if e.id == str(entry_id) else e
            for e in group.entries(kind)
        ]
        return self._replace(group, **{kind.value: entries})

    async def pull_entry(
        self,
        group_id: str,
        kind: LedgerKind,
        entry_id: str,
    ) -> int:
        group = self._groups.get(str(group_id))
        if group is None:
            return 0
        entries = [e for e in group.entries(kind) if e.id != str(entry_id)]
        return self._replace(group, **{kind.value: entries})


class InMemoryAuditRepository(AuditRepository):
    """List-backed audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event.model_copy(deep=True))
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
