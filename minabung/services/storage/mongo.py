"""
MongoDB Storage Implementation

Users and groups are stored one document per aggregate. A group
document embeds its members, incomes, expenses and budgets, so every
ledger change is a single atomic update on one document ($push, $pull,
or a positional $set on "<ledger>.$.<field>").

Documents keep the camelCase field names and ObjectId keys the mobile
client already reads (profilePicture, birthDate, groupId, budgetId).
Model field names are mapped at this boundary only.
"""

import functools
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from bson import ObjectId
from bson.decimal128 import Decimal128
from pymongo import ASCENDING, DESCENDING, AsyncMongoClient, ReturnDocument
from pymongo.errors import PyMongoError
from tenacity import retry, stop_after_attempt, wait_exponential

from minabung.config import MongoSettings, get_settings
from minabung.models.audit import AuditEvent
from minabung.models.group import (
    ENTRY_MODELS,
    Group,
    LedgerEntry,
    LedgerKind,
    Member,
    MemberRole,
)
from minabung.models.ids import is_valid_id
from minabung.models.user import User
from minabung.services.storage.interface import (
    AuditRepository,
    ConnectionError,
    GroupRepository,
    StorageError,
    UserRepository,
)


# Model field -> document field
USER_FIELDS = {
    "profile_picture": "profilePicture",
    "birth_date": "birthDate",
    "group_id": "groupId",
    "created_at": "createdAt",
}
ENTRY_FIELDS = {
    "budget_id": "budgetId",
}

# Reference fields stored as ObjectId when well-formed
REFERENCE_FIELDS = {"group_id", "budget_id"}


def _oid(value: Any) -> Optional[ObjectId]:
    """Convert an id string to ObjectId, or None if it is malformed."""
    return ObjectId(value) if is_valid_id(value) else None


def _to_bson(field: str, value: Any) -> Any:
    """Convert a model value into something BSON can store."""
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return value.isoformat()
    if field in REFERENCE_FIELDS and is_valid_id(value):
        return ObjectId(value)
    return value


def _from_bson(value: Any) -> Any:
    """Convert a stored BSON value back into a model-friendly value."""
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, ObjectId):
        return str(value)
    return value


def _storage_errors(action: str):
    """Re-raise driver failures as StorageError."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except PyMongoError as e:
                raise StorageError(f"Failed to {action}: {e}") from e
        return wrapper
    return decorator


# =============================================================================
# DOCUMENT MAPPING
# =============================================================================

def _user_to_document(user: User) -> dict:
    doc = {"_id": ObjectId(user.id)}
    for field, value in user.model_dump(exclude={"id"}).items():
        doc[USER_FIELDS.get(field, field)] = _to_bson(field, value)
    return doc


def _document_to_user(doc: dict) -> User:
    reverse = {v: k for k, v in USER_FIELDS.items()}
    data = {"id": str(doc["_id"])}
    for key, value in doc.items():
        if key != "_id":
            data[reverse.get(key, key)] = _from_bson(value)
    return User.model_validate(data)


def _entry_to_document(entry: LedgerEntry) -> dict:
    doc = {"_id": ObjectId(entry.id)}
    for field, value in entry.model_dump(exclude={"id"}).items():
        # An expense only carries a budget reference when one was given
        if field == "budget_id" and value is None:
            continue
        doc[ENTRY_FIELDS.get(field, field)] = _to_bson(field, value)
    return doc


def _document_to_entry(kind: LedgerKind, doc: dict) -> LedgerEntry:
    reverse = {v: k for k, v in ENTRY_FIELDS.items()}
    data = {"id": str(doc["_id"])}
    for key, value in doc.items():
        if key != "_id":
            data[reverse.get(key, key)] = _from_bson(value)
    return ENTRY_MODELS[kind].model_validate(data)


def _group_to_document(group: Group) -> dict:
    doc = {
        "_id": ObjectId(group.id),
        "name": group.name,
        "description": group.description,
        "invite": group.invite,
        "members": [
            {"_id": ObjectId(m.id), "name": m.name, "role": m.role.value}
            for m in group.members
        ],
    }
    for kind in LedgerKind:
        doc[kind.value] = [_entry_to_document(e) for e in group.entries(kind)]
    return doc


def _document_to_group(doc: dict) -> Group:
    data = {
        "id": str(doc["_id"]),
        "name": doc.get("name", ""),
        "description": doc.get("description") or "",
        "invite": doc.get("invite", ""),
        "members": [
            {"id": str(m["_id"]), "name": m.get("name", ""), "role": m.get("role", "Member")}
            for m in doc.get("members", [])
        ],
    }
    for kind in LedgerKind:
        data[kind.value] = [
            _document_to_entry(kind, entry) for entry in doc.get(kind.value) or []
        ]
    return Group.model_validate(data)


# =============================================================================
# CONNECTION
# =============================================================================

class MongoConnection:
    """
    Low-level MongoDB client wrapper.

    Owns the single AsyncMongoClient for the process and provides retry
    logic for the startup connectivity check.
    """

    def __init__(self, settings: Optional[MongoSettings] = None):
        self._settings = settings or get_settings().mongo
        self._client: Optional[AsyncMongoClient] = None

    @property
    def client(self) -> AsyncMongoClient:
        if self._client is None:
            self._client = AsyncMongoClient(
                self._settings.uri,
                serverSelectionTimeoutMS=self._settings.server_selection_timeout_ms,
            )
        return self._client

    @property
    def database(self):
        return self.client[self._settings.database_name]

    @property
    def users(self):
        return self.database[self._settings.users_collection]

    @property
    def groups(self):
        return self.database[self._settings.groups_collection]

    @property
    def audit_log(self):
        return self.database[self._settings.audit_collection]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def connect(self) -> None:
        """Check that the server is reachable."""
        try:
            await self.client.admin.command("ping")
        except PyMongoError as e:
            raise ConnectionError(f"Failed to connect to MongoDB: {e}")

    async def ensure_indexes(self) -> None:
        """Create the indexes lookups and uniqueness rely on."""
        await self.users.create_index([("email", ASCENDING)], unique=True)
        await self.users.create_index([("username", ASCENDING)], unique=True)
        await self.groups.create_index([("invite", ASCENDING)], unique=True)
        await self.groups.create_index([("members._id", ASCENDING)])
        for kind in (LedgerKind.INCOMES, LedgerKind.EXPENSES, LedgerKind.BUDGETS):
            await self.groups.create_index([(f"{kind.value}._id", ASCENDING)])
        await self.audit_log.create_index([("timestamp", DESCENDING)])

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


# =============================================================================
# REPOSITORIES
# =============================================================================

class MongoUserRepository(UserRepository):
    """MongoDB implementation of user storage."""

    def __init__(self, connection: MongoConnection):
        self._collection = connection.users

    @_storage_errors("insert user")
    async def insert_user(self, user: User) -> Optional[str]:
        result = await self._collection.insert_one(_user_to_document(user))
        return str(result.inserted_id) if result.inserted_id is not None else None

    @_storage_errors("load user")
    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        oid = _oid(user_id)
        if oid is None:
            return None
        doc = await self._collection.find_one({"_id": oid})
        return _document_to_user(doc) if doc else None

    @_storage_errors("load user")
    async def get_user_by_email(self, email: str) -> Optional[User]:
        doc = await self._collection.find_one({"email": email})
        return _document_to_user(doc) if doc else None

    @_storage_errors("load user")
    async def get_user_by_username(self, username: str) -> Optional[User]:
        doc = await self._collection.find_one({"username": username})
        return _document_to_user(doc) if doc else None

    @_storage_errors("load user")
    async def find_user_by_email_or_username(
        self,
        email: str,
        username: str,
    ) -> Optional[User]:
        doc = await self._collection.find_one(
            {"$or": [{"email": email}, {"username": username}]}
        )
        return _document_to_user(doc) if doc else None

    @_storage_errors("list users")
    async def list_users(self) -> list[User]:
        docs = await self._collection.find().to_list(None)
        return [_document_to_user(doc) for doc in docs]

    @_storage_errors("update user")
    async def update_user(
        self,
        user_id: str,
        fields: dict[str, Any],
    ) -> Optional[User]:
        oid = _oid(user_id)
        if oid is None:
            return None
        update = {
            USER_FIELDS.get(field, field): _to_bson(field, value)
            for field, value in fields.items()
        }
        if not update:
            doc = await self._collection.find_one({"_id": oid})
        else:
            doc = await self._collection.find_one_and_update(
                {"_id": oid},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        return _document_to_user(doc) if doc else None

    @_storage_errors("update user group")
    async def set_user_group(self, user_id: str, group_id: str) -> int:
        oid = _oid(user_id)
        if oid is None:
            return 0
        result = await self._collection.update_one(
            {"_id": oid},
            {"$set": {"groupId": _to_bson("group_id", group_id)}},
        )
        return result.modified_count


class MongoGroupRepository(GroupRepository):
    """MongoDB implementation of group storage."""

    def __init__(self, connection: MongoConnection):
        self._collection = connection.groups

    @_storage_errors("insert group")
    async def insert_group(self, group: Group) -> Optional[str]:
        result = await self._collection.insert_one(_group_to_document(group))
        return str(result.inserted_id) if result.inserted_id is not None else None

    @_storage_errors("load group")
    async def get_group_by_id(self, group_id: str) -> Optional[Group]:
        oid = _oid(group_id)
        if oid is None:
            return None
        doc = await self._collection.find_one({"_id": oid})
        return _document_to_group(doc) if doc else None

    @_storage_errors("load group")
    async def find_group_by_invite(self, invite: str) -> Optional[Group]:
        doc = await self._collection.find_one({"invite": invite})
        return _document_to_group(doc) if doc else None

    @_storage_errors("load group")
    async def find_group_by_entry(
        self,
        kind: LedgerKind,
        entry_id: str,
    ) -> Optional[Group]:
        oid = _oid(entry_id)
        if oid is None:
            return None
        doc = await self._collection.find_one({f"{kind.value}._id": oid})
        return _document_to_group(doc) if doc else None

    @_storage_errors("list groups")
    async def list_groups_by_member(self, user_id: str) -> list[Group]:
        oid = _oid(user_id)
        if oid is None:
            return []
        docs = await self._collection.find({"members._id": oid}).to_list(None)
        return [_document_to_group(doc) for doc in docs]

    @_storage_errors("count groups")
    async def count_groups_by_member(
        self,
        user_id: str,
        role: Optional[MemberRole] = None,
    ) -> int:
        oid = _oid(user_id)
        if oid is None:
            return 0
        if role is None:
            query = {"members._id": oid}
        else:
            query = {"members": {"$elemMatch": {"_id": oid, "role": role.value}}}
        return await self._collection.count_documents(query)

    @_storage_errors("update group")
    async def update_group_details(
        self,
        group_id: str,
        name: str,
        description: str,
    ) -> int:
        oid = _oid(group_id)
        if oid is None:
            return 0
        result = await self._collection.update_one(
            {"_id": oid},
            {"$set": {"name": name, "description": description}},
        )
        return result.modified_count

    @_storage_errors("delete group")
    async def delete_group(self, group_id: str) -> int:
        oid = _oid(group_id)
        if oid is None:
            return 0
        result = await self._collection.delete_one({"_id": oid})
        return result.deleted_count

    @_storage_errors("add member")
    async def add_member(self, group_id: str, member: Member) -> int:
        oid = _oid(group_id)
        if oid is None:
            return 0
        result = await self._collection.update_one(
            {"_id": oid},
            {"$push": {"members": {
                "_id": ObjectId(member.id),
                "name": member.name,
                "role": member.role.value,
            }}},
        )
        return result.modified_count

    @_storage_errors("add entry")
    async def push_entry(
        self,
        group_id: str,
        kind: LedgerKind,
        entry: LedgerEntry,
    ) -> int:
        oid = _oid(group_id)
        if oid is None:
            return 0
        result = await self._collection.update_one(
            {"_id": oid},
            {"$push": {kind.value: _entry_to_document(entry)}},
        )
        return result.modified_count

    @_storage_errors("update entry")
    async def set_entry_fields(
        self,
        group_id: str,
        kind: LedgerKind,
        entry_id: str,
        fields: dict[str, Any],
    ) -> int:
        oid, entry_oid = _oid(group_id), _oid(entry_id)
        if oid is None or entry_oid is None or not fields:
            return 0
        update = {
            f"{kind.value}.$.{ENTRY_FIELDS.get(field, field)}": _to_bson(field, value)
            for field, value in fields.items()
        }
        result = await self._collection.update_one(
            {"_id": oid, f"{kind.value}._id": entry_oid},
            {"$set": update},
        )
        return result.modified_count

    @_storage_errors("delete entry")
    async def pull_entry(
        self,
        group_id: str,
        kind: LedgerKind,
        entry_id: str,
    ) -> int:
        oid, entry_oid = _oid(group_id), _oid(entry_id)
        if oid is None or entry_oid is None:
            return 0
        result = await self._collection.update_one(
            {"_id": oid},
            {"$pull": {kind.value: {"_id": entry_oid}}},
        )
        return result.modified_count


class MongoAuditRepository(AuditRepository):
    """MongoDB implementation of the append-only audit log."""

    def __init__(self, connection: MongoConnection):
        self._collection = connection.audit_log

    @staticmethod
    def _to_document(event: AuditEvent) -> dict:
        doc = event.model_dump(mode="json")
        doc["_id"] = doc.pop("event_id")
        doc["timestamp"] = event.timestamp
        return doc

    @staticmethod
    def _from_document(doc: dict) -> AuditEvent:
        data = dict(doc)
        data["event_id"] = data.pop("_id")
        return AuditEvent.model_validate(data)

    @_storage_errors("append audit event")
    async def append_event(self, event: AuditEvent) -> bool:
        result = await self._collection.insert_one(self._to_document(event))
        return result.acknowledged

    @_storage_errors("load audit events")
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        docs = await self._collection.find(
            {"correlation_id": str(correlation_id)}
        ).sort("timestamp", ASCENDING).to_list(None)
        return [self._from_document(doc) for doc in docs]

    @_storage_errors("load audit events")
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        docs = await self._collection.find(
            {"entity_type": entity_type, "entity_id": entity_id}
        ).sort("timestamp", ASCENDING).to_list(None)
        return [self._from_document(doc) for doc in docs]

    @_storage_errors("load audit events")
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        docs = await self._collection.find().sort(
            "timestamp", DESCENDING
        ).limit(limit).to_list(None)
        return [self._from_document(doc) for doc in docs]
