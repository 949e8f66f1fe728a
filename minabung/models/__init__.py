"""
Data Models Package

This package contains all Pydantic models used in Minabung.
All data flowing through the system must conform to these schemas.
"""

from minabung.models.group import (
    Budget,
    BudgetColor,
    BudgetIcon,
    BudgetUpdate,
    Expense,
    ExpenseUpdate,
    Group,
    Income,
    LedgerEntry,
    LedgerKind,
    Member,
    MemberRole,
)
from minabung.models.user import (
    LoginResult,
    Principal,
    ProfilePictureUpdate,
    ProfileUpdate,
    User,
)
from minabung.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from minabung.models.ids import is_valid_id, new_id

__all__ = [
    # Group models
    "Budget",
    "BudgetColor",
    "BudgetIcon",
    "BudgetUpdate",
    "Expense",
    "ExpenseUpdate",
    "Group",
    "Income",
    "LedgerEntry",
    "LedgerKind",
    "Member",
    "MemberRole",
    # User models
    "LoginResult",
    "Principal",
    "ProfilePictureUpdate",
    "ProfileUpdate",
    "User",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Ids
    "is_valid_id",
    "new_id",
]
