"""Group ledger package."""

from minabung.ledger.group_ledger import DELETE_SUCCESSFUL, GroupLedger, generate_invite
from minabung.ledger.guard import (
    ADMIN_ROLES,
    OWNER_ROLES,
    Allowed,
    Denied,
    DenialReason,
    MembershipGuard,
    check_membership,
)

__all__ = [
    "ADMIN_ROLES",
    "Allowed",
    "DELETE_SUCCESSFUL",
    "Denied",
    "DenialReason",
    "GroupLedger",
    "MembershipGuard",
    "OWNER_ROLES",
    "check_membership",
    "generate_invite",
]
