"""
Membership Guard

Every ledger operation that touches an existing group goes through
here: resolve the group, look the caller up in its member list, check
the role, and hand back a typed decision.

DESIGN DECISION: The guard returns Allowed or Denied instead of raising.
Callers that only need a yes/no (for audit, for read filtering) can
branch on the decision; callers that need the error call raise_for().

Two lookup strategies exist because the stored API addresses entries
two different ways:
- by_group_and_entry_id: caller names the group (income operations)
- by_entry_id_across_groups: caller only names the entry (expense and
  budget update/delete), so the owning group is found by scanning
"""

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel

from minabung.audit import AuditLogger
from minabung.errors import AuthError, NotFoundError
from minabung.models.audit import AuditEventBuilder
from minabung.models.group import Group, LedgerEntry, LedgerKind, Member, MemberRole
from minabung.services.storage import GroupRepository


class DenialReason(str, Enum):
    """Why a caller was refused. Values are the user-facing messages."""
    NOT_MEMBER = "You are not a member of this group"
    NOT_ADMIN = "You are not the admin of this group"
    NOT_OWNER = "Only owners can delete the group"


ADMIN_ROLES = frozenset({MemberRole.OWNER, MemberRole.ADMIN})
OWNER_ROLES = frozenset({MemberRole.OWNER})


class Allowed(BaseModel):
    """The caller may proceed, acting as this member."""

    allowed: Literal[True] = True
    member: Member


class Denied(BaseModel):
    """The caller was refused."""

    allowed: Literal[False] = False
    reason: DenialReason

    def raise_for(self):
        raise AuthError(self.reason.value)


Decision = Union[Allowed, Denied]


def check_membership(
    group: Group,
    user_id: str,
    required_roles: Optional[frozenset] = None,
    denial: DenialReason = DenialReason.NOT_ADMIN,
) -> Decision:
    """
    Decide whether a user may act on a group.

    Args:
        group: The group being acted on
        user_id: The caller's user id
        required_roles: Roles allowed to proceed. None means any member.
        denial: Reason reported when the member's role is not enough

    Returns:
        Allowed(member) or Denied(reason)
    """
    member = group.find_member(user_id)
    if member is None:
        return Denied(reason=DenialReason.NOT_MEMBER)

    if required_roles is not None and member.role not in required_roles:
        return Denied(reason=denial)

    return Allowed(member=member)


class MembershipGuard:
    """
    Resolves the target group and enforces membership on it.

    Refusals are audited when an audit logger is given.
    """

    def __init__(
        self,
        groups: GroupRepository,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._groups = groups
        self._audit_logger = audit_logger

    async def by_group_id(self, group_id: str) -> Group:
        """
        Fetch a group by id.

        Raises:
            NotFoundError: If no group has this id
        """
        group = await self._groups.get_group_by_id(group_id)
        if group is None:
            raise NotFoundError("Group not found")
        return group

    async def by_group_and_entry_id(
        self,
        group_id: str,
        kind: LedgerKind,
        entry_id: str,
    ) -> tuple[Group, Optional[LedgerEntry]]:
        """
        Fetch a group by id and pick an embedded entry out of it.

        The entry is None when the group does not hold it; the caller
        decides whether that is an error, after the membership check.

        Raises:
            NotFoundError: If no group has this id
        """
        group = await self.by_group_id(group_id)
        return group, group.find_entry(kind, entry_id)

    async def by_entry_id_across_groups(
        self,
        kind: LedgerKind,
        entry_id: str,
    ) -> tuple[Group, LedgerEntry]:
        """
        Find the group that embeds an entry, without knowing the group.

        Raises:
            NotFoundError: "<Kind> not found" if no group embeds it
        """
        group = await self._groups.find_group_by_entry(kind, entry_id)
        entry = group.find_entry(kind, entry_id) if group else None
        if group is None or entry is None:
            raise NotFoundError(f"{kind.label} not found")
        return group, entry

    async def require(
        self,
        group: Group,
        user_id: str,
        required_roles: Optional[frozenset] = None,
        denial: DenialReason = DenialReason.NOT_ADMIN,
    ) -> Member:
        """
        Check membership and raise if refused.

        A refusal is logged as an access-denied audit event first.

        Returns:
            The caller's member record

        Raises:
            AuthError: With the denial reason as message
        """
        decision = check_membership(group, user_id, required_roles, denial)
        if isinstance(decision, Denied):
            if self._audit_logger is not None:
                await self._audit_logger.log(
                    AuditEventBuilder.access_denied(group.id, user_id, decision.reason.value)
                )
            decision.raise_for()
        return decision.member
