"""
Group Ledger

DESIGN DECISION: Each operation is one independent unit of work:
1. Fetch the target group document
2. Run the membership guard
3. Perform ONE atomic single-document write
4. Return the affected sub-object

Nothing is written until every check has passed, so a failed
operation leaves stored state unchanged. There are no locks and no
transactions. Two concurrent writers each succeed against the document
as it is when their write lands.

Authorization matrix:
- Owner: everything, including deleting the group
- Admin: everything except deleting the group
- Member: ledger entries only
"""

import secrets
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from minabung.agents import GroupPlannerAgent
from minabung.audit import AuditLogger, create_correlation_id
from minabung.config import AppSettings, get_settings
from minabung.directory import UserDirectory
from minabung.errors import (
    AIGenerationError,
    ConflictError,
    LimitError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from minabung.ledger.guard import (
    ADMIN_ROLES,
    OWNER_ROLES,
    DenialReason,
    MembershipGuard,
)
from minabung.models.audit import AuditEvent, AuditEventBuilder
from minabung.models.group import (
    Budget,
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
from minabung.models.clock import utcnow
from minabung.models.ids import is_valid_id
from minabung.models.parsing import build_model
from minabung.models.user import Principal
from minabung.services.storage import GroupRepository

DELETE_SUCCESSFUL = "Delete Successful"


def generate_invite() -> str:
    """Opaque, URL-safe invite token."""
    return secrets.token_urlsafe(8)


def in_month(value: datetime, today: date) -> bool:
    """True when a timestamp falls inside the calendar month of `today`."""
    return value.year == today.year and value.month == today.month


class GroupLedger:
    """
    Group lifecycle, membership and the three embedded ledgers.

    Collaborators are passed in once at construction; the ledger holds
    no other state.
    """

    def __init__(
        self,
        groups: GroupRepository,
        user_directory: UserDirectory,
        planner: Optional[GroupPlannerAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        self._groups = groups
        self._users = user_directory
        self._planner = planner
        self._audit_logger = audit_logger
        self._app_settings = app_settings or get_settings().app
        self._guard = MembershipGuard(groups, audit_logger)

    async def _audit(
        self,
        event: AuditEvent,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if self._audit_logger is not None:
            await self._audit_logger.log(event, correlation_id=correlation_id)

    # =========================================================================
    # GROUP LIFECYCLE
    # =========================================================================

    async def _check_owner_cap(self, principal: Principal) -> None:
        limit = self._app_settings.max_owned_groups
        owned = await self._groups.count_groups_by_member(principal.id, MemberRole.OWNER)
        if owned >= limit:
            message = f"You can only own up to {limit} groups"
            await self._audit(AuditEventBuilder.limit_reached(principal.id, message))
            raise LimitError(message)

    async def _persist_new_group(
        self,
        principal: Principal,
        group: Group,
        ai_generated: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> Group:
        inserted_id = await self._groups.insert_group(group)
        if not inserted_id:
            raise PersistenceError("Failed to create group")

        # The group stands even if this fails
        await self._users.update_user_group(principal.id, group.id)

        await self._audit(
            AuditEventBuilder.group_created(group.id, group.name, principal.id, ai_generated),
            correlation_id=correlation_id,
        )
        return group

    def _new_group(
        self,
        principal: Principal,
        name: str,
        description: str,
        budgets: Optional[list[Budget]] = None,
    ) -> Group:
        return build_model(Group, {
            "name": name,
            "description": description or "",
            "invite": generate_invite(),
            "members": [
                Member(id=principal.id, name=principal.name, role=MemberRole.OWNER)
            ],
            "budgets": budgets or [],
        })

    async def create_group(
        self,
        principal: Principal,
        name: str,
        description: str = "",
    ) -> Group:
        """
        Create a group with the caller as its sole Owner.

        Raises:
            LimitError: Caller already owns the maximum number of groups
            ValidationError: Name or description is malformed
            PersistenceError: The insert yielded no id
            UpdateError: The caller's user record could not be updated
        """
        await self._check_owner_cap(principal)
        group = self._new_group(principal, name, description)
        return await self._persist_new_group(principal, group)

    async def create_ai_group(self, principal: Principal, prompt: str) -> Group:
        """
        Create a group whose name, description and budgets come from
        the language model.

        Raises:
            LimitError: Caller already owns the maximum number of groups
            AIGenerationError: The model output could not be used
        """
        await self._check_owner_cap(principal)
        if self._planner is None:
            raise AIGenerationError("AI failed to generate group")

        correlation_id = create_correlation_id()
        try:
            plan = await self._planner.plan_group(prompt)
        except AIGenerationError as e:
            await self._audit(
                AuditEventBuilder.ai_generation_failed(principal.id, str(e.__cause__ or e)),
                correlation_id=correlation_id,
            )
            raise

        budgets = [
            Budget(
                name=suggestion.name,
                limit=suggestion.limit,
                icon=suggestion.icon,
                color=suggestion.color,
            )
            for suggestion in plan.budgets
        ]
        group = self._new_group(principal, plan.name, plan.description, budgets)
        return await self._persist_new_group(
            principal,
            group,
            ai_generated=True,
            correlation_id=correlation_id,
        )

    async def find_group_by_invite(self, invite: str) -> Optional[Group]:
        return await self._groups.find_group_by_invite(invite)

    async def find_group_by_id(self, group_id: str) -> Optional[Group]:
        """Return the group, or None for an unknown or malformed id."""
        if not is_valid_id(group_id):
            return None
        return await self._groups.get_group_by_id(group_id)

    async def get_group_by_id(self, group_id: str) -> Optional[Group]:
        return await self.find_group_by_id(group_id)

    async def get_groups_by_user_id(self, user_id: str) -> list[Group]:
        return await self._groups.list_groups_by_member(user_id)

    async def join_group(self, principal: Principal, invite: str) -> Group:
        """
        Add the caller to a group as a plain Member.

        Checks run in this order: id shape, join cap, invite, duplicate.

        Raises:
            ValidationError: Caller id is not a well-formed id
            LimitError: Caller already belongs to the maximum number of groups
            NotFoundError: No group has this invite
            ConflictError: Caller is already a member
            PersistenceError: The membership write changed nothing
        """
        if not is_valid_id(principal.id):
            raise ValidationError("Invalid user id")

        limit = self._app_settings.max_joined_groups
        joined = await self._groups.count_groups_by_member(principal.id)
        if joined >= limit:
            message = f"You can only join up to {limit} groups"
            await self._audit(AuditEventBuilder.limit_reached(principal.id, message))
            raise LimitError(message)

        group = await self._groups.find_group_by_invite(invite)
        if group is None:
            raise NotFoundError("Group not found")

        if group.find_member(principal.id) is not None:
            raise ConflictError("You are already a member of this group")

        member = Member(id=principal.id, name=principal.name, role=MemberRole.MEMBER)
        modified = await self._groups.add_member(group.id, member)
        if modified < 1:
            raise PersistenceError("Failed to join group")

        await self._audit(AuditEventBuilder.group_joined(group.id, principal.id))

        updated = await self._groups.get_group_by_id(group.id)
        return updated or group.model_copy(update={"members": [*group.members, member]})

    async def update_group(
        self,
        principal: Principal,
        group_id: str,
        name: str,
        description: str,
    ) -> Group:
        """
        Overwrite a group's name and description. Owner or Admin only.

        Both fields are written as given, including empty values.
        """
        group = await self._guard.by_group_id(group_id)
        await self._guard.require(group, principal.id, ADMIN_ROLES, DenialReason.NOT_ADMIN)

        await self._groups.update_group_details(group.id, name, description)
        await self._audit(AuditEventBuilder.group_updated(group.id, principal.id))

        return group.model_copy(update={"name": name, "description": description})

    async def delete_group(self, principal: Principal, group_id: str) -> Group:
        """
        Delete a group. Owner only.

        Members' user records keep pointing at the deleted group.

        Returns:
            The group as it was before deletion
        """
        group = await self._guard.by_group_id(group_id)
        await self._guard.require(group, principal.id, OWNER_ROLES, DenialReason.NOT_OWNER)

        await self._groups.delete_group(group.id)
        await self._audit(AuditEventBuilder.group_deleted(group.id, principal.id))

        return group

    # =========================================================================
    # LEDGER ENTRIES
    # =========================================================================

    async def _push(
        self,
        principal: Principal,
        group_id: str,
        kind: LedgerKind,
        entry: LedgerEntry,
    ) -> LedgerEntry:
        group = await self._guard.by_group_id(group_id)
        await self._guard.require(group, principal.id)

        modified = await self._groups.push_entry(group.id, kind, entry)
        if modified < 1:
            raise PersistenceError(f"Failed to add {kind.label.lower()}")

        await self._audit(
            AuditEventBuilder.entry_added(kind.label.lower(), entry.id, group.id, principal.id)
        )
        return entry

    async def _set(
        self,
        principal: Principal,
        group: Group,
        kind: LedgerKind,
        entry: LedgerEntry,
        fields: dict[str, Any],
    ) -> LedgerEntry:
        updated = build_model(type(entry), {**entry.model_dump(), **fields})
        values = {field: getattr(updated, field) for field in fields}

        modified = await self._groups.set_entry_fields(group.id, kind, entry.id, values)
        if modified < 1:
            raise PersistenceError(f"Failed to update {kind.label.lower()}")

        await self._audit(
            AuditEventBuilder.entry_updated(
                kind.label.lower(), entry.id, group.id, principal.id, sorted(values)
            )
        )
        return updated

    async def _pull(
        self,
        principal: Principal,
        group: Group,
        kind: LedgerKind,
        entry: LedgerEntry,
    ) -> LedgerEntry:
        modified = await self._groups.pull_entry(group.id, kind, entry.id)
        if modified < 1:
            raise PersistenceError(f"Failed to delete {kind.label.lower()}")

        await self._audit(
            AuditEventBuilder.entry_deleted(kind.label.lower(), entry.id, group.id, principal.id)
        )
        return entry

    async def _income_in_group(
        self,
        principal: Principal,
        group_id: str,
        income_id: str,
    ) -> tuple[Group, Income]:
        group, income = await self._guard.by_group_and_entry_id(
            group_id, LedgerKind.INCOMES, income_id
        )
        await self._guard.require(group, principal.id)
        if income is None:
            raise NotFoundError("Income not found")
        return group, income

    async def _entry_anywhere(
        self,
        principal: Principal,
        kind: LedgerKind,
        entry_id: str,
    ) -> tuple[Group, LedgerEntry]:
        group, entry = await self._guard.by_entry_id_across_groups(kind, entry_id)
        await self._guard.require(group, principal.id)
        return group, entry

    async def add_income(
        self,
        principal: Principal,
        group_id: str,
        name: str,
        amount: Decimal,
        note: Optional[str] = None,
        date: Optional[datetime] = None,
    ) -> Income:
        data = {"name": name, "note": note, "amount": amount}
        if date is not None:
            data["date"] = date
        return await self._push(
            principal, group_id, LedgerKind.INCOMES, build_model(Income, data)
        )

    async def update_income(
        self,
        principal: Principal,
        group_id: str,
        income_id: str,
        name: str,
        note: Optional[str],
        amount: Decimal,
        date: Optional[datetime] = None,
    ) -> Income:
        """
        Overwrite an income. name, note and amount are always written,
        so passing note=None clears the note. date is written when given.
        """
        group, income = await self._income_in_group(principal, group_id, income_id)

        fields: dict[str, Any] = {"name": name, "note": note, "amount": amount}
        if date is not None:
            fields["date"] = date
        return await self._set(principal, group, LedgerKind.INCOMES, income, fields)

    async def delete_income(
        self,
        principal: Principal,
        group_id: str,
        income_id: str,
    ) -> str:
        group, income = await self._income_in_group(principal, group_id, income_id)
        await self._pull(principal, group, LedgerKind.INCOMES, income)
        return DELETE_SUCCESSFUL

    async def add_expense(
        self,
        principal: Principal,
        group_id: str,
        name: str,
        amount: Decimal,
        note: Optional[str] = None,
        date: Optional[datetime] = None,
        budget_id: Optional[str] = None,
    ) -> Expense:
        data = {"name": name, "note": note, "amount": amount}
        if date is not None:
            data["date"] = date
        if budget_id:
            data["budget_id"] = budget_id
        return await self._push(
            principal, group_id, LedgerKind.EXPENSES, build_model(Expense, data)
        )

    async def update_expense(
        self,
        principal: Principal,
        expense_id: str,
        updates: ExpenseUpdate,
    ) -> Expense:
        """
        Partially update an expense found by its id alone.

        Only truthy fields overwrite. With nothing to change the stored
        expense is returned as is.
        """
        group, expense = await self._entry_anywhere(principal, LedgerKind.EXPENSES, expense_id)

        fields = updates.changed_fields()
        if not fields:
            return expense
        return await self._set(principal, group, LedgerKind.EXPENSES, expense, fields)

    async def delete_expense(self, principal: Principal, expense_id: str) -> Expense:
        group, expense = await self._entry_anywhere(principal, LedgerKind.EXPENSES, expense_id)
        return await self._pull(principal, group, LedgerKind.EXPENSES, expense)

    async def add_budget(
        self,
        principal: Principal,
        group_id: str,
        name: str,
        limit: Decimal,
        icon: str = "",
        color: str = "",
    ) -> Budget:
        data = {"name": name, "limit": limit, "icon": icon or "", "color": color or ""}
        return await self._push(
            principal, group_id, LedgerKind.BUDGETS, build_model(Budget, data)
        )

    async def update_budget(
        self,
        principal: Principal,
        budget_id: str,
        updates: BudgetUpdate,
    ) -> Budget:
        """Partially update a budget found by its id alone. Only truthy fields overwrite."""
        group, budget = await self._entry_anywhere(principal, LedgerKind.BUDGETS, budget_id)

        fields = updates.changed_fields()
        if not fields:
            return budget
        return await self._set(principal, group, LedgerKind.BUDGETS, budget, fields)

    async def delete_budget(self, principal: Principal, budget_id: str) -> Budget:
        group, budget = await self._entry_anywhere(principal, LedgerKind.BUDGETS, budget_id)
        return await self._pull(principal, group, LedgerKind.BUDGETS, budget)

    # =========================================================================
    # LEDGER QUERIES
    # =========================================================================

    async def find_income_by_id(self, income_id: str) -> Optional[Income]:
        group = await self._groups.find_group_by_entry(LedgerKind.INCOMES, income_id)
        if group is None:
            return None
        return group.find_entry(LedgerKind.INCOMES, income_id)

    async def get_this_month_incomes(
        self,
        group_id: str,
        today: Optional[date] = None,
    ) -> list[Income]:
        group = await self._guard.by_group_id(group_id)
        today = today or utcnow().date()
        return [income for income in group.incomes if in_month(income.date, today)]

    async def get_this_month_expenses(
        self,
        group_id: str,
        today: Optional[date] = None,
    ) -> list[Expense]:
        group = await self._guard.by_group_id(group_id)
        today = today or utcnow().date()
        return [expense for expense in group.expenses if in_month(expense.date, today)]

    async def get_this_month_expenses_by_budget_id(
        self,
        group_id: str,
        budget_id: str,
        today: Optional[date] = None,
    ) -> list[Expense]:
        expenses = await self.get_this_month_expenses(group_id, today)
        return [expense for expense in expenses if expense.budget_id == budget_id]
