"""
Group Ledger Models

A Group is the aggregate root: it embeds its members and its three
ledgers (incomes, expenses, budgets). All changes to those lists go
through the owning group document, which is the unit of atomic storage.

DESIGN DECISION: Amounts are Decimal. Sign is not validated; amounts
are non-negative by convention only.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, model_validator

from minabung.models.clock import utcnow
from minabung.models.ids import new_id


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class MemberRole(str, Enum):
    """
    Role of a member inside a group.

    OWNER may delete the group. OWNER and ADMIN may edit group details.
    Every role may add, edit and delete ledger entries.
    """
    OWNER = "Owner"
    MEMBER = "Member"
    ADMIN = "Admin"


class LedgerKind(str, Enum):
    """The embedded ledger arrays of a group, by their stored field name."""
    INCOMES = "incomes"
    EXPENSES = "expenses"
    BUDGETS = "budgets"

    @property
    def label(self) -> str:
        """Singular, capitalized name used in user-facing messages."""
        return self.value[:-1].capitalize()


class BudgetIcon(str, Enum):
    """Icons a budget category can show. The first one is the fallback."""
    ATTACH_MONEY = "attach-money"
    RESTAURANT = "restaurant"
    SHOPPING_CART = "shopping-cart"
    WALLET = "wallet"
    HOME = "home"
    DIRECTIONS_CAR = "directions-car"
    LOCAL_HOSPITAL = "local-hospital"
    SCHOOL = "school"
    FLIGHT = "flight"
    MOVIE = "movie"
    FITNESS_CENTER = "fitness-center"
    PETS = "pets"
    PHONE_ANDROID = "phone-android"
    CHILD_CARE = "child-care"
    CARD_GIFTCARD = "card-giftcard"
    SAVINGS = "savings"
    RECEIPT = "receipt"
    BUILD = "build"


class BudgetColor(str, Enum):
    """Palette for budget categories. The first one is the fallback."""
    BLUE = "blue"
    RED = "red"
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    PURPLE = "purple"
    PINK = "pink"
    TEAL = "teal"
    INDIGO = "indigo"
    BROWN = "brown"
    GRAY = "gray"


# =============================================================================
# EMBEDDED ENTITIES
# =============================================================================

class Member(BaseModel):
    """A user's participation in a group."""

    id: str = Field(..., description="ID of the member's user record")
    name: str = Field(..., description="Display name at the time of joining")
    role: MemberRole = MemberRole.MEMBER


class Income(BaseModel):
    """Money coming into the group."""

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    note: Optional[str] = Field(default=None, max_length=500)
    amount: Decimal
    date: datetime = Field(default_factory=utcnow)


class Expense(BaseModel):
    """Money going out of the group, optionally charged to a budget."""

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    note: Optional[str] = Field(default=None, max_length=500)
    amount: Decimal
    date: datetime = Field(default_factory=utcnow)
    budget_id: Optional[str] = Field(
        default=None,
        description="Budget in the same group this expense counts against"
    )


class Budget(BaseModel):
    """
    A spending category with a limit.

    icon and color are tokens from BudgetIcon / BudgetColor, or empty
    when the caller did not pick one.
    """

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    limit: Decimal
    icon: str = ""
    color: str = ""


LedgerEntry = Union[Income, Expense, Budget]

ENTRY_MODELS: dict[LedgerKind, type] = {
    LedgerKind.INCOMES: Income,
    LedgerKind.EXPENSES: Expense,
    LedgerKind.BUDGETS: Budget,
}


# =============================================================================
# AGGREGATE ROOT
# =============================================================================

GROUP_NAME_MAX_LENGTH = 100
GROUP_DESCRIPTION_MAX_LENGTH = 1000


class Group(BaseModel):
    """A budgeting group with its members and ledgers."""

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=GROUP_NAME_MAX_LENGTH)
    description: str = Field(default="", max_length=GROUP_DESCRIPTION_MAX_LENGTH)
    invite: str = Field(..., min_length=1, description="Invite token for joining")
    members: list[Member] = Field(default_factory=list)
    incomes: list[Income] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_members(self) -> 'Group':
        """A group always has an owner and never lists a user twice."""
        if not any(member.role == MemberRole.OWNER for member in self.members):
            raise ValueError("A group must have at least one owner")

        ids = [member.id for member in self.members]
        if len(ids) != len(set(ids)):
            raise ValueError("A user can only appear once in a group")

        return self

    def find_member(self, user_id: str) -> Optional[Member]:
        """Return the member record for a user, if they belong here."""
        return next((m for m in self.members if m.id == str(user_id)), None)

    def entries(self, kind: LedgerKind) -> list:
        """Return the embedded list for a ledger kind."""
        return getattr(self, kind.value)

    def find_entry(self, kind: LedgerKind, entry_id: str) -> Optional[LedgerEntry]:
        """Return an embedded entry by id, if this group holds it."""
        return next((e for e in self.entries(kind) if e.id == str(entry_id)), None)


# =============================================================================
# PARTIAL UPDATES
# =============================================================================

class ExpenseUpdate(BaseModel):
    """Partial expense update. Only truthy values overwrite."""

    name: Optional[str] = None
    note: Optional[str] = None
    amount: Optional[Decimal] = None
    date: Optional[datetime] = None
    budget_id: Optional[str] = None

    def changed_fields(self) -> dict:
        return {k: v for k, v in self.model_dump().items() if v}


class BudgetUpdate(BaseModel):
    """Partial budget update. Only truthy values overwrite."""

    name: Optional[str] = None
    limit: Optional[Decimal] = None
    icon: Optional[str] = None
    color: Optional[str] = None

    def changed_fields(self) -> dict:
        return {k: v for k, v in self.model_dump().items() if v}
