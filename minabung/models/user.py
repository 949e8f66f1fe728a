"""
User Directory Models

A User is the identity record behind a login. A Principal is what the
rest of the system sees of an authenticated caller.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from minabung.models.clock import utcnow
from minabung.models.ids import new_id


class User(BaseModel):
    """
    A registered user.

    The password field only ever holds a bcrypt hash.
    """

    id: str = Field(
        default_factory=new_id,
        description="Unique user ID"
    )
    name: str = Field(..., min_length=1, max_length=100)
    username: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(
        ...,
        repr=False,
        description="bcrypt hash of the password"
    )
    gender: str = Field(..., min_length=1, max_length=20)
    profile_picture: Optional[str] = Field(
        default=None,
        description="URL of the profile picture on the media host"
    )
    birth_date: Optional[date] = None
    group_id: Optional[str] = Field(
        default=None,
        description="Most recently created or assigned group"
    )
    created_at: datetime = Field(default_factory=utcnow)


class Principal(BaseModel):
    """The authenticated caller, as decoded from a bearer token."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: Optional[str] = None


class ProfileUpdate(BaseModel):
    """
    Partial profile update.

    Only truthy values overwrite; an empty string or None keeps the
    stored value.
    """

    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    profile_picture: Optional[str] = None
    birth_date: Optional[date] = None

    def changed_fields(self) -> dict:
        """Fields that should overwrite the stored record."""
        return {
            field: value
            for field, value in self.model_dump().items()
            if value
        }


class LoginResult(BaseModel):
    """Signed access token plus the user it was issued for."""

    access_token: str
    user: User


class ProfilePictureUpdate(BaseModel):
    """Result of uploading a new profile picture."""

    message: str
    profile_picture: str
