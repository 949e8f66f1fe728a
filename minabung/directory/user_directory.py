"""
User Directory

Registration, login, profile changes and the user read queries.

DESIGN DECISION: The directory never sees a plaintext password after
the call that carries it. Registration stores a bcrypt hash; login
compares against it and hands back a signed token. bcrypt is CPU-bound,
so hashing runs in a worker thread to keep the event loop free.
"""

import asyncio
from datetime import date
from typing import BinaryIO, Optional, Union

from minabung.audit import AuditLogger
from minabung.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    UpdateError,
    UpstreamError,
    ValidationError,
)
from minabung.models.audit import AuditEvent, AuditEventBuilder
from minabung.models.ids import is_valid_id
from minabung.models.parsing import build_model
from minabung.models.user import (
    LoginResult,
    Principal,
    ProfilePictureUpdate,
    ProfileUpdate,
    User,
)
from minabung.services.auth import (
    MAX_PASSWORD_BYTES,
    TokenSigner,
    hash_password,
    verify_password,
)
from minabung.services.image import (
    CloudinaryImageService,
    ImageUploadError,
    InvalidImageError,
)
from minabung.services.storage import UserRepository

PROFILE_PICTURE_UPDATED = "Profile picture updated successfully!"


class UserDirectory:
    """Identity records and credentials."""

    def __init__(
        self,
        users: UserRepository,
        signer: TokenSigner,
        image_service: Optional[CloudinaryImageService] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._users = users
        self._signer = signer
        self._image_service = image_service
        self._audit_logger = audit_logger

    async def _audit(self, event: AuditEvent) -> None:
        if self._audit_logger is not None:
            await self._audit_logger.log(event)

    async def _require_user(self, user_id: str) -> User:
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    # =========================================================================
    # CREDENTIALS
    # =========================================================================

    async def register(
        self,
        name: str,
        username: str,
        email: str,
        password: str,
        gender: str,
        profile_picture: Optional[str] = None,
        birth_date: Optional[date] = None,
        group_id: Optional[str] = None,
    ) -> User:
        """
        Register a new user.

        Raises:
            ValidationError: Gender or password is missing, or a field
                is malformed
            ConflictError: The email or the username is taken
        """
        if not gender:
            raise ValidationError("Gender is required")
        if not password:
            raise ValidationError("Password is required")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        existing = await self._users.find_user_by_email_or_username(email, username)
        if existing is not None:
            raise ConflictError("Email or username already exists")

        hashed = await asyncio.to_thread(hash_password, password, self._signer.bcrypt_rounds)
        user = build_model(User, {
            "name": name,
            "username": username,
            "email": email,
            "password": hashed,
            "gender": gender,
            "profile_picture": profile_picture,
            "birth_date": birth_date,
            "group_id": group_id,
        })

        await self._users.insert_user(user)
        await self._audit(AuditEventBuilder.user_registered(user.id, user.username))
        return user

    async def login(self, email: str, password: str) -> LoginResult:
        """
        Verify credentials and issue an access token.

        Raises:
            NotFoundError: No user has this email
            AuthError: The password does not match
        """
        user = await self._users.get_user_by_email(email)
        if user is None:
            await self._audit(AuditEventBuilder.login_failed(email, "User not found"))
            raise NotFoundError("User not found")

        matches = await asyncio.to_thread(verify_password, password or "", user.password)
        if not matches:
            await self._audit(AuditEventBuilder.login_failed(email, "Invalid password"))
            raise AuthError("Invalid password")

        token = self._signer.sign(Principal(id=user.id, name=user.name, email=user.email))
        await self._audit(AuditEventBuilder.user_logged_in(user.id))
        return LoginResult(access_token=token, user=user)

    def authenticate(self, authorization: Optional[str]) -> Principal:
        """Resolve an Authorization header ("Bearer <token>") to a principal."""
        return self._signer.resolve_bearer(authorization)

    # =========================================================================
    # PROFILE
    # =========================================================================

    async def update_profile(self, principal: Principal, updates: ProfileUpdate) -> User:
        """
        Overwrite profile fields that carry a truthy value.

        An empty string never clears a field.

        Raises:
            NotFoundError: The caller's user record is gone
            ConflictError: The new email or username belongs to someone else
        """
        fields = updates.changed_fields()
        if not fields:
            return await self._require_user(principal.id)

        lookups = {
            "email": self._users.get_user_by_email,
            "username": self._users.get_user_by_username,
        }
        for field, lookup in lookups.items():
            if field not in fields:
                continue
            holder = await lookup(fields[field])
            if holder is not None and holder.id != principal.id:
                raise ConflictError("Email or username already exists")

        user = await self._users.update_user(principal.id, fields)
        if user is None:
            raise NotFoundError("User not found")

        await self._audit(AuditEventBuilder.profile_updated(user.id, sorted(fields)))
        return user

    async def update_profile_picture(
        self,
        principal: Principal,
        image: Union[bytes, BinaryIO],
    ) -> ProfilePictureUpdate:
        """
        Upload a new profile picture and store its URL.

        Args:
            principal: The caller
            image: Raw bytes, or a readable binary stream

        Raises:
            NotFoundError: The caller's user record is gone (checked
                before any upload)
            ValidationError: The bytes are not an acceptable image
            UpstreamError: The media host failed
        """
        user = await self._require_user(principal.id)
        if self._image_service is None:
            raise UpstreamError("Image service is not configured")

        image_bytes = image if isinstance(image, (bytes, bytearray)) else image.read()

        try:
            url = await self._image_service.upload_profile_picture(bytes(image_bytes), user.id)
        except InvalidImageError as e:
            raise ValidationError(str(e))
        except ImageUploadError as e:
            await self._audit(
                AuditEventBuilder.external_service_error("cloudinary", str(e), user.id)
            )
            raise UpstreamError(str(e))

        updated = await self._users.update_user(user.id, {"profile_picture": url})
        if updated is None:
            raise NotFoundError("User not found")

        await self._audit(AuditEventBuilder.profile_picture_updated(user.id, url))
        return ProfilePictureUpdate(message=PROFILE_PICTURE_UPDATED, profile_picture=url)

    async def update_user_group(self, user_id: str, group_id: str) -> None:
        """
        Point a user's group reference at a group.

        Raises:
            UpdateError: The write modified nothing (unknown user, or
                already pointing at this group)
        """
        modified = await self._users.set_user_group(user_id, group_id)
        if modified < 1:
            raise UpdateError("Failed to update user group")

        await self._audit(AuditEventBuilder.user_group_updated(user_id, group_id))

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_users(self) -> list[User]:
        return await self._users.list_users()

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Return the user, or None for an unknown or malformed id."""
        if not is_valid_id(user_id):
            return None
        return await self._users.get_user_by_id(user_id)
