"""
Password hashing and access tokens.

Passwords are stored as bcrypt hashes. Access tokens are HS256 JWTs
carrying {id, name, email}; they have no expiry claim, expiry policy
belongs to whoever fronts the API.
"""

from typing import Optional

import bcrypt
import jwt

from minabung.config import SecuritySettings, get_settings
from minabung.errors import AuthError
from minabung.models.user import Principal

# bcrypt only looks at the first 72 bytes and refuses longer input
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash, or the password is too long
        return False


class TokenSigner:
    """Signs and verifies access tokens."""

    def __init__(self, settings: Optional[SecuritySettings] = None):
        self._settings = settings or get_settings().security

    @property
    def bcrypt_rounds(self) -> int:
        return self._settings.bcrypt_rounds

    def sign(self, principal: Principal) -> str:
        payload = {
            "id": principal.id,
            "name": principal.name,
            "email": principal.email,
        }
        return jwt.encode(payload, self._settings.secret_key, algorithm=self._settings.algorithm)

    def verify(self, token: str) -> Principal:
        """
        Decode a token back into the principal it was issued for.

        Raises:
            AuthError: If the signature or payload is invalid
        """
        try:
            payload = jwt.decode(
                token,
                self._settings.secret_key,
                algorithms=[self._settings.algorithm],
            )
        except jwt.InvalidTokenError:
            raise AuthError("Invalid token")

        if not payload.get("id") or not payload.get("name"):
            raise AuthError("Invalid token")

        return Principal(
            id=str(payload["id"]),
            name=payload["name"],
            email=payload.get("email"),
        )

    def resolve_bearer(self, authorization: Optional[str]) -> Principal:
        """
        Resolve an Authorization header value ("Bearer <token>").

        Raises:
            AuthError: If the header is missing, uses another scheme,
                or carries an invalid token
        """
        if not authorization:
            raise AuthError("No token provided")

        scheme, _, token = authorization.strip().partition(" ")
        if scheme != "Bearer":
            raise AuthError("Invalid token type")
        if not token.strip():
            raise AuthError("No token provided")

        return self.verify(token.strip())
