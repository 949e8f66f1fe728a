"""Credential services package."""

from minabung.services.auth.credentials import (
    MAX_PASSWORD_BYTES,
    TokenSigner,
    hash_password,
    verify_password,
)

__all__ = [
    "MAX_PASSWORD_BYTES",
    "TokenSigner",
    "hash_password",
    "verify_password",
]
