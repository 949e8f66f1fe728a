"""
Identifier helpers.

All ids in the system are the 24-character hex form of a BSON ObjectId,
so they round-trip through MongoDB without ambiguity.
"""

from bson import ObjectId


def new_id() -> str:
    """Generate a fresh identifier."""
    return str(ObjectId())


def is_valid_id(value: object) -> bool:
    """Check that a value is a well-formed 24-hex identifier string."""
    return isinstance(value, str) and ObjectId.is_valid(value)
