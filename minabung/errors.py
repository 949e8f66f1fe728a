"""
Domain Errors

Every failure the directory and the ledger report to callers is one of
these. The message is meant to be shown to the user as-is.

No error is recovered from inside the core: an operation either passes
all of its checks and performs a single write, or raises and leaves
stored state unchanged.
"""


class MinabungError(Exception):
    """Base exception for all domain failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MinabungError):
    """Required input is missing or malformed."""
    pass


class ConflictError(MinabungError):
    """A unique field or a membership already exists."""
    pass


class NotFoundError(MinabungError):
    """An id, invite or embedded entry could not be resolved."""
    pass


class AuthError(MinabungError):
    """Bad credential, not a member, or insufficient role."""
    pass


class LimitError(MinabungError):
    """A per-user group cap would be exceeded."""
    pass


class PersistenceError(MinabungError):
    """A write reported that it had no effect."""
    pass


class UpdateError(PersistenceError):
    """A user record update modified nothing."""
    pass


class AIGenerationError(MinabungError):
    """The language model returned output we could not use."""
    pass


class UpstreamError(MinabungError):
    """An external service (media host) failed."""
    pass
