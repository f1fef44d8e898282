"""
Failure taxonomy for the fieldops core.

Every failure is local and request-scoped. The transport layer maps each
class to a status code; the core only raises them.
"""

from typing import Iterable, Optional


class FieldOpsError(Exception):
    """Base class for all request-scoped failures."""


class DuplicateIdentity(FieldOpsError):
    """Raised when registering an email that already exists."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Identity already exists: {email}")


class NotFound(FieldOpsError):
    """Raised when an identity lookup misses."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Identity not found: {email}")


class MissingCredential(FieldOpsError):
    """Raised when a request carries no bearer token."""

    def __init__(self, message: str = "No credential provided"):
        super().__init__(message)


class InvalidCredential(FieldOpsError):
    """
    Raised when a credential cannot be accepted.

    Used uniformly for unknown email and wrong secret at login so callers
    cannot enumerate accounts.
    """

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class InvalidSignature(InvalidCredential):
    """Token signature or structure did not verify."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class SessionExpired(InvalidCredential):
    """Token verified but its expiry has passed."""

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message)


class Blocked(FieldOpsError):
    """Raised when the caller's email is in the block set."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Access blocked for {email}")


class Forbidden(FieldOpsError):
    """
    Raised when a caller attempts an action their role does not allow.

    Attributes:
        email: The caller who was denied
        action: The action that was denied
        required_permission: The permission that was required
    """

    def __init__(self, email: str, action: str, required_permission=None):
        self.email = email
        self.action = action
        self.required_permission = required_permission

        message = f"User {email} denied permission for action: {action}"
        if required_permission is not None:
            message += f" (requires: {required_permission.value})"

        super().__init__(message)


class MissingRequiredField(FieldOpsError):
    """Raised when a write is missing one or more required fields."""

    def __init__(self, fields: Iterable[str]):
        self.fields = list(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}")


class InvalidCoordinate(FieldOpsError):
    """Raised for non-numeric, out-of-range or half-specified coordinates."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)
