"""Exception hierarchy for SeatGuard."""

from __future__ import annotations


class SeatGuardError(Exception):
    """Base exception for all SeatGuard errors."""


class Unauthenticated(SeatGuardError):
    """Raised when no valid principal can be resolved for a request."""


class NoTenantAssigned(SeatGuardError):
    """Raised when a valid principal has no company bound yet."""


class NotFound(SeatGuardError):
    """Raised for missing rows and for rows owned by another tenant alike."""


class InsufficientRole(SeatGuardError):
    """Raised when the principal's role lacks permission within its own tenant."""

    def __init__(self, action: str, resource_type: str) -> None:
        super().__init__(f"Role not permitted to {action} {resource_type}")
        self.action = action
        self.resource_type = resource_type


class LicenseLimitReached(SeatGuardError):
    """Raised when an admission would exceed the tenant's purchased seats."""

    def __init__(self, role_class: str, used: int, purchased: int) -> None:
        super().__init__(
            f"No available {role_class} seats ({used}/{purchased} used). "
            "Purchase more seats on the Billing page."
        )
        self.role_class = role_class
        self.used = used
        self.purchased = purchased


class InvitationInvalid(SeatGuardError):
    """Raised for unknown tokens or invitations in the wrong state."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invitation invalid: {reason}")
        self.reason = reason


class InvitationConflict(SeatGuardError):
    """Raised when an invitation cannot be created for an email."""


class StorageError(SeatGuardError):
    """Raised when storage operations fail."""


class TransientStorageError(StorageError):
    """Raised for serialization failures and deadlocks that are safe to retry."""


class ConfigError(SeatGuardError):
    """Raised when configuration is invalid."""
