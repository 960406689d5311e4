"""Error taxonomy shared by portal services."""

from __future__ import annotations

from collections.abc import Iterable


class PortalError(RuntimeError):
    """Base class for portal service failures."""


class ValidationError(PortalError):
    """Raised when input is rejected before any side effect."""

    def __init__(self, errors: Iterable[str], *, message: str | None = None) -> None:
        self.errors = [str(error) for error in errors]
        super().__init__(message or "; ".join(self.errors) or "validation failed")


class StateTransitionError(ValidationError):
    """Raised when a lifecycle transition is not allowed."""

    def __init__(self, *, current: str, target: str) -> None:
        super().__init__(
            [f"cannot move from {current} to {target}"],
            message=f"Invalid transition {current} -> {target}",
        )
        self.current = current
        self.target = target


class AuthorizationError(PortalError):
    """Raised when the caller lacks the required role."""


class NotFoundError(PortalError):
    """Raised when a referenced record does not exist."""


class BackendError(PortalError):
    """Raised by storage backends; absorbed by the fallback layer."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class BackupIntegrityError(PortalError):
    """Raised when a stored backup payload fails checksum or decoding."""
