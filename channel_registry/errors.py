"""Error taxonomy shared by the registry service, repairs and HTTP routes."""

from __future__ import annotations


class RegistryError(Exception):
    """Base class; ``status_code`` is the HTTP status the routes surface."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(RegistryError, ValueError):
    status_code = 400


class ProfileNotEditableError(ValidationError):
    pass


class ConflictError(RegistryError):
    status_code = 409


class EmailHasAccountError(ConflictError):
    def __init__(self, email: str) -> None:
        super().__init__("A user with this email already exists. They can set up their own DJ profile.")
        self.email = email


class UsernameTakenError(ConflictError):
    def __init__(self, canonical_key: str, holder_id: str | None = None) -> None:
        super().__init__("Username is already taken. Try another one.")
        self.canonical_key = canonical_key
        self.holder_id = holder_id


class PendingProfileExistsError(ConflictError):
    def __init__(self, email: str) -> None:
        super().__init__("A pending DJ profile already exists for this email.")
        self.email = email


class AlreadyClaimedError(ConflictError):
    def __init__(self, profile_id: str) -> None:
        super().__init__(f"Pending profile '{profile_id}' has already been claimed.")
        self.profile_id = profile_id


class NotFoundError(RegistryError, LookupError):
    status_code = 404


class TransientStoreError(RegistryError):
    """Transaction contention or timeout that survived the bounded retries."""

    status_code = 503


__all__ = [
    "AlreadyClaimedError",
    "ConflictError",
    "EmailHasAccountError",
    "NotFoundError",
    "PendingProfileExistsError",
    "ProfileNotEditableError",
    "RegistryError",
    "TransientStoreError",
    "UsernameTakenError",
    "ValidationError",
]
