"""Repositories over the registry tables; each method takes an explicit session."""

from .accounts import AccountRepository, accounts
from .pending_profiles import PendingProfileRepository, pending_profiles
from .pending_roles import PendingRoleRepository, pending_roles
from .usernames import UsernameRepository, usernames

__all__ = [
    "AccountRepository",
    "PendingProfileRepository",
    "PendingRoleRepository",
    "UsernameRepository",
    "accounts",
    "pending_profiles",
    "pending_roles",
    "usernames",
]
