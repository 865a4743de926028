"""Request authentication for registry entrypoints.

Three gates:

* account tokens, verified by the external identity provider, which yields an account id;
* the admin gate, which additionally requires the account role to be ``admin`` or ``broadcaster``;
* the repair gate, a static bearer token compared against ``CRON_SECRET``.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings, get_settings
from .db.session import session_scope
from .repositories import accounts
from .schemas import Account

logger = logging.getLogger(__name__)

ADMIN_ROLES = frozenset({"admin", "broadcaster"})

bearer_scheme = HTTPBearer(auto_error=False, description="Identity token or repair secret")


class IdentityProvider(Protocol):
    def verify_id_token(self, token: str) -> str:
        """Return the account id for a valid token; raise on anything else."""
        ...


_identity_provider: Optional[IdentityProvider] = None


def set_identity_provider(provider: Optional[IdentityProvider]) -> None:
    global _identity_provider
    _identity_provider = provider


def get_identity_provider() -> Optional[IdentityProvider]:
    return _identity_provider


@dataclass(frozen=True)
class Caller:
    account_id: str
    email: str
    role: Optional[str]

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _load_account(account_id: str) -> Optional[Account]:
    with session_scope(commit=False) as session:
        return accounts.get(session, account_id)


def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Caller:
    if credentials is None:
        raise _unauthorized("Unauthorized")
    provider = get_identity_provider()
    if provider is None:
        logger.error("No identity provider configured; rejecting authenticated request")
        raise _unauthorized("Unauthorized")
    try:
        account_id = provider.verify_id_token(credentials.credentials)
    except Exception as exc:  # noqa: BLE001
        logger.info("Identity token rejected: %s", exc)
        raise _unauthorized("Unauthorized") from exc
    account = _load_account(account_id)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return Caller(account_id=account.id, email=account.email, role=account.role)


def require_admin(caller: Caller = Depends(get_current_caller)) -> Caller:
    if not caller.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return caller


def require_repair_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> None:
    secret = settings.cron_secret
    if not secret:
        logger.error("CRON_SECRET is not configured; repair entrypoints are disabled")
        raise _unauthorized("Unauthorized")
    if credentials is None or not hmac.compare_digest(credentials.credentials.encode(), secret.encode()):
        raise _unauthorized("Unauthorized")


__all__ = [
    "ADMIN_ROLES",
    "Caller",
    "IdentityProvider",
    "bearer_scheme",
    "get_current_caller",
    "get_identity_provider",
    "require_admin",
    "require_repair_secret",
    "set_identity_provider",
]
