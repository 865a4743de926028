"""Read/enrich access to real accounts owned by the identity flow."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db.models import UserModel
from ..normalization import normalize_email
from ..schemas import Account

PROMOTABLE_ROLES = frozenset({None, "", "user"})


class AccountRepository:
    def get(self, session: Session, account_id: str) -> Account | None:
        model = session.get(UserModel, account_id)
        return self._to_domain(model) if model else None

    def find_by_email(self, session: Session, email: str) -> Account | None:
        # Account rows keep the identity provider's casing.
        stmt = (
            select(UserModel)
            .where(func.lower(UserModel.email) == normalize_email(email))
            .order_by(UserModel.id)
            .limit(1)
        )
        model = session.execute(stmt).scalars().first()
        return self._to_domain(model) if model else None

    def exists_by_email(self, session: Session, email: str) -> bool:
        return self.find_by_email(session, email) is not None

    def create(self, session: Session, account_id: str, email: str, *, role: Optional[str] = None) -> Account:
        model = UserModel(id=account_id, email=email, role=role)
        session.add(model)
        session.flush([model])
        return self._to_domain(model)

    def apply_claim(
        self,
        session: Session,
        account_id: str,
        *,
        chat_username: str,
        chat_username_normalized: str,
        dj_profile: Optional[Dict[str, Any]] = None,
    ) -> Account:
        model = self._require(session, account_id)
        model.chat_username = chat_username
        model.chat_username_normalized = chat_username_normalized
        if dj_profile is not None:
            model.dj_profile = dict(dj_profile)
        session.flush([model])
        return self._to_domain(model)

    def grant_role_if_unset(self, session: Session, account_id: str, role: str) -> bool:
        """Assign ``role`` unless the account already holds a higher one."""
        model = self._require(session, account_id)
        if model.role not in PROMOTABLE_ROLES:
            return False
        model.role = role
        session.flush([model])
        return True

    def list_with_username(self, session: Session) -> list[Account]:
        stmt = (
            select(UserModel)
            .where(UserModel.chat_username.is_not(None), UserModel.chat_username != "")
            .order_by(UserModel.id.asc())
        )
        return [self._to_domain(model) for model in session.execute(stmt).scalars()]

    def set_normalized_usernames(self, session: Session, updates: Iterable[tuple[str, str]]) -> int:
        written = 0
        for account_id, normalized in updates:
            model = self._require(session, account_id)
            model.chat_username_normalized = normalized
            written += 1
        session.flush()
        return written

    def _require(self, session: Session, account_id: str) -> UserModel:
        model = session.get(UserModel, account_id)
        if model is None:
            raise LookupError(f"Account '{account_id}' does not exist.")
        return model

    def _to_domain(self, model: UserModel) -> Account:
        return Account(
            id=model.id,
            email=model.email,
            role=model.role,
            chat_username=model.chat_username,
            chat_username_normalized=model.chat_username_normalized,
            dj_profile=dict(model.dj_profile) if model.dj_profile is not None else None,
        )


accounts = AccountRepository()

__all__ = ["AccountRepository", "accounts"]
