"""Database-backed username registry repository."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.base import utcnow
from ..db.models import UsernameModel
from ..schemas import UsernameRecord


class UsernameRepository:
    """Row-level access to ``usernames``; invariant checks live in the registry service."""

    def get(self, session: Session, canonical_key: str) -> UsernameRecord | None:
        model = session.get(UsernameModel, canonical_key)
        return self._to_domain(model) if model else None

    def insert(self, session: Session, record: UsernameRecord) -> UsernameRecord:
        """Add a new row; a concurrent insert on the same key fails at flush."""
        model = UsernameModel(
            canonical_key=record.canonical_key,
            display_name=record.display_name,
            holder_id=record.holder_id,
            reserved_for_email=record.reserved_for_email,
            is_pending=record.is_pending,
            claimed_at=record.claimed_at,
        )
        session.add(model)
        session.flush([model])
        return self._to_domain(model)

    def set_display_name(self, session: Session, canonical_key: str, display_name: str) -> UsernameRecord:
        model = self._require(session, canonical_key)
        model.display_name = display_name
        session.flush([model])
        return self._to_domain(model)

    def mark_claimed(
        self,
        session: Session,
        canonical_key: str,
        holder_id: str,
        display_name: str,
        *,
        claimed_at: Optional[datetime] = None,
    ) -> UsernameRecord:
        model = self._require(session, canonical_key)
        model.is_pending = False
        model.holder_id = holder_id
        model.reserved_for_email = None
        model.display_name = display_name
        model.claimed_at = claimed_at or utcnow()
        session.flush([model])
        return self._to_domain(model)

    def delete(self, session: Session, canonical_key: str) -> bool:
        model = session.get(UsernameModel, canonical_key)
        if model is None:
            return False
        session.delete(model)
        session.flush()
        return True

    def list_all(self, session: Session) -> list[UsernameRecord]:
        stmt = select(UsernameModel).order_by(UsernameModel.canonical_key.asc())
        return [self._to_domain(model) for model in session.execute(stmt).scalars()]

    def _require(self, session: Session, canonical_key: str) -> UsernameModel:
        model = session.get(UsernameModel, canonical_key)
        if model is None:
            raise LookupError(f"Username '{canonical_key}' is not registered.")
        return model

    def _to_domain(self, model: UsernameModel) -> UsernameRecord:
        return UsernameRecord(
            canonical_key=model.canonical_key,
            display_name=model.display_name,
            holder_id=model.holder_id,
            reserved_for_email=model.reserved_for_email,
            is_pending=model.is_pending,
            claimed_at=model.claimed_at,
        )


usernames = UsernameRepository()

__all__ = ["UsernameRepository", "usernames"]
