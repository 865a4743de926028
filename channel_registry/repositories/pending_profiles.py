"""Database-backed pending DJ profile repository."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..db.models import PendingDJProfileModel
from ..schemas import PendingProfile

_MUTABLE_FIELDS = frozenset(
    {
        "email",
        "chat_username",
        "chat_username_normalized",
        "dj_name",
        "status",
        "dj_profile",
        "created_by",
        "claimed_by",
        "claimed_at",
    }
)


class PendingProfileRepository:
    def get(self, session: Session, profile_id: str) -> PendingProfile | None:
        model = session.get(PendingDJProfileModel, profile_id)
        return self._to_domain(model) if model else None

    def exists(self, session: Session, profile_id: str) -> bool:
        return session.get(PendingDJProfileModel, profile_id) is not None

    def list_ids(self, session: Session, *, status: Optional[str] = None) -> list[str]:
        stmt = select(PendingDJProfileModel.id).order_by(PendingDJProfileModel.id.asc())
        if status is not None:
            stmt = stmt.where(PendingDJProfileModel.status == status)
        return list(session.execute(stmt).scalars())

    def list_all(self, session: Session, *, status: Optional[str] = None) -> list[PendingProfile]:
        stmt = select(PendingDJProfileModel).order_by(PendingDJProfileModel.created_at.desc())
        if status is not None:
            stmt = stmt.where(PendingDJProfileModel.status == status)
        return [self._to_domain(model) for model in session.execute(stmt).scalars()]

    def find_pending_by_email(self, session: Session, email: str) -> PendingProfile | None:
        stmt = (
            select(PendingDJProfileModel)
            .where(
                PendingDJProfileModel.email == email,
                PendingDJProfileModel.status == "pending",
            )
            .order_by(PendingDJProfileModel.created_at.asc())
            .limit(1)
        )
        model = session.execute(stmt).scalar_one_or_none()
        return self._to_domain(model) if model else None

    def create(self, session: Session, profile: PendingProfile) -> PendingProfile:
        model = PendingDJProfileModel(id=profile.id, created_at=profile.created_at)
        self._apply(model, profile.model_dump(exclude={"id", "created_at"}))
        session.add(model)
        session.flush([model])
        return self._to_domain(model)

    def update_fields(self, session: Session, profile_id: str, **fields: Any) -> PendingProfile:
        model = session.get(PendingDJProfileModel, profile_id)
        if model is None:
            raise LookupError(f"Pending profile '{profile_id}' does not exist.")
        self._apply(model, fields)
        session.flush([model])
        return self._to_domain(model)

    def mark_claimed(self, session: Session, profile_id: str, account_id: str, claimed_at: datetime) -> bool:
        """Flip ``pending`` -> ``claimed`` only if the row is still pending (claim-check)."""
        result = session.execute(
            update(PendingDJProfileModel)
            .where(
                PendingDJProfileModel.id == profile_id,
                PendingDJProfileModel.status == "pending",
            )
            .values(status="claimed", claimed_by=account_id, claimed_at=claimed_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def move(self, session: Session, profile_id: str, new_id: str, **overrides: Any) -> PendingProfile:
        """Re-create a profile under ``new_id`` and delete the old row in the same session."""
        model = session.get(PendingDJProfileModel, profile_id)
        if model is None:
            raise LookupError(f"Pending profile '{profile_id}' does not exist.")
        current = self._to_domain(model)
        moved = current.model_copy(update={"id": new_id, **overrides})
        session.delete(model)
        session.flush()
        return self.create(session, moved)

    def delete(self, session: Session, profile_id: str) -> bool:
        model = session.get(PendingDJProfileModel, profile_id)
        if model is None:
            return False
        session.delete(model)
        session.flush()
        return True

    def _apply(self, model: PendingDJProfileModel, fields: Dict[str, Any]) -> None:
        for key, value in fields.items():
            if key not in _MUTABLE_FIELDS:
                raise ValueError(f"Unsupported pending profile field: {key}")
            if key == "dj_profile":
                value = dict(value or {})
            setattr(model, key, value)

    def _to_domain(self, model: PendingDJProfileModel) -> PendingProfile:
        return PendingProfile(
            id=model.id,
            email=model.email,
            chat_username=model.chat_username,
            chat_username_normalized=model.chat_username_normalized,
            dj_name=model.dj_name,
            status=model.status,
            dj_profile=dict(model.dj_profile or {}),
            created_at=model.created_at,
            created_by=model.created_by,
            claimed_by=model.claimed_by,
            claimed_at=model.claimed_at,
        )


pending_profiles = PendingProfileRepository()

__all__ = ["PendingProfileRepository", "pending_profiles"]
