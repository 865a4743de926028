"""Append-only store of role grants waiting for an email to sign up."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from ..db.models import PendingDJRoleModel
from ..schemas import PendingRoleGrant


class PendingRoleRepository:
    def create(
        self,
        session: Session,
        email: str,
        source: str,
        *,
        pending_profile_id: Optional[str] = None,
        role: str = "dj",
    ) -> PendingRoleGrant:
        model = PendingDJRoleModel(
            id=str(uuid.uuid4()),
            email=email,
            role=role,
            source=source,
            pending_profile_id=pending_profile_id,
        )
        session.add(model)
        session.flush([model])
        return self._to_domain(model)

    def find_by_email(self, session: Session, email: str) -> list[PendingRoleGrant]:
        stmt = (
            select(PendingDJRoleModel)
            .where(PendingDJRoleModel.email == email)
            .order_by(PendingDJRoleModel.created_at.asc())
        )
        return [self._to_domain(model) for model in session.execute(stmt).scalars()]

    def delete_unconsumed_for_profile(self, session: Session, pending_profile_id: str) -> int:
        result = session.execute(
            delete(PendingDJRoleModel).where(
                PendingDJRoleModel.pending_profile_id == pending_profile_id,
                PendingDJRoleModel.consumed_at.is_(None),
            ).execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    def relink_profile(self, session: Session, old_profile_id: str, new_profile_id: str) -> int:
        result = session.execute(
            update(PendingDJRoleModel)
            .where(PendingDJRoleModel.pending_profile_id == old_profile_id)
            .values(pending_profile_id=new_profile_id)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    def _to_domain(self, model: PendingDJRoleModel) -> PendingRoleGrant:
        return PendingRoleGrant(
            id=model.id,
            email=model.email,
            role=model.role,
            source=model.source,
            pending_profile_id=model.pending_profile_id,
            created_at=model.created_at,
            consumed_at=model.consumed_at,
        )


pending_roles = PendingRoleRepository()

__all__ = ["PendingRoleRepository", "pending_roles"]
