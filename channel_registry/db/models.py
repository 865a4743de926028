"""ORM models backing the username registry."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin, utcnow

JSONType = JSON


class UsernameModel(Base):
    """One row per canonical key; the primary key is the uniqueness guarantee."""

    __tablename__ = "usernames"

    canonical_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    holder_id: Mapped[str] = mapped_column(String(320), nullable=False)
    reserved_for_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    is_pending: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class PendingDJProfileModel(Base):
    __tablename__ = "pending_dj_profiles"
    __table_args__ = (
        Index("ix_pending_dj_profiles_email_status", "email", "status"),
        Index("ix_pending_dj_profiles_normalized", "chat_username_normalized"),
    )

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    chat_username: Mapped[str | None] = mapped_column(Text, nullable=True)
    chat_username_normalized: Mapped[str | None] = mapped_column(String(128), nullable=True)
    dj_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)
    dj_profile: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    claimed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class PendingDJRoleModel(Base):
    __tablename__ = "pending_dj_roles"
    __table_args__ = (Index("ix_pending_dj_roles_email", "email"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    role: Mapped[str] = mapped_column(String(32), default="dj", nullable=False)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    pending_profile_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    consumed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class UserModel(TimestampMixin, Base):
    """Real accounts; created by the identity provider flow, read and enriched here."""

    __tablename__ = "users"
    __table_args__ = (Index("ix_users_email", "email"),)

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    role: Mapped[str | None] = mapped_column(String(32), nullable=True)
    chat_username: Mapped[str | None] = mapped_column(String(128), nullable=True)
    chat_username_normalized: Mapped[str | None] = mapped_column(String(128), nullable=True)
    dj_profile: Mapped[dict | None] = mapped_column(JSONType, nullable=True)


__all__ = [
    "PendingDJProfileModel",
    "PendingDJRoleModel",
    "UserModel",
    "UsernameModel",
]
