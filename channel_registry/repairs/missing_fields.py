"""Backfill blank display names and missing or stale canonical keys on pending profiles."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..normalization import CertifiedProfile
from ..repositories import pending_profiles
from ..schemas import PendingProfile
from .base import ProfileRepairTask, RepairOutcome, register_repair

logger = logging.getLogger(__name__)


@register_repair
class MissingFieldBackfill(ProfileRepairTask):
    name = "missing-fields"
    description = "Derive chat_username and chat_username_normalized where they are missing."

    def repair_profile(
        self,
        session: Session,
        profile: PendingProfile,
        certified: CertifiedProfile,
    ) -> RepairOutcome:
        if not certified.canonical_key:
            raise ValidationError(f"No usable username on profile '{profile.id}'.")

        updates = {}
        # normalized is only ever written together with a present display name
        if not (profile.chat_username or "").strip():
            updates["chat_username"] = certified.display_name
        if profile.chat_username_normalized != certified.canonical_key:
            updates["chat_username_normalized"] = certified.canonical_key
        if not updates:
            return RepairOutcome.ALREADY_CORRECT

        pending_profiles.update_fields(session, profile.id, **updates)
        logger.info("Backfilled %s on %s (from %s)", sorted(updates), profile.id, certified.source)
        return RepairOutcome.FIXED
