"""Move profiles stored under hyphenated legacy ids to their canonical id."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..normalization import CertifiedProfile
from ..repositories import pending_profiles, pending_roles
from ..schemas import PendingProfile
from .base import ProfileRepairTask, RepairOutcome, register_repair

logger = logging.getLogger(__name__)


@register_repair
class LegacyIdMigration(ProfileRepairTask):
    name = "legacy-ids"
    description = "Re-key profiles whose id contains a hyphen; drop the copy when the canonical id already exists."

    def repair_profile(
        self,
        session: Session,
        profile: PendingProfile,
        certified: CertifiedProfile,
    ) -> RepairOutcome:
        if "-" not in profile.id:
            return RepairOutcome.ALREADY_CORRECT
        if not certified.canonical_key:
            raise ValidationError(f"Cannot derive a canonical id for '{profile.id}'.")

        target = certified.profile_id
        if pending_profiles.exists(session, target):
            pending_profiles.delete(session, profile.id)
            pending_roles.relink_profile(session, profile.id, target)
            logger.info("Deleted legacy duplicate %s (kept %s)", profile.id, target)
            return RepairOutcome.FIXED

        overrides = {"chat_username_normalized": certified.canonical_key}
        if not (profile.chat_username or "").strip():
            overrides["chat_username"] = certified.display_name
        pending_profiles.move(session, profile.id, target, **overrides)
        pending_roles.relink_profile(session, profile.id, target)
        logger.info("Moved legacy profile %s -> %s", profile.id, target)
        return RepairOutcome.FIXED
