"""Replace display names with invalid characters by their canonical key."""

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
class InvalidDisplayNameRepair(ProfileRepairTask):
    name = "display-names"
    description = "Rewrite chat_username values with punctuation to the canonical key."

    def repair_profile(
        self,
        session: Session,
        profile: PendingProfile,
        certified: CertifiedProfile,
    ) -> RepairOutcome:
        current = profile.chat_username
        if not (current or "").strip():
            return RepairOutcome.ALREADY_CORRECT
        if current == certified.display_name:
            return RepairOutcome.ALREADY_CORRECT
        if not certified.canonical_key:
            raise ValidationError(f"Display name {current!r} on '{profile.id}' has no letters or digits.")

        pending_profiles.update_fields(session, profile.id, chat_username=certified.display_name)
        logger.info("Rewrote display name on %s: %r -> %r", profile.id, current, certified.display_name)
        return RepairOutcome.FIXED
