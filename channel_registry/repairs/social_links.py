"""Reduce instagram profile URLs stored on pending profiles to bare handles."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..normalization import CertifiedProfile, extract_instagram_handle
from ..repositories import pending_profiles
from ..schemas import PendingProfile
from .base import ProfileRepairTask, RepairOutcome, register_repair

logger = logging.getLogger(__name__)


@register_repair
class InstagramHandleRepair(ProfileRepairTask):
    name = "instagram-handles"
    description = "Rewrite djProfile.socialLinks.instagram URLs to handles."

    def repair_profile(
        self,
        session: Session,
        profile: PendingProfile,
        certified: CertifiedProfile,
    ) -> RepairOutcome:
        social = profile.dj_profile.get("socialLinks")
        if not isinstance(social, dict):
            return RepairOutcome.ALREADY_CORRECT
        value = social.get("instagram")
        if not isinstance(value, str) or "instagram.com" not in value.lower():
            return RepairOutcome.ALREADY_CORRECT
        handle = extract_instagram_handle(value)
        if handle == value:
            return RepairOutcome.ALREADY_CORRECT

        payload = dict(profile.dj_profile)
        payload["socialLinks"] = {**social, "instagram": handle}
        pending_profiles.update_fields(session, profile.id, dj_profile=payload)
        logger.info("Normalized instagram on %s: %r -> %r", profile.id, value, handle)
        return RepairOutcome.FIXED
