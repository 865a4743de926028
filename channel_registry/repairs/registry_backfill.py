"""Ensure every pending profile holds its own reservation in the username registry."""

from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..normalization import CertifiedProfile, normalize_email
from ..repositories import pending_profiles, usernames
from ..resolver import ClaimState, classify_record
from ..schemas import PendingProfile, UsernameRecord, pending_holder_id
from .base import ProfileRepairTask, RepairConflict, RepairOutcome, certify, register_repair

logger = logging.getLogger(__name__)


@register_repair
class RegistryBackfill(ProfileRepairTask):
    name = "registry-backfill"
    description = "Create missing pending reservations and sync their display names; report conflicts."
    status = "pending"

    def document_ids(self, session: Session) -> Sequence[str]:
        # certified-id order keeps conflict winners stable across legacy-id moves
        profiles = pending_profiles.list_all(session, status=self.status)
        profiles.sort(key=lambda profile: (certify(profile).profile_id, profile.id))
        return [profile.id for profile in profiles]

    def repair_profile(
        self,
        session: Session,
        profile: PendingProfile,
        certified: CertifiedProfile,
    ) -> RepairOutcome:
        if profile.status != "pending":
            return RepairOutcome.SKIPPED
        if certified.profile_id != profile.id and pending_profiles.exists(session, certified.profile_id):
            logger.debug("Skipping superseded legacy profile %s", profile.id)
            return RepairOutcome.SKIPPED
        key = certified.canonical_key
        if not key:
            raise ValidationError(f"No usable username on profile '{profile.id}'.")

        email = normalize_email(profile.email) or None
        holder = pending_holder_id(email, certified.profile_id)
        classification = classify_record(key, usernames.get(session, key), email, pending_holder_id=holder)

        if classification.state is ClaimState.FREE:
            usernames.insert(
                session,
                UsernameRecord(
                    canonical_key=key,
                    display_name=certified.display_name,
                    holder_id=holder,
                    reserved_for_email=email,
                    is_pending=True,
                ),
            )
            logger.info("Reserved %s for pending profile %s", key, profile.id)
            return RepairOutcome.CREATED

        if classification.state is ClaimState.RESERVED_FOR_THIS_EMAIL:
            record = classification.record
            if record is not None and record.display_name != certified.display_name:
                usernames.set_display_name(session, key, certified.display_name)
                return RepairOutcome.FIXED
            return RepairOutcome.ALREADY_CORRECT

        raise RepairConflict(classification.describe())
