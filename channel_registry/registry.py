"""Username registry service: the single path for reserving, claiming and releasing names.

Every multi-row write runs inside one ``session_scope`` unit of work. Store
contention (a concurrent insert on the same canonical key, a locked database)
surfaces from SQLAlchemy as ``IntegrityError`` / ``OperationalError``; the
service retries the whole unit a bounded number of times and then raises
``TransientStoreError``. Domain errors (validation, conflicts) are never
retried.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, ContextManager, Dict, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from .config import get_settings
from .db.base import utcnow
from .db.session import session_scope
from .errors import (
    AlreadyClaimedError,
    EmailHasAccountError,
    NotFoundError,
    PendingProfileExistsError,
    ProfileNotEditableError,
    TransientStoreError,
    UsernameTakenError,
    ValidationError,
)
from .normalization import (
    certify_profile,
    normalize_email,
    normalize_username,
    username_problem,
)
from .repositories import accounts, pending_profiles, pending_roles, usernames
from .resolver import ClaimState, Classification, classify_record
from .schemas import Account, DJProfileData, PendingProfile, UsernameRecord, pending_holder_id
from .telemetry import emit_event

logger = logging.getLogger(__name__)

T = TypeVar("T")

ADMIN_SOURCE = "admin-pre-register"
APPLICATION_SOURCE = "studio-join-application"


@dataclass(frozen=True)
class Availability:
    available: bool
    owned: bool = False
    reason: Optional[str] = None


@dataclass(frozen=True)
class RoleAssignment:
    existing_user: bool
    role_assigned: bool = False
    pending_created: bool = False


class UsernameRegistry:
    def __init__(
        self,
        scope: Callable[..., ContextManager[Session]] = session_scope,
        *,
        retries: Optional[int] = None,
    ) -> None:
        self._scope = scope
        self._retries = retries

    # ------------------------------------------------------------------
    # Read paths
    # ------------------------------------------------------------------

    def classify(self, username: str, email: Optional[str] = None) -> Classification:
        key = normalize_username(username)
        with self._scope(commit=False) as session:
            return classify_record(key, usernames.get(session, key), normalize_email(email) or None)

    def check_availability(self, username: str, account_id: Optional[str] = None) -> Availability:
        trimmed = (username or "").strip()
        problem = username_problem(trimmed)
        if problem:
            return Availability(False, reason=problem.rstrip("."))
        with self._scope(commit=False) as session:
            record = usernames.get(session, normalize_username(trimmed))
        if record is None:
            return Availability(True)
        if account_id and record.holder_id == account_id:
            return Availability(True, owned=True)
        return Availability(False, reason="Username is already taken")

    def list_pending_profiles(self, status: Optional[str] = None) -> list[PendingProfile]:
        with self._scope(commit=False) as session:
            return pending_profiles.list_all(session, status=status)

    # ------------------------------------------------------------------
    # Registration transaction
    # ------------------------------------------------------------------

    def reserve(
        self,
        email: str,
        username: str,
        dj_profile: Optional[DJProfileData] = None,
        *,
        created_by: Optional[str] = None,
        source: str = ADMIN_SOURCE,
    ) -> PendingProfile:
        """Create a pending profile, its username reservation and its role grant atomically."""
        normalized_email = normalize_email(email)
        if not normalized_email or "@" not in normalized_email:
            raise ValidationError("Email is required")
        trimmed = (username or "").strip()
        if not trimmed:
            raise ValidationError("Username is required")
        problem = username_problem(trimmed)
        if problem:
            raise ValidationError(f"Invalid username. {problem}")
        key = normalize_username(trimmed)
        payload = (dj_profile or DJProfileData()).to_document()

        def _transaction(session: Session) -> PendingProfile:
            if accounts.exists_by_email(session, normalized_email):
                raise EmailHasAccountError(normalized_email)
            if pending_profiles.find_pending_by_email(session, normalized_email) is not None:
                raise PendingProfileExistsError(normalized_email)
            classification = classify_record(key, usernames.get(session, key), normalized_email)
            if classification.is_conflict:
                raise UsernameTakenError(key, classification.holder_id)

            profile = pending_profiles.create(
                session,
                PendingProfile(
                    id=uuid.uuid4().hex,
                    email=normalized_email,
                    chat_username=trimmed,
                    chat_username_normalized=key,
                    status="pending",
                    dj_profile=payload,
                    created_by=created_by,
                ),
            )
            if classification.state is ClaimState.FREE:
                usernames.insert(
                    session,
                    UsernameRecord(
                        canonical_key=key,
                        display_name=trimmed,
                        holder_id=pending_holder_id(normalized_email, profile.id),
                        reserved_for_email=normalized_email,
                        is_pending=True,
                    ),
                )
            else:
                usernames.set_display_name(session, key, trimmed)
            pending_roles.create(session, normalized_email, source, pending_profile_id=profile.id)
            return profile

        profile = self._run("reserve", _transaction)
        logger.info("Created pending profile %s with username %s", profile.id, trimmed)
        emit_event(
            "pending_profile_registered",
            profile_id=profile.id,
            canonical_key=key,
            email=normalized_email,
            created_by=created_by,
            source=source,
        )
        return profile

    def update_pending_profile(self, profile_id: str, dj_profile: DJProfileData) -> PendingProfile:
        def _transaction(session: Session) -> PendingProfile:
            profile = pending_profiles.get(session, profile_id)
            if profile is None:
                raise NotFoundError("Profile not found")
            if profile.status != "pending":
                raise ProfileNotEditableError("Cannot edit a claimed profile")
            merged = dj_profile.merged_over(profile.dj_profile)
            return pending_profiles.update_fields(session, profile_id, dj_profile=merged.to_document())

        updated = self._run("update_pending_profile", _transaction)
        logger.info("Updated pending profile %s", profile_id)
        return updated

    def release(self, profile_id: str) -> PendingProfile:
        """Delete a pending profile, its own pending reservation and its unconsumed role grants."""

        def _transaction(session: Session) -> tuple[PendingProfile, list[str], int]:
            profile = pending_profiles.get(session, profile_id)
            if profile is None:
                raise NotFoundError("Profile not found")
            released: list[str] = []
            for key in self._reservation_keys(profile):
                if self._classify_profile_key(session, profile, key).state is ClaimState.RESERVED_FOR_THIS_EMAIL:
                    usernames.delete(session, key)
                    released.append(key)
            pending_profiles.delete(session, profile.id)
            grants = pending_roles.delete_unconsumed_for_profile(session, profile.id)
            return profile, released, grants

        profile, released, grants = self._run("release", _transaction)
        logger.info("Deleted pending profile %s (released=%s, role_grants=%d)", profile_id, released, grants)
        emit_event("pending_profile_released", profile_id=profile_id, released_keys=released, role_grants=grants)
        return profile

    # ------------------------------------------------------------------
    # Claim transaction
    # ------------------------------------------------------------------

    def promote(self, profile_id: str, account_id: str) -> DJProfileData:
        """Turn the reservation into a firm claim and copy the profile onto the account."""
        payload = self._run("promote", lambda session: self._promote_in(session, profile_id, account_id))
        emit_event("pending_profile_promoted", profile_id=profile_id, account_id=account_id)
        return payload

    def claim_for_account(self, account_id: str) -> tuple[PendingProfile, DJProfileData]:
        def _transaction(session: Session) -> tuple[PendingProfile, DJProfileData]:
            account = self._require_account(session, account_id)
            profile = pending_profiles.find_pending_by_email(session, normalize_email(account.email))
            if profile is None:
                raise NotFoundError("No pending DJ profile exists for this account.")
            return profile, self._promote_in(session, profile.id, account_id)

        profile, payload = self._run("claim_for_account", _transaction)
        emit_event("pending_profile_promoted", profile_id=profile.id, account_id=account_id)
        return profile, payload

    def register_for_account(self, account_id: str, username: str) -> UsernameRecord:
        """Self-service firm claim of a chat username by a real account."""
        trimmed = (username or "").strip()
        if not trimmed:
            raise ValidationError("Username is required")
        problem = username_problem(trimmed)
        if problem:
            raise ValidationError(f"Invalid username. {problem}")
        key = normalize_username(trimmed)

        def _transaction(session: Session) -> UsernameRecord:
            account = self._require_account(session, account_id)
            email = normalize_email(account.email)
            classification = classify_record(key, usernames.get(session, key), email)
            if classification.state is ClaimState.RESERVED_FOR_THIS_EMAIL:
                profile = pending_profiles.find_pending_by_email(session, email)
                if profile is None:
                    raise UsernameTakenError(key, classification.holder_id)
                self._promote_in(session, profile.id, account_id)
            elif classification.state is ClaimState.FREE:
                usernames.insert(
                    session,
                    UsernameRecord(canonical_key=key, display_name=trimmed, holder_id=account_id),
                )
            elif classification.holder_id != account_id:
                raise UsernameTakenError(key, classification.holder_id)
            record = usernames.set_display_name(session, key, trimmed)
            accounts.apply_claim(session, account_id, chat_username=trimmed, chat_username_normalized=key)
            return record

        record = self._run("register_for_account", _transaction)
        logger.info("Registered username %s for account %s", key, account_id)
        return record

    def assign_dj_role(self, email: str) -> RoleAssignment:
        normalized_email = normalize_email(email)
        if not normalized_email:
            raise ValidationError("Email is required")

        def _transaction(session: Session) -> RoleAssignment:
            account = accounts.find_by_email(session, normalized_email)
            if account is not None:
                assigned = accounts.grant_role_if_unset(session, account.id, "dj")
                return RoleAssignment(existing_user=True, role_assigned=assigned)
            if pending_roles.find_by_email(session, normalized_email):
                return RoleAssignment(existing_user=False)
            pending_roles.create(session, normalized_email, APPLICATION_SOURCE)
            return RoleAssignment(existing_user=False, pending_created=True)

        result = self._run("assign_dj_role", _transaction)
        logger.info("DJ role assignment for %s: %s", normalized_email, result)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _promote_in(self, session: Session, profile_id: str, account_id: str) -> DJProfileData:
        profile = pending_profiles.get(session, profile_id)
        if profile is None:
            raise NotFoundError("Profile not found")
        if profile.status != "pending":
            raise AlreadyClaimedError(profile_id)
        self._require_account(session, account_id)
        certified = certify_profile(profile.id, profile.chat_username, profile.chat_username_normalized, profile.dj_name)
        key = certified.canonical_key
        if not key:
            raise ValidationError(f"Pending profile '{profile_id}' has no usable username.")

        if not pending_profiles.mark_claimed(session, profile_id, account_id, utcnow()):
            raise AlreadyClaimedError(profile_id)

        classification = self._classify_profile_key(session, profile, key)
        if classification.state is ClaimState.FREE:
            usernames.insert(
                session,
                UsernameRecord(canonical_key=key, display_name=certified.display_name, holder_id=account_id),
            )
        elif classification.state is ClaimState.RESERVED_FOR_THIS_EMAIL:
            usernames.mark_claimed(session, key, account_id, certified.display_name)
        elif classification.holder_id != account_id:
            raise UsernameTakenError(key, classification.holder_id)

        payload = DJProfileData.from_document(profile.dj_profile)
        accounts.apply_claim(
            session,
            account_id,
            chat_username=certified.display_name,
            chat_username_normalized=key,
            dj_profile=payload.to_document(),
        )
        accounts.grant_role_if_unset(session, account_id, "dj")
        logger.info("Promoted pending profile %s to account %s (%s)", profile_id, account_id, key)
        return payload

    def _classify_profile_key(self, session: Session, profile: PendingProfile, key: str) -> Classification:
        certified = certify_profile(profile.id, profile.chat_username, profile.chat_username_normalized, profile.dj_name)
        return classify_record(
            key,
            usernames.get(session, key),
            profile.email,
            pending_holder_id=pending_holder_id(None, certified.profile_id),
        )

    def _reservation_keys(self, profile: PendingProfile) -> list[str]:
        certified = certify_profile(profile.id, profile.chat_username, profile.chat_username_normalized, profile.dj_name)
        keys = [certified.canonical_key, profile.chat_username_normalized or ""]
        return [key for index, key in enumerate(keys) if key and key not in keys[:index]]

    def _require_account(self, session: Session, account_id: str) -> Account:
        account = accounts.get(session, account_id)
        if account is None:
            raise NotFoundError(f"Account '{account_id}' was not found.")
        return account

    def _run(self, operation: str, work: Callable[[Session], T]) -> T:
        retries = self._retries if self._retries is not None else get_settings().transaction_retries
        attempts = retries + 1
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                with self._scope() as session:
                    return work(session)
            except (IntegrityError, OperationalError) as exc:
                last_error = exc
                logger.warning("Transient store error during %s (attempt %d/%d): %s", operation, attempt, attempts, exc)
        raise TransientStoreError(f"Failed to {operation.replace('_', ' ')} after {attempts} attempts.") from last_error


registry = UsernameRegistry()


def availability_payload(result: Availability) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"available": result.available}
    if result.owned:
        payload["owned"] = True
    if result.reason:
        payload["reason"] = result.reason
    return payload


__all__ = [
    "ADMIN_SOURCE",
    "APPLICATION_SOURCE",
    "Availability",
    "RoleAssignment",
    "UsernameRegistry",
    "availability_payload",
    "registry",
]
