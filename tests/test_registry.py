"""Registration, claim and release transactions against a SQLite registry."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import pytest
from sqlalchemy.exc import OperationalError

from channel_registry.db.session import session_scope
from channel_registry.errors import (
    AlreadyClaimedError,
    EmailHasAccountError,
    NotFoundError,
    PendingProfileExistsError,
    ProfileNotEditableError,
    TransientStoreError,
    UsernameTakenError,
    ValidationError,
)
from channel_registry.registry import UsernameRegistry
from channel_registry.repositories import accounts, pending_profiles, pending_roles, usernames
from channel_registry.resolver import ClaimState
from channel_registry.schemas import DJProfileData, SocialLinks
from channel_registry.telemetry import RegistryEvent, register_listener


def _account(account_id: str, email: str, role: str | None = None) -> None:
    with session_scope() as session:
        accounts.create(session, account_id, email, role=role)


def test_invalid_username_is_rejected_before_any_write(db) -> None:
    registry = UsernameRegistry()
    with pytest.raises(ValidationError) as excinfo:
        registry.reserve("a@x.com", "COPYPASTE w/ KLS.RDR")
    assert "letters, numbers" in excinfo.value.message
    with session_scope(commit=False) as session:
        assert usernames.list_all(session) == []
        assert pending_profiles.list_all(session) == []


def test_reserve_creates_profile_reservation_and_role_grant(db) -> None:
    events: list[RegistryEvent] = []
    register_listener(events.append)
    registry = UsernameRegistry()

    profile = registry.reserve(" A@x.com ", "DJ Nova", DJProfileData(bio="Late night selector"), created_by="admin-1")

    assert profile.email == "a@x.com"
    assert profile.chat_username == "DJ Nova"
    assert profile.chat_username_normalized == "djnova"
    assert "-" not in profile.id
    assert profile.dj_profile["bio"] == "Late night selector"
    with session_scope(commit=False) as session:
        record = usernames.get(session, "djnova")
        grants = pending_roles.find_by_email(session, "a@x.com")
    assert record is not None
    assert record.is_pending
    assert record.reserved_for_email == "a@x.com"
    assert record.holder_id == "pending:a@x.com"
    assert record.display_name == "DJ Nova"
    assert [grant.pending_profile_id for grant in grants] == [profile.id]
    assert [event.name for event in events] == ["pending_profile_registered"]


def test_second_email_cannot_take_reserved_name(db) -> None:
    registry = UsernameRegistry()
    registry.reserve("a@x.com", "DJ Nova")
    with pytest.raises(UsernameTakenError):
        registry.reserve("b@y.com", "dj nova")
    with pytest.raises(UsernameTakenError):
        registry.reserve("b@y.com", "DJ Nova")
    assert registry.classify("DJ NOVA", "b@y.com").state is ClaimState.RESERVED_FOR_OTHER
    assert registry.classify("DJ NOVA", "a@x.com").state is ClaimState.RESERVED_FOR_THIS_EMAIL


def test_registration_errors_are_distinguishable(db) -> None:
    registry = UsernameRegistry()
    _account("uid-1", "taken@x.com")
    with pytest.raises(EmailHasAccountError):
        registry.reserve("taken@x.com", "Fresh Name")

    registry.reserve("a@x.com", "DJ Nova")
    with pytest.raises(PendingProfileExistsError):
        registry.reserve("a@x.com", "Other Name")


def test_account_email_match_ignores_case(db) -> None:
    registry = UsernameRegistry()
    _account("uid-a", "A@x.com")
    with pytest.raises(EmailHasAccountError):
        registry.reserve("a@x.com", "DJ Nova")
    with pytest.raises(EmailHasAccountError):
        registry.reserve(" a@X.COM ", "DJ Nova")
    with session_scope(commit=False) as session:
        assert usernames.get(session, "djnova") is None
        assert pending_profiles.list_all(session) == []


def test_promote_succeeds_once(db) -> None:
    registry = UsernameRegistry()
    profile = registry.reserve("a@x.com", "DJ Nova", DJProfileData(location="Berlin"))
    _account("uid-a", "a@x.com")

    payload = registry.promote(profile.id, "uid-a")
    assert payload.location == "Berlin"

    with pytest.raises(AlreadyClaimedError):
        registry.promote(profile.id, "uid-a")

    with session_scope(commit=False) as session:
        record = usernames.get(session, "djnova")
        account = accounts.get(session, "uid-a")
        stored = pending_profiles.get(session, profile.id)
    assert record is not None and not record.is_pending
    assert record.holder_id == "uid-a"
    assert record.reserved_for_email is None
    assert account is not None
    assert account.role == "dj"
    assert account.chat_username == "DJ Nova"
    assert account.chat_username_normalized == "djnova"
    assert account.dj_profile is not None and account.dj_profile["location"] == "Berlin"
    assert stored is not None and stored.status == "claimed"
    assert stored.claimed_by == "uid-a"


def test_promote_keeps_higher_roles(db) -> None:
    registry = UsernameRegistry()
    profile = registry.reserve("a@x.com", "DJ Nova")
    _account("uid-a", "a@x.com", role="broadcaster")
    registry.promote(profile.id, "uid-a")
    with session_scope(commit=False) as session:
        assert accounts.get(session, "uid-a").role == "broadcaster"


def test_promote_rejects_name_claimed_by_someone_else(db) -> None:
    registry = UsernameRegistry()
    profile = registry.reserve("a@x.com", "DJ Nova")
    _account("uid-a", "a@x.com")
    with session_scope() as session:
        usernames.mark_claimed(session, "djnova", "uid-other", "DJ Nova")

    with pytest.raises(UsernameTakenError):
        registry.promote(profile.id, "uid-a")
    with session_scope(commit=False) as session:
        assert pending_profiles.get(session, profile.id).status == "pending"


def test_promote_unknown_profile(db) -> None:
    with pytest.raises(NotFoundError):
        UsernameRegistry().promote("missing", "uid-a")


def test_release_removes_profile_reservation_and_role_grants(db) -> None:
    registry = UsernameRegistry()
    profile = registry.reserve("a@x.com", "DJ Nova")

    registry.release(profile.id)

    with session_scope(commit=False) as session:
        assert pending_profiles.get(session, profile.id) is None
        assert usernames.get(session, "djnova") is None
        assert pending_roles.find_by_email(session, "a@x.com") == []
    assert registry.classify("DJ Nova", "b@y.com").state is ClaimState.FREE
    registry.reserve("b@y.com", "DJ Nova")

    with pytest.raises(NotFoundError):
        registry.release(profile.id)


def test_release_leaves_foreign_reservation(db) -> None:
    registry = UsernameRegistry()
    profile = registry.reserve("a@x.com", "DJ Nova")
    with session_scope() as session:
        usernames.mark_claimed(session, "djnova", "uid-other", "DJ Nova")
    registry.release(profile.id)
    with session_scope(commit=False) as session:
        assert usernames.get(session, "djnova").holder_id == "uid-other"


def test_update_merges_and_keeps_photo(db) -> None:
    registry = UsernameRegistry()
    profile = registry.reserve(
        "a@x.com",
        "DJ Nova",
        DJProfileData(bio="old", photo_url="https://cdn/x.jpg", genres=["house"]),
    )

    updated = registry.update_pending_profile(
        profile.id,
        DJProfileData(bio="new", social_links=SocialLinks(instagram="djnova")),
    )

    assert updated.dj_profile["bio"] == "new"
    assert updated.dj_profile["photoUrl"] == "https://cdn/x.jpg"
    assert updated.dj_profile["genres"] == ["house"]
    assert updated.dj_profile["socialLinks"]["instagram"] == "djnova"


def test_update_rejects_claimed_profile(db) -> None:
    registry = UsernameRegistry()
    profile = registry.reserve("a@x.com", "DJ Nova")
    _account("uid-a", "a@x.com")
    registry.promote(profile.id, "uid-a")
    with pytest.raises(ProfileNotEditableError):
        registry.update_pending_profile(profile.id, DJProfileData(bio="late edit"))
    with pytest.raises(NotFoundError):
        registry.update_pending_profile("missing", DJProfileData())


def test_check_availability(db) -> None:
    registry = UsernameRegistry()
    assert registry.check_availability("DJ Nova").available
    assert registry.check_availability("mod").reason == "This username is reserved"
    assert registry.check_availability("a").reason == "Username must be 2-20 characters"
    assert registry.check_availability("dj/nova").reason == "Use letters, numbers, and single spaces only"
    registry.reserve("a@x.com", "DJ Nova")
    assert registry.check_availability("dj nova").reason == "Username is already taken"


def test_register_for_account_claims_and_promotes_own_reservation(db) -> None:
    registry = UsernameRegistry()
    _account("uid-b", "b@y.com")
    record = registry.register_for_account("uid-b", "Night Owl")
    assert not record.is_pending
    assert record.holder_id == "uid-b"
    assert registry.check_availability("Night Owl", "uid-b").owned

    profile = registry.reserve("a@x.com", "DJ Nova")
    _account("uid-a", "a@x.com")
    with pytest.raises(UsernameTakenError):
        registry.register_for_account("uid-b", "DJ Nova")
    claimed = registry.register_for_account("uid-a", "DJ Nova")
    assert claimed.holder_id == "uid-a"
    with session_scope(commit=False) as session:
        assert pending_profiles.get(session, profile.id).status == "claimed"
        assert accounts.get(session, "uid-a").role == "dj"


def test_claim_for_account_uses_account_email(db) -> None:
    registry = UsernameRegistry()
    profile = registry.reserve("a@x.com", "DJ Nova")
    _account("uid-a", "A@x.com")
    claimed, _ = registry.claim_for_account("uid-a")
    assert claimed.id == profile.id
    with pytest.raises(NotFoundError):
        registry.claim_for_account("uid-a")


def test_assign_dj_role(db) -> None:
    registry = UsernameRegistry()
    _account("uid-a", "a@x.com", role="user")
    assert registry.assign_dj_role("a@x.com").role_assigned

    first = registry.assign_dj_role("new@x.com")
    second = registry.assign_dj_role("new@x.com")
    assert first.pending_created and not second.pending_created
    with session_scope(commit=False) as session:
        assert len(pending_roles.find_by_email(session, "new@x.com")) == 1


def test_assign_dj_role_promotes_mixed_case_account(db) -> None:
    registry = UsernameRegistry()
    _account("uid-a", "Nova@X.com", role="user")

    result = registry.assign_dj_role("nova@x.com")

    assert result.existing_user
    assert result.role_assigned
    assert not result.pending_created
    with session_scope(commit=False) as session:
        assert accounts.get(session, "uid-a").role == "dj"
        assert pending_roles.find_by_email(session, "nova@x.com") == []


def test_transient_errors_are_retried_then_surface(db) -> None:
    attempts: list[int] = []

    @contextmanager
    def flaky_scope(*, commit: bool = True) -> Iterator[None]:
        attempts.append(1)
        raise OperationalError("UPDATE usernames", {}, Exception("database is locked"))
        yield  # pragma: no cover

    registry = UsernameRegistry(scope=flaky_scope, retries=2)
    with pytest.raises(TransientStoreError):
        registry.release("p1")
    assert len(attempts) == 3
