"""Repair tasks: per-job behaviour, idempotence and order independence."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from channel_registry.config import get_settings
from channel_registry.db.base import Base
from channel_registry.db.session import session_scope
from channel_registry.errors import NotFoundError
from channel_registry.repairs import available_repairs, chunked, get_repair, pipeline_order, run_pipeline, run_repair
from channel_registry.repositories import accounts, pending_profiles, pending_roles, usernames
from channel_registry.schemas import PendingProfile, UsernameRecord

PROFILE_TASKS = ["legacy-ids", "missing-fields", "display-names", "registry-backfill", "instagram-handles"]
CREATED_AT = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _profile(
    profile_id: str,
    chat_username: Optional[str],
    normalized: Optional[str] = None,
    *,
    email: Optional[str] = None,
    dj_name: Optional[str] = None,
    status: str = "pending",
    instagram: Optional[str] = None,
) -> None:
    dj_profile: Dict[str, Any] = {"bio": f"bio for {profile_id}"}
    if instagram is not None:
        dj_profile["socialLinks"] = {"instagram": instagram, "soundcloud": "sc"}
    with session_scope() as session:
        pending_profiles.create(
            session,
            PendingProfile(
                id=profile_id,
                email=email,
                chat_username=chat_username,
                chat_username_normalized=normalized,
                dj_name=dj_name,
                status=status,
                dj_profile=dj_profile,
                created_at=CREATED_AT,
            ),
        )


def _get(profile_id: str) -> Optional[PendingProfile]:
    with session_scope(commit=False) as session:
        return pending_profiles.get(session, profile_id)


def _seed_drifted_store() -> None:
    _profile(
        "dj-nova",
        "DJ-Nova",
        "dj-nova",
        email="a@x.com",
        instagram="https://www.instagram.com/djnova/?hl=en",
    )
    _profile("copy", "COPYPASTE w/ KLS.RDR", "copypastewklsrdr", email="c@x.com")
    _profile("blank", None, None, email="n@x.com", dj_name="Night Owl")
    _profile("luna-b", "Luna B", None, email="l@x.com")
    _profile("lunab", "Luna B", "lunab", email="l@x.com")
    _profile("taken", "Taken Name", "takenname", email="t@x.com")
    _profile("claimed1", "Old Name", "oldname", email="o@x.com", status="claimed")
    with session_scope() as session:
        usernames.insert(
            session,
            UsernameRecord(canonical_key="takenname", display_name="Taken Name", holder_id="uid-1"),
        )
        pending_roles.create(session, "a@x.com", "admin-pre-register", pending_profile_id="dj-nova")


def _snapshot() -> Dict[str, Any]:
    with session_scope(commit=False) as session:
        profiles = [
            profile.model_dump(exclude={"created_at"}) for profile in pending_profiles.list_all(session)
        ]
        records = [record.model_dump(exclude={"claimed_at"}) for record in usernames.list_all(session)]
    return {
        "profiles": sorted(profiles, key=lambda profile: profile["id"]),
        "usernames": records,
    }


def test_tasks_are_registered_in_pipeline_order() -> None:
    assert pipeline_order() == PROFILE_TASKS + ["account-usernames"]
    assert [task.name for task in available_repairs()] == pipeline_order()
    with pytest.raises(NotFoundError):
        get_repair("orphaned-favorites")


def test_legacy_id_migration_moves_or_drops_duplicates(db) -> None:
    _seed_drifted_store()

    tally = run_repair("legacy-ids")

    assert tally.fixed == 2
    assert tally.already_correct == 5
    assert _get("dj-nova") is None and _get("luna-b") is None
    moved = _get("djnova")
    assert moved is not None
    assert moved.chat_username == "DJ-Nova"
    assert moved.chat_username_normalized == "djnova"
    assert moved.email == "a@x.com"
    assert moved.dj_profile["bio"] == "bio for dj-nova"
    assert _get("lunab") is not None
    with session_scope(commit=False) as session:
        grants = pending_roles.find_by_email(session, "a@x.com")
    assert [grant.pending_profile_id for grant in grants] == ["djnova"]


def test_missing_field_backfill_prefers_display_sources(db) -> None:
    _profile("a1", None, "nightowl")
    _profile("a2", None, None, dj_name="Night Owl")
    _profile("a3", "Luna B", None)
    _profile("a4", "DJ-Nova", "dj-nova")
    _profile("a5", None, None)

    tally = run_repair("missing-fields")

    assert tally.fixed == 5
    assert _get("a1").chat_username == "nightowl"
    assert (_get("a2").chat_username, _get("a2").chat_username_normalized) == ("Night Owl", "nightowl")
    assert _get("a3").chat_username_normalized == "lunab"
    assert _get("a4").chat_username_normalized == "djnova"
    assert (_get("a5").chat_username, _get("a5").chat_username_normalized) == ("a5", "a5")


def test_invalid_display_name_repair_keeps_normalized_key(db) -> None:
    _profile("copy", "COPYPASTE w/ KLS.RDR", "copypastewklsrdr", email="c@x.com")
    _profile("fine", "DJ Nova", "djnova")

    tally = run_repair("display-names")

    repaired = _get("copy")
    assert repaired.chat_username == "copypastewklsrdr"
    assert repaired.chat_username_normalized == "copypastewklsrdr"
    assert tally.fixed == 1
    assert tally.already_correct == 1


def test_registry_backfill_creates_syncs_and_reports_conflicts(db) -> None:
    _seed_drifted_store()
    with session_scope() as session:
        usernames.insert(
            session,
            UsernameRecord(
                canonical_key="copypastewklsrdr",
                display_name="stale",
                holder_id="pending:c@x.com",
                reserved_for_email="c@x.com",
                is_pending=True,
            ),
        )

    tally = run_repair("registry-backfill")

    assert tally.total == 6
    assert tally.created == 3
    assert tally.fixed == 1
    assert tally.skipped == 1
    assert [issue.document_id for issue in tally.conflicts] == ["taken"]
    assert tally.conflicts[0].message == "takenname (taken by uid: uid-1)"
    with session_scope(commit=False) as session:
        assert usernames.get(session, "copypastewklsrdr").display_name == "copypastewklsrdr"
        assert usernames.get(session, "takenname").holder_id == "uid-1"
        nova = usernames.get(session, "djnova")
        assert nova.is_pending and nova.reserved_for_email == "a@x.com"
        assert usernames.get(session, "nightowl").display_name == "Night Owl"
        assert usernames.get(session, "oldname") is None


def test_registry_backfill_holder_without_email(db) -> None:
    _profile("solo", "Solo Act", "soloact")
    assert run_repair("registry-backfill").created == 1
    assert run_repair("registry-backfill").already_correct == 1
    with session_scope(commit=False) as session:
        record = usernames.get(session, "soloact")
    assert record.holder_id == "pending:solo"
    assert record.reserved_for_email is None


def test_instagram_handles_are_extracted(db) -> None:
    _profile("p1", "One", instagram="https://instagram.com/djone/")
    _profile("p2", "Two", instagram="djtwo")
    _profile("p3", "Three")
    _profile("p4", "Four", instagram="@djfour")
    _profile("p5", "Five", instagram="HTTPS://WWW.INSTAGRAM.COM/djfive")

    tally = run_repair("instagram-handles")

    assert (tally.fixed, tally.already_correct) == (2, 3)
    social = _get("p1").dj_profile["socialLinks"]
    assert social == {"instagram": "djone", "soundcloud": "sc"}
    assert _get("p4").dj_profile["socialLinks"]["instagram"] == "@djfour"
    assert _get("p5").dj_profile["socialLinks"]["instagram"] == "djfive"


def test_failures_are_isolated_per_document(db) -> None:
    _profile("---", None, None)
    _profile("ok", "Okay Name", None)

    tally = run_repair("missing-fields")

    assert tally.fixed == 1
    assert [issue.document_id for issue in tally.errors] == ["---"]
    assert _get("ok").chat_username_normalized == "okayname"


def test_repairs_are_idempotent(db) -> None:
    _seed_drifted_store()
    run_pipeline(PROFILE_TASKS)

    second = run_pipeline(PROFILE_TASKS)

    for tally in second:
        assert tally.fixed == 0, tally.task
        assert tally.created == 0, tally.task
        assert tally.errors == [], tally.task


def test_pipeline_order_does_not_change_final_store(db) -> None:
    _seed_drifted_store()
    forward = run_pipeline(PROFILE_TASKS)
    forward_state = _snapshot()

    Base.metadata.drop_all(db)
    Base.metadata.create_all(db)
    _seed_drifted_store()
    run_pipeline(list(reversed(PROFILE_TASKS)))
    reverse_state = _snapshot()

    assert forward_state == reverse_state
    assert {profile["id"] for profile in forward_state["profiles"]} == {
        "djnova",
        "copy",
        "blank",
        "lunab",
        "taken",
        "claimed1",
    }
    assert all(not tally.errors for tally in forward)


def test_account_usernames_commit_in_bounded_batches(db, monkeypatch) -> None:
    monkeypatch.setenv("CHANNEL_MAX_BATCH_WRITES", "2")
    get_settings.cache_clear()
    with session_scope() as session:
        for index in range(5):
            accounts.create(session, f"uid-{index}", f"user{index}@x.com")
            accounts.apply_claim(
                session,
                f"uid-{index}",
                chat_username=f"DJ-Name {index}",
                chat_username_normalized=f"dj-name{index}",
            )
        accounts.create(session, "uid-ok", "ok@x.com")
        accounts.apply_claim(session, "uid-ok", chat_username="Okay", chat_username_normalized="okay")

    batches: List[int] = []
    original = accounts.set_normalized_usernames

    def recording(session, updates):
        batch = list(updates)
        batches.append(len(batch))
        return original(session, batch)

    monkeypatch.setattr(accounts, "set_normalized_usernames", recording)

    tally = run_repair("account-usernames")

    assert batches == [2, 2, 1]
    assert (tally.total, tally.fixed, tally.already_correct) == (6, 5, 1)
    with session_scope(commit=False) as session:
        assert accounts.get(session, "uid-3").chat_username_normalized == "djname3"


def test_chunked_respects_size() -> None:
    assert [len(batch) for batch in chunked(range(1001), 500)] == [500, 500, 1]
    assert list(chunked([], 500)) == []
    with pytest.raises(ValueError):
        list(chunked([1], 0))
