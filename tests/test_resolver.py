from __future__ import annotations

from channel_registry.resolver import ClaimState, classify_record
from channel_registry.schemas import UsernameRecord


def _pending(email: str | None, holder: str) -> UsernameRecord:
    return UsernameRecord(
        canonical_key="djnova",
        display_name="DJ Nova",
        holder_id=holder,
        reserved_for_email=email,
        is_pending=True,
    )


def test_free_when_no_record() -> None:
    result = classify_record("djnova", None, "a@x.com")
    assert result.state is ClaimState.FREE
    assert not result.is_conflict


def test_reserved_for_same_email_ignores_case() -> None:
    result = classify_record("djnova", _pending("a@x.com", "pending:a@x.com"), "A@X.com")
    assert result.state is ClaimState.RESERVED_FOR_THIS_EMAIL


def test_reserved_for_other_email() -> None:
    result = classify_record("djnova", _pending("a@x.com", "pending:a@x.com"), "b@y.com")
    assert result.state is ClaimState.RESERVED_FOR_OTHER
    assert result.is_conflict
    assert result.holder_id == "pending:a@x.com"


def test_missing_emails_never_match() -> None:
    record = _pending(None, "pending:p1")
    assert classify_record("djnova", record, None).state is ClaimState.RESERVED_FOR_OTHER
    own = classify_record("djnova", record, None, pending_holder_id="pending:p1")
    assert own.state is ClaimState.RESERVED_FOR_THIS_EMAIL


def test_firm_claim_is_always_a_conflict() -> None:
    record = UsernameRecord(canonical_key="djnova", display_name="DJ Nova", holder_id="uid-1")
    result = classify_record("djnova", record, "a@x.com")
    assert result.state is ClaimState.FIRMLY_CLAIMED
    assert result.describe() == "djnova (taken by uid: uid-1)"
