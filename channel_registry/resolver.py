"""Read-only classification of a canonical key against its registry record."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .normalization import emails_match
from .schemas import UsernameRecord


class ClaimState(str, Enum):
    FREE = "free"
    RESERVED_FOR_THIS_EMAIL = "reserved_for_this_email"
    RESERVED_FOR_OTHER = "reserved_for_other"
    FIRMLY_CLAIMED = "firmly_claimed"


@dataclass(frozen=True)
class Classification:
    state: ClaimState
    canonical_key: str
    holder_id: Optional[str] = None
    record: Optional[UsernameRecord] = None

    @property
    def is_conflict(self) -> bool:
        return self.state in (ClaimState.RESERVED_FOR_OTHER, ClaimState.FIRMLY_CLAIMED)

    def describe(self) -> str:
        if self.state is ClaimState.FIRMLY_CLAIMED:
            return f"{self.canonical_key} (taken by uid: {self.holder_id})"
        if self.state is ClaimState.RESERVED_FOR_OTHER:
            return f"{self.canonical_key} (reserved for {self.holder_id})"
        return self.canonical_key


def classify_record(
    canonical_key: str,
    record: Optional[UsernameRecord],
    email: Optional[str],
    *,
    pending_holder_id: Optional[str] = None,
) -> Classification:
    """Classify ``record`` for a requester identified by ``email``.

    ``pending_holder_id`` lets profiles without an email recognise their own
    ``pending:<id>`` reservation.
    """
    if record is None:
        return Classification(ClaimState.FREE, canonical_key)
    if not record.is_pending:
        return Classification(ClaimState.FIRMLY_CLAIMED, canonical_key, record.holder_id, record)
    own_email = emails_match(record.reserved_for_email, email)
    own_holder = (
        pending_holder_id is not None
        and not record.reserved_for_email
        and record.holder_id == pending_holder_id
    )
    if own_email or own_holder:
        return Classification(ClaimState.RESERVED_FOR_THIS_EMAIL, canonical_key, record.holder_id, record)
    return Classification(ClaimState.RESERVED_FOR_OTHER, canonical_key, record.holder_id, record)


__all__ = ["ClaimState", "Classification", "classify_record"]
