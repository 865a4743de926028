"""Domain models for username records, pending DJ profiles and role grants."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PendingStatus = Literal["pending", "claimed"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CustomLink(_CamelModel):
    label: str
    url: str


class IrlShow(_CamelModel):
    url: str
    date: str


class SocialLinks(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    instagram: Optional[str] = None
    soundcloud: Optional[str] = None
    bandcamp: Optional[str] = None
    youtube: Optional[str] = None
    booking_email: Optional[str] = None
    mixcloud: Optional[str] = None
    resident_advisor: Optional[str] = None
    website: Optional[str] = None
    custom_links: List[CustomLink] = Field(default_factory=list)


class MyRecs(_CamelModel):
    bandcamp_links: List[str] = Field(default_factory=list)
    event_links: List[str] = Field(default_factory=list)


class DJProfileData(_CamelModel):
    """Free-form creator profile payload carried by a pending profile."""

    bio: Optional[str] = None
    photo_url: Optional[str] = None
    location: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    promo_text: Optional[str] = None
    promo_hyperlink: Optional[str] = None
    social_links: SocialLinks = Field(default_factory=SocialLinks)
    irl_shows: List[IrlShow] = Field(default_factory=list)
    my_recs: MyRecs = Field(default_factory=MyRecs)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=False)

    @classmethod
    def from_document(cls, document: Optional[Dict[str, Any]]) -> "DJProfileData":
        return cls.model_validate(document or {})

    def merged_over(self, existing: Optional[Dict[str, Any]]) -> "DJProfileData":
        """Overlay this payload on ``existing``; omitted fields and a null photo keep stored values."""
        current = type(self).from_document(existing)
        updates = {
            name: getattr(current, name)
            for name in type(self).model_fields
            if name not in self.model_fields_set
        }
        if self.photo_url is None:
            updates["photo_url"] = current.photo_url
        return self.model_copy(update=updates)


class UsernameRecord(BaseModel):
    canonical_key: str
    display_name: str
    holder_id: str
    reserved_for_email: Optional[str] = None
    is_pending: bool = False
    claimed_at: datetime = Field(default_factory=_now)


class PendingProfile(BaseModel):
    id: str
    email: Optional[str] = None
    chat_username: Optional[str] = None
    chat_username_normalized: Optional[str] = None
    dj_name: Optional[str] = None
    status: PendingStatus = "pending"
    dj_profile: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_now)
    created_by: Optional[str] = None
    claimed_by: Optional[str] = None
    claimed_at: Optional[datetime] = None


class PendingRoleGrant(BaseModel):
    id: str
    email: str
    source: str
    role: str = "dj"
    pending_profile_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    consumed_at: Optional[datetime] = None


class Account(BaseModel):
    id: str
    email: str
    role: Optional[str] = None
    chat_username: Optional[str] = None
    chat_username_normalized: Optional[str] = None
    dj_profile: Optional[Dict[str, Any]] = None


def pending_holder_id(email: Optional[str], profile_id: str) -> str:
    return f"pending:{email}" if email else f"pending:{profile_id}"


__all__ = [
    "Account",
    "CustomLink",
    "DJProfileData",
    "IrlShow",
    "MyRecs",
    "PendingProfile",
    "PendingRoleGrant",
    "PendingStatus",
    "SocialLinks",
    "UsernameRecord",
    "pending_holder_id",
]
