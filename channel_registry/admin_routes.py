"""Admin endpoints for pre-registering, editing and deleting pending DJ profiles."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .auth import Caller, require_admin
from .config import Settings, get_settings
from .registry import ADMIN_SOURCE, registry
from .schemas import DJProfileData, PendingProfile

router = APIRouter(prefix="/api/admin/pending-dj-profiles", tags=["admin"])
logger = logging.getLogger(__name__)


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreatePendingProfileRequest(_Request):
    email: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    dj_profile: Optional[DJProfileData] = None


class UpdatePendingProfileRequest(_Request):
    profile_id: str = Field(..., min_length=1)
    dj_profile: DJProfileData


def _profile_payload(profile: PendingProfile) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "email": profile.email,
        "chatUsername": profile.chat_username,
        "chatUsernameNormalized": profile.chat_username_normalized,
        "status": profile.status,
        "djProfile": profile.dj_profile,
        "createdAt": profile.created_at.isoformat(),
        "createdBy": profile.created_by,
        "claimedBy": profile.claimed_by,
        "claimedAt": profile.claimed_at.isoformat() if profile.claimed_at else None,
    }


@router.post("")
def create_pending_profile(
    request: CreatePendingProfileRequest,
    caller: Caller = Depends(require_admin),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    profile = registry.reserve(
        request.email,
        request.username,
        request.dj_profile,
        created_by=caller.account_id,
        source=ADMIN_SOURCE,
    )
    return {
        "success": True,
        "profileId": profile.id,
        "email": profile.email,
        "username": profile.chat_username,
        "profileUrl": f"{settings.profile_url_prefix}{profile.chat_username_normalized}",
    }


@router.patch("")
def update_pending_profile(
    request: UpdatePendingProfileRequest,
    caller: Caller = Depends(require_admin),
) -> Dict[str, Any]:
    registry.update_pending_profile(request.profile_id, request.dj_profile)
    return {"success": True, "profileId": request.profile_id}


@router.delete("")
def delete_pending_profile(
    profile_id: str = Query(..., alias="profileId", min_length=1),
    caller: Caller = Depends(require_admin),
) -> Dict[str, Any]:
    registry.release(profile_id)
    logger.info("Pending profile %s deleted by %s", profile_id, caller.account_id)
    return {"success": True, "profileId": profile_id}


@router.get("")
def list_pending_profiles(
    status: Optional[Literal["pending", "claimed"]] = Query(default=None),
    caller: Caller = Depends(require_admin),
) -> List[Dict[str, Any]]:
    return [_profile_payload(profile) for profile in registry.list_pending_profiles(status)]


__all__ = ["router"]
