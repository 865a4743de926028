"""Self-service endpoints: username availability, registration, profile claim and role assignment."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from .auth import Caller, get_current_caller
from .registry import availability_payload, registry

chat_router = APIRouter(prefix="/api/chat", tags=["chat"])
users_router = APIRouter(prefix="/api/users", tags=["users"])
logger = logging.getLogger(__name__)


class RegisterUsernameRequest(BaseModel):
    username: str = Field(..., min_length=1)


class AssignRoleRequest(BaseModel):
    email: str = Field(..., min_length=1)


@chat_router.get("/check-username")
def check_username(
    username: str = Query(..., min_length=1),
    user_id: Optional[str] = Query(default=None, alias="userId"),
) -> Dict[str, Any]:
    return availability_payload(registry.check_availability(username, user_id))


@chat_router.post("/register-username")
def register_username(
    request: RegisterUsernameRequest,
    caller: Caller = Depends(get_current_caller),
) -> Dict[str, Any]:
    record = registry.register_for_account(caller.account_id, request.username)
    return {"success": True, "username": record.display_name}


@users_router.post("/claim-dj-profile")
def claim_dj_profile(caller: Caller = Depends(get_current_caller)) -> Dict[str, Any]:
    profile, payload = registry.claim_for_account(caller.account_id)
    return {"success": True, "profileId": profile.id, "djProfile": payload.to_document()}


@users_router.post("/assign-dj-role")
def assign_dj_role(request: AssignRoleRequest) -> Dict[str, Any]:
    result = registry.assign_dj_role(request.email)
    response: Dict[str, Any] = {"success": True, "existingUser": result.existing_user}
    if result.existing_user:
        response["roleAssigned"] = result.role_assigned
    else:
        response["pendingCreated"] = result.pending_created
    return response


__all__ = ["chat_router", "users_router"]
