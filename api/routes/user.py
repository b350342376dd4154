"""
api/routes/user.py -- The caller's own profile.

Routes:
  GET /user/profile -- current profile (requires auth)
  PUT /user/profile -- update fullName (requires auth)

The user id always comes from the verified access token, never from the
request, so there is no way to address another user's profile here.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import ProfileResponse, ProfileUpdate, ProfileUpdateResponse, UserOut
from auth.dependencies import get_current_user
from auth.models import User
from auth.profile import ProfileService
from core.audit import audit_event

router = APIRouter()


def _service(request: Request) -> ProfileService:
    return request.app.state.profile_service


@router.get("/user/profile", response_model=ProfileResponse)
def get_profile(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    user = _service(request).get_profile(current_user.id)
    return JSONResponse(content=ProfileResponse(user=UserOut.from_user(user)).model_dump(by_alias=True))


@router.put("/user/profile", response_model=ProfileUpdateResponse)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Update the permitted profile fields. Other keys in the body are ignored."""
    updates = body.model_dump(exclude_unset=True)
    user = _service(request).update_profile(current_user.id, updates)
    audit_event("user.profile_update", user_id=current_user.id, fields=sorted(updates))
    return JSONResponse(
        content=ProfileUpdateResponse(message="Profile updated successfully", user=UserOut.from_user(user)).model_dump(
            by_alias=True
        )
    )
