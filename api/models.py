"""
API request and response models for AuthGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

JSON field names are camelCase (fullName, userId) to match the public API;
Python attributes stay snake_case via aliases.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# One "@", no whitespace, a dot in the domain.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /auth/signup."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    # 72 is bcrypt's input limit; see auth/passwords.py.
    password: str = Field(min_length=8, max_length=72)
    full_name: str = Field(alias="fullName", min_length=2, max_length=255)


class SigninRequest(BaseModel):
    """Request body for POST /auth/signin.

    No length rules on password here: a signin attempt with a too-short
    password is just a wrong password, and must fail the same way.
    """

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(max_length=255)


class ProfileUpdate(BaseModel):
    """Request body for PUT /user/profile.

    extra="allow" keeps unknown keys (e.g. "email") in the dump so the
    ProfileService allow-list, not the transport layer, decides what is
    writable.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    full_name: Optional[str] = Field(default=None, alias="fullName", max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    """Public view of a user. There is no password field to leak."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    email: str
    full_name: str = Field(serialization_alias="fullName")
    avatar_url: Optional[str] = Field(default=None, serialization_alias="avatarUrl")
    is_active: bool = Field(default=True, serialization_alias="isActive")
    created_at: Optional[str] = Field(default=None, serialization_alias="createdAt")
    roles: list[str] = Field(default_factory=list)

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            avatar_url=user.avatar_url,
            is_active=user.is_active,
            created_at=user.created_at,
            roles=list(user.roles),
        )


class SignupResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user_id: str = Field(serialization_alias="userId")


class SigninResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: UserOut


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class SignoutAllResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    revoked: int


class ProfileResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserOut


class ProfileUpdateResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: UserOut


class ErrorDetail(BaseModel):
    """Machine-readable error payload. code is the ErrorKind value."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
