from __future__ import annotations

from pydantic import BaseModel, Field

from blogweb.domain.entities.profile import ProfileEntity
from blogweb.infrastructure.database.supabase_client import AuthSession


class CredentialsBody(BaseModel):
    """Email and password as typed into the credential form."""
    email: str = Field("", description="Email address", examples=["user@example.com"])
    password: str = Field("", description="Account password")


class RefreshBody(BaseModel):
    refresh_token: str = Field("", description="Refresh token issued at sign-in")


class SignUpResponse(BaseModel):
    """Response model for a successful sign-up."""
    user_id: str = Field(..., description="Unique identifier of the new user")
    email: str | None = Field(None, description="Email address of the new user")
    mode: str = Field("sign_in", description="Form mode to show next")
    message: str = Field(..., description="Human readable outcome")


class ProfileResponse(BaseModel):
    """Profile row of a user."""
    id: str = Field(..., description="User id the profile belongs to")
    username: str | None = Field(None, description="Display name", examples=["jane"])
    avatar_url: str | None = Field(None, description="Public URL of the avatar image")
    setup_complete: bool = Field(False, description="True once the profile setup was saved")

    @classmethod
    def from_entity(cls, profile: ProfileEntity) -> ProfileResponse:
        return cls(
            id=profile.id,
            username=profile.username,
            avatar_url=profile.avatar_url,
            setup_complete=profile.setup_complete,
        )


class SessionStateResponse(BaseModel):
    """What the session manager currently holds."""
    user_id: str | None = Field(None, description="Authenticated user id, null when signed out")
    email: str | None = Field(None, description="Authenticated user's email")
    profile: ProfileResponse | None = Field(None, description="Profile of the user, if one exists")
    needs_profile_setup: bool = Field(False, description="True while the profile setup overlay must be shown")


class SessionTokensResponse(SessionStateResponse):
    """Tokens of a freshly issued or refreshed session plus the session state."""
    access_token: str = Field(..., description="Bearer token for subsequent requests")
    refresh_token: str | None = Field(None, description="Token used to obtain a new access token")
    token_type: str = Field("bearer", description="Token type")
    expires_at: int | None = Field(None, description="Expiry as unix seconds")

    @classmethod
    def build(cls, session: AuthSession, state: SessionStateResponse) -> SessionTokensResponse:
        return cls(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_at=session.expires_at,
            **state.model_dump(),
        )
