from __future__ import annotations

from fastapi import APIRouter, Depends, status

from blogweb.application.dtos.auth_dto import (
    CredentialsBody,
    ProfileResponse,
    RefreshBody,
    SessionStateResponse,
    SessionTokensResponse,
    SignUpResponse,
)
from blogweb.application.dtos.common_dto import ErrorResponse
from blogweb.application.use_cases.credential_form import AuthMode, CredentialForm
from blogweb.application.use_cases.session_manager import SessionManager
from blogweb.infrastructure.api.dependencies import (
    get_access_token,
    get_auth_adapter,
    get_current_user,
    get_profile_repo,
)
from blogweb.infrastructure.database.repositories.profile_repository import ProfileRepository
from blogweb.infrastructure.database.supabase_client import SupabaseAuthAdapter

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request - Missing field or rejected by Supabase"},
        401: {"model": ErrorResponse, "description": "Unauthorized - Invalid credentials or token"},
    },
)


def _state(manager: SessionManager) -> SessionStateResponse:
    identity = manager.identity
    return SessionStateResponse(
        user_id=identity.id if identity else None,
        email=identity.email if identity else None,
        profile=ProfileResponse.from_entity(manager.profile) if manager.profile else None,
        needs_profile_setup=manager.needs_profile_setup,
    )


@router.post(
    "/sign-up",
    response_model=SignUpResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Sign Up",
    description="""
    Register a new account with email and password.

    On success the form switches to sign-in mode; the user signs in next.
    Supabase error messages (duplicate email, weak password) are returned verbatim.
    """,
)
def sign_up(
    body: CredentialsBody,
    auth: SupabaseAuthAdapter = Depends(get_auth_adapter),
):
    """Register a new user."""
    form = CredentialForm(auth, mode=AuthMode.SIGN_UP)
    result = form.submit(body.email, body.password)
    return SignUpResponse(
        user_id=result.identity.id,
        email=result.identity.email,
        mode=form.mode.value,
        message="Account created. Please sign in.",
    )


@router.post(
    "/sign-in",
    response_model=SessionTokensResponse,
    summary="Sign In",
    description="""
    Sign in with email and password.

    Returns the session tokens together with the session state, including
    whether the profile setup still has to be completed.
    """,
)
def sign_in(
    body: CredentialsBody,
    auth: SupabaseAuthAdapter = Depends(get_auth_adapter),
    profiles: ProfileRepository = Depends(get_profile_repo),
):
    """Sign in and report the resulting session."""
    with SessionManager(auth, profiles) as manager:
        result = CredentialForm(auth, mode=AuthMode.SIGN_IN).submit(body.email, body.password)
        return SessionTokensResponse.build(result.session, _state(manager))


@router.post(
    "/refresh",
    response_model=SessionTokensResponse,
    summary="Refresh Session",
    description="Exchange a refresh token for a new session.",
)
def refresh(
    body: RefreshBody,
    auth: SupabaseAuthAdapter = Depends(get_auth_adapter),
    profiles: ProfileRepository = Depends(get_profile_repo),
):
    """Refresh the session tokens."""
    with SessionManager(auth, profiles) as manager:
        session = auth.refresh(body.refresh_token)
        return SessionTokensResponse.build(session, _state(manager))


@router.get(
    "/session",
    response_model=SessionStateResponse,
    summary="Current Session",
    description="""
    Identity and profile behind the bearer token.

    `needs_profile_setup` is true while the user has no profile or has not
    completed the profile setup.

    **Authentication required**: Yes (Bearer token)
    """,
)
def get_session(
    token: str = Depends(get_access_token),
    user=Depends(get_current_user),
    auth: SupabaseAuthAdapter = Depends(get_auth_adapter),
    profiles: ProfileRepository = Depends(get_profile_repo),
):
    """Get the current session state."""
    with SessionManager(auth, profiles) as manager:
        manager.load(token)
        return _state(manager)


@router.post(
    "/sign-out",
    response_model=SessionStateResponse,
    summary="Sign Out",
    description="""
    End the session behind the bearer token. The returned state is empty.

    **Authentication required**: Yes (Bearer token)
    """,
)
def sign_out(
    token: str = Depends(get_access_token),
    user=Depends(get_current_user),
    auth: SupabaseAuthAdapter = Depends(get_auth_adapter),
    profiles: ProfileRepository = Depends(get_profile_repo),
):
    """Sign out and clear the session."""
    with SessionManager(auth, profiles) as manager:
        manager.load(token)
        manager.sign_out()
        return _state(manager)
