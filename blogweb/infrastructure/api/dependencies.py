from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import HTTPConnection

from blogweb.domain.errors import AuthenticationError
from blogweb.infrastructure.database.repositories.message_repository import MessageRepository
from blogweb.infrastructure.database.repositories.post_repository import PostRepository
from blogweb.infrastructure.database.repositories.profile_repository import ProfileRepository
from blogweb.infrastructure.database.supabase_client import Backend, SupabaseAuthAdapter, UserInfo
from blogweb.infrastructure.generation.gemini_client import GeminiTextGenerator
from blogweb.infrastructure.storage.supabase_storage import SupabaseStorage

_bearer_scheme = HTTPBearer(auto_error=False)


def get_backend(connection: HTTPConnection) -> Backend:
    return connection.app.state.backend


def get_text_generator(connection: HTTPConnection) -> GeminiTextGenerator:
    return connection.app.state.generator


def get_auth_adapter(backend: Annotated[Backend, Depends(get_backend)]) -> SupabaseAuthAdapter:
    return SupabaseAuthAdapter(backend)


def get_optional_access_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(_bearer_scheme)] = None,
) -> str | None:
    if not credentials or not credentials.scheme or credentials.scheme.lower() != "bearer":
        return None
    return credentials.credentials or None


def get_access_token(token: Annotated[str | None, Depends(get_optional_access_token)]) -> str:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    return token


def get_current_user(
    token: Annotated[str, Depends(get_access_token)],
    auth: Annotated[SupabaseAuthAdapter, Depends(get_auth_adapter)],
) -> UserInfo:
    try:
        return auth.validate_token(token)
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))


def get_user_backend(
    backend: Annotated[Backend, Depends(get_backend)],
    token: Annotated[str | None, Depends(get_optional_access_token)],
) -> Backend:
    """Table and storage access made as the caller, so row-level security applies."""
    return backend.for_user(token)


def get_storage(backend: Annotated[Backend, Depends(get_user_backend)]) -> SupabaseStorage:
    return SupabaseStorage(backend)


def get_profile_repo(backend: Annotated[Backend, Depends(get_user_backend)]) -> ProfileRepository:
    return ProfileRepository(backend)


def get_post_repo(backend: Annotated[Backend, Depends(get_user_backend)]) -> PostRepository:
    return PostRepository(backend)


def get_message_repo(backend: Annotated[Backend, Depends(get_user_backend)]) -> MessageRepository:
    return MessageRepository(backend)
