from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from blogweb.application.dtos.auth_dto import ProfileResponse
from blogweb.application.dtos.common_dto import ErrorResponse
from blogweb.application.use_cases.save_profile import SaveProfileUseCase
from blogweb.infrastructure.api.dependencies import get_current_user, get_profile_repo, get_storage
from blogweb.infrastructure.api.uploads import read_upload
from blogweb.infrastructure.database.repositories.profile_repository import ProfileRepository
from blogweb.infrastructure.storage.supabase_storage import SupabaseStorage

router = APIRouter(
    prefix="/profile",
    tags=["Profile"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request - Invalid image or rejected by Supabase"},
        401: {"model": ErrorResponse, "description": "Unauthorized - Invalid or missing authentication token"},
    },
)


@router.put(
    "",
    response_model=ProfileResponse,
    status_code=status.HTTP_200_OK,
    summary="Save Profile",
    description="""
    Save the display name and optional avatar, completing the profile setup.

    The avatar is uploaded to the `avatars` bucket first; the profile row is
    then written keyed by the user id, so repeated saves replace it.

    **Authentication required**: Yes (Bearer token)
    """,
)
async def save_profile(
    username: str = Form("", description="Display name"),
    image: UploadFile | None = File(None, description="Optional avatar image"),
    user=Depends(get_current_user),
    storage: SupabaseStorage = Depends(get_storage),
    profiles: ProfileRepository = Depends(get_profile_repo),
):
    """Save the current user's profile."""
    upload = await read_upload(image)
    uc = SaveProfileUseCase(storage=storage, profiles=profiles)
    profile = await asyncio.to_thread(uc.execute, user.id, username, upload)
    return ProfileResponse.from_entity(profile)
