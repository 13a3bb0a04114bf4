from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from blogweb.domain.entities.profile import ProfileEntity
from blogweb.infrastructure.database.repositories.profile_repository import ProfileRepository
from blogweb.infrastructure.storage.supabase_storage import SupabaseStorage, UploadedFile

logger = logging.getLogger(__name__)


@dataclass
class SaveProfileUseCase:
    storage: SupabaseStorage
    profiles: ProfileRepository

    def execute(
        self,
        user_id: str,
        username: str,
        image: UploadedFile | None = None,
        *,
        now: datetime | None = None,
    ) -> ProfileEntity:
        """
        Save the profile and mark setup as complete.

        The avatar is uploaded first; if either the upload or the upsert fails
        nothing is saved and the error propagates so the user can retry.
        """
        avatar_url = None
        if image is not None:
            avatar_url = self.storage.upload_avatar(image, now).url
        profile = self.profiles.upsert(
            user_id,
            username=username.strip(),
            avatar_url=avatar_url,
            setup_complete=True,
        )
        logger.info("Saved profile for %s", user_id)
        return profile
