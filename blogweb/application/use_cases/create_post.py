from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from blogweb.domain.entities.post import PostEntity
from blogweb.domain.errors import BackendError, GenerationError, ValidationError
from blogweb.infrastructure.database.repositories.post_repository import PostRepository
from blogweb.infrastructure.generation.gemini_client import GeminiTextGenerator
from blogweb.infrastructure.storage.supabase_storage import SupabaseStorage, UploadedFile

logger = logging.getLogger(__name__)

TITLE_REQUIRED = "Please enter a title first."
TITLE_AND_CONTENT_REQUIRED = "Title and content required"
IMAGE_UPLOAD_FAILED = "Failed to upload image"


@dataclass
class PostComposer:
    """Form state for a new post: title, body and an optional image."""

    storage: SupabaseStorage
    posts: PostRepository
    generator: GeminiTextGenerator
    title: str = ""
    content: str = ""
    image: UploadedFile | None = None
    error: str | None = None
    on_created: Callable[[PostEntity], None] | None = None

    def generate_content(self) -> str:
        """Fill the body from the title; a failure leaves the form as it was."""
        if not self.title.strip():
            self.error = TITLE_REQUIRED
            raise ValidationError(self.error)
        self.error = None
        try:
            self.content = self.generator.generate(self.title)
        except GenerationError as exc:
            self.error = str(exc)
            raise
        return self.content

    def submit(self, user_id: str, *, now: datetime | None = None) -> PostEntity:
        self.error = None
        if not self.title.strip() or not self.content.strip():
            self.error = TITLE_AND_CONTENT_REQUIRED
            raise ValidationError(self.error)

        image_url = None
        if self.image is not None:
            try:
                image_url = self.storage.upload_post_image(user_id, self.image, now).url
            except BackendError as exc:
                logger.warning("Post image upload failed for %s: %s", user_id, exc)
                self.error = IMAGE_UPLOAD_FAILED
                raise BackendError(IMAGE_UPLOAD_FAILED) from exc
            except ValidationError as exc:
                self.error = str(exc)
                raise

        try:
            post = self.posts.create(user_id, self.title, self.content, image_url)
        except BackendError as exc:
            self.error = str(exc)
            raise

        self.clear()
        if self.on_created is not None:
            self.on_created(post)
        return post

    def clear(self) -> None:
        self.title = ""
        self.content = ""
        self.image = None
        self.error = None
