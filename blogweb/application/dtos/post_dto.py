from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from blogweb.domain.entities.post import PostEntity


class AuthorInfo(BaseModel):
    username: str | None = Field(None, description="Author display name")
    avatar_url: str | None = Field(None, description="Author avatar URL")


class PostItem(BaseModel):
    """A post as shown in the feed."""
    id: str = Field(..., description="Unique identifier of the post")
    user_id: str = Field(..., description="ID of the user who wrote the post")
    title: str = Field(..., description="Post title", examples=["Hello world"])
    content: str = Field(..., description="Post body")
    image_url: str | None = Field(None, description="Public URL of the attached image")
    created_at: datetime = Field(..., description="ISO timestamp when the post was created")
    author: AuthorInfo | None = Field(None, description="Author profile, null when the author has none yet")

    @classmethod
    def from_entity(cls, post: PostEntity) -> PostItem:
        author = None
        if post.author is not None:
            author = AuthorInfo(username=post.author.username, avatar_url=post.author.avatar_url)
        return cls(
            id=post.id,
            user_id=post.user_id,
            title=post.title,
            content=post.content,
            image_url=post.image_url,
            created_at=post.created_at,
            author=author,
        )


class ListPostsResponse(BaseModel):
    """Response model for the post feed."""
    posts: list[PostItem] = Field(..., description="Posts after search and image filtering")
    total: int = Field(..., description="Number of posts returned", ge=0)
    scope: str = Field(..., description="mine or all", examples=["mine"])
    order: str = Field(..., description="desc (newest first) or asc", examples=["desc"])
    empty_message: str | None = Field(None, description="Message to show when nothing matched")


class GenerateContentBody(BaseModel):
    title: str = Field("", description="Title the body should be written about")


class GenerateContentResponse(BaseModel):
    content: str = Field(..., description="Generated post body; empty when the service returned nothing usable")
