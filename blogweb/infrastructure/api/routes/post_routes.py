from __future__ import annotations

import asyncio
from enum import Enum

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from blogweb.application.dtos.common_dto import ErrorResponse
from blogweb.application.dtos.post_dto import (
    GenerateContentBody,
    GenerateContentResponse,
    ListPostsResponse,
    PostItem,
)
from blogweb.application.use_cases.create_post import PostComposer
from blogweb.application.use_cases.post_feed import FeedScope, PostFeed
from blogweb.domain.services.feed_filter import FeedFilter
from blogweb.infrastructure.api.dependencies import (
    get_current_user,
    get_post_repo,
    get_storage,
    get_text_generator,
)
from blogweb.infrastructure.api.uploads import read_upload
from blogweb.infrastructure.database.repositories.post_repository import PostRepository
from blogweb.infrastructure.generation.gemini_client import GeminiTextGenerator
from blogweb.infrastructure.storage.supabase_storage import SupabaseStorage

router = APIRouter(
    prefix="/posts",
    tags=["Posts"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request - Missing field or rejected by Supabase"},
        401: {"model": ErrorResponse, "description": "Unauthorized - Invalid or missing authentication token"},
    },
)


class SortOrder(str, Enum):
    DESC = "desc"
    ASC = "asc"


@router.post(
    "/generate",
    response_model=GenerateContentResponse,
    summary="Generate Post Body",
    description="""
    Draft a post body from its title with Gemini.

    An empty title is rejected without calling the service. A failing or
    unreachable service answers 502 with a generic message.

    **Authentication required**: Yes (Bearer token)
    """,
    responses={502: {"model": ErrorResponse, "description": "Bad Gateway - Content generation failed"}},
)
def generate_content(
    body: GenerateContentBody,
    user=Depends(get_current_user),
    storage: SupabaseStorage = Depends(get_storage),
    posts: PostRepository = Depends(get_post_repo),
    generator: GeminiTextGenerator = Depends(get_text_generator),
):
    """Generate a post body for the given title."""
    composer = PostComposer(storage=storage, posts=posts, generator=generator, title=body.title)
    return GenerateContentResponse(content=composer.generate_content())


@router.post(
    "",
    response_model=PostItem,
    status_code=status.HTTP_201_CREATED,
    summary="Create Post",
    description="""
    Publish a post. Title and content are required; an optional image is
    uploaded to the `post-images` bucket and linked from the post.

    **Authentication required**: Yes (Bearer token)
    """,
)
async def create_post(
    title: str = Form("", description="Post title"),
    content: str = Form("", description="Post body"),
    image: UploadFile | None = File(None, description="Optional image attachment"),
    user=Depends(get_current_user),
    storage: SupabaseStorage = Depends(get_storage),
    posts: PostRepository = Depends(get_post_repo),
    generator: GeminiTextGenerator = Depends(get_text_generator),
):
    """Create a new post for the current user."""
    composer = PostComposer(
        storage=storage,
        posts=posts,
        generator=generator,
        title=title,
        content=content,
        image=await read_upload(image),
    )
    post = await asyncio.to_thread(composer.submit, user.id)
    return PostItem.from_entity(post)


@router.get(
    "",
    response_model=ListPostsResponse,
    summary="List Posts",
    description="""
    The post feed: the user's own posts or everyone's, ordered by creation time.

    **Features:**
    - `scope`: `mine` (default) or `all`
    - `order`: `desc` (newest first, default) or `asc`
    - `search`: case-insensitive match on title or content
    - `images_only`: keep only posts with an image

    **Authentication required**: Yes (Bearer token)
    """,
)
async def list_posts(
    user=Depends(get_current_user),
    posts: PostRepository = Depends(get_post_repo),
    scope: FeedScope = Query(FeedScope.MINE, description="mine or all"),
    order: SortOrder = Query(SortOrder.DESC, description="desc (newest first) or asc"),
    search: str = Query("", description="Free-text search over title and content"),
    images_only: bool = Query(False, description="Only posts with an image"),
):
    """Get the post feed."""
    feed = PostFeed(posts, user.id, scope=scope, newest_first=order is SortOrder.DESC)
    await feed.reload()
    feed_filter = FeedFilter(search=search, images_only=images_only)
    items = [PostItem.from_entity(p) for p in feed.visible(feed_filter)]
    return ListPostsResponse(
        posts=items,
        total=len(items),
        scope=feed.scope.value,
        order=order.value,
        empty_message=feed.empty_message(feed_filter),
    )
