"""Direct messages: peer list, conversation history and the live conversation socket."""
from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import uuid

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from blogweb.application.dtos.common_dto import ErrorResponse
from blogweb.application.dtos.message_dto import (
    ConversationResponse,
    ListPeersResponse,
    MessageItem,
    PeerItem,
    SendMessageBody,
)
from blogweb.application.use_cases.direct_messages import DirectMessagePanel
from blogweb.domain.errors import AuthenticationError, BackendError, ValidationError
from blogweb.infrastructure.api.dependencies import (
    get_backend,
    get_current_user,
    get_message_repo,
    get_profile_repo,
)
from blogweb.infrastructure.database.repositories.message_repository import MessageRepository
from blogweb.infrastructure.database.repositories.profile_repository import ProfileRepository
from blogweb.infrastructure.database.supabase_client import Backend, SupabaseAuthAdapter

router = APIRouter(
    prefix="/messages",
    tags=["Direct Messages"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized - Invalid or missing authentication token"},
    },
)
logger = logging.getLogger(__name__)


@router.get(
    "/peers",
    response_model=ListPeersResponse,
    summary="List Chat Peers",
    description="Every user with a profile except the caller.",
)
async def list_peers(
    user=Depends(get_current_user),
    backend: Backend = Depends(get_backend),
    profiles: ProfileRepository = Depends(get_profile_repo),
    messages: MessageRepository = Depends(get_message_repo),
):
    """Get the users the caller can message."""
    async with DirectMessagePanel(user.id, profiles, messages, backend.realtime) as panel:
        peers = await panel.open()
    return ListPeersResponse(peers=[PeerItem.from_entity(p) for p in peers])


@router.get(
    "/{peer_id}",
    response_model=ConversationResponse,
    summary="Get Conversation",
    description="Messages exchanged with one peer in either direction, oldest first.",
)
async def get_conversation(
    peer_id: uuid.UUID,
    user=Depends(get_current_user),
    backend: Backend = Depends(get_backend),
    profiles: ProfileRepository = Depends(get_profile_repo),
    messages: MessageRepository = Depends(get_message_repo),
):
    """Get the conversation with a peer."""
    async with DirectMessagePanel(user.id, profiles, messages, backend.realtime) as panel:
        await panel.open()
        history = await panel.select_peer(str(peer_id), live=False)
        peer = PeerItem.from_entity(panel.peer)
    return ConversationResponse(peer=peer, messages=[MessageItem.from_entity(m) for m in history])


@router.post(
    "/{peer_id}",
    response_model=MessageItem,
    status_code=status.HTTP_201_CREATED,
    summary="Send Message",
    description="""
    Send a message to a peer. Open conversation sockets of both participants
    receive it through the realtime feed.
    """,
    responses={400: {"model": ErrorResponse, "description": "Bad Request - Empty message or rejected by Supabase"}},
)
async def send_message(
    peer_id: uuid.UUID,
    body: SendMessageBody,
    user=Depends(get_current_user),
    backend: Backend = Depends(get_backend),
    profiles: ProfileRepository = Depends(get_profile_repo),
    messages: MessageRepository = Depends(get_message_repo),
):
    """Send a direct message."""
    async with DirectMessagePanel(user.id, profiles, messages, backend.realtime) as panel:
        message = await panel.send(body.content, peer_id=str(peer_id))
    return MessageItem.from_entity(message)


async def _forward_incoming(websocket: WebSocket, panel: DirectMessagePanel) -> None:
    try:
        async for message in panel.incoming():
            await websocket.send_json(
                {"type": "message", "message": MessageItem.from_entity(message).model_dump(mode="json")}
            )
    except WebSocketDisconnect:
        logger.debug("Conversation socket went away while forwarding")


@router.websocket("/{peer_id}/ws")
async def conversation_socket(
    websocket: WebSocket,
    peer_id: uuid.UUID,
    token: str | None = Query(None),
    backend: Backend = Depends(get_backend),
) -> None:
    """Live conversation with one peer.

    Sends a ``history`` frame, then a ``message`` frame for every new message
    in either direction. Accepts ``{"type": "send", "content": ...}`` and
    ``{"type": "ping"}``. The realtime subscription lives exactly as long as
    the socket. A malformed peer id closes the socket with 1008.
    """
    try:
        user = SupabaseAuthAdapter(backend).validate_token(token or "")
    except AuthenticationError as exc:
        logger.info("Rejected conversation socket: %s", exc)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    user_backend = backend.for_user(token)
    panel = DirectMessagePanel(
        user.id,
        ProfileRepository(user_backend),
        MessageRepository(user_backend),
        backend.realtime,
        access_token=token,
    )
    forward: asyncio.Task | None = None
    logger.info("Conversation socket %s <-> %s opened", user.id, peer_id)
    try:
        await panel.open()
        history = await panel.select_peer(str(peer_id))
        await websocket.send_json(
            {
                "type": "history",
                "peer": PeerItem.from_entity(panel.peer).model_dump(mode="json"),
                "messages": [MessageItem.from_entity(m).model_dump(mode="json") for m in history],
            }
        )
        forward = asyncio.create_task(_forward_incoming(websocket, panel))
        while True:
            raw = await websocket.receive_text()
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                payload = {"type": raw}
            if not isinstance(payload, dict):
                payload = {}

            message_type = (payload.get("type") or "").lower()
            if message_type == "ping":
                await websocket.send_json({"type": "pong"})
            elif message_type == "send":
                try:
                    await panel.send(str(payload.get("content") or ""))
                except (ValidationError, BackendError) as exc:
                    await websocket.send_json({"type": "error", "detail": str(exc)})
            # other frames are ignored
    except WebSocketDisconnect:
        pass
    finally:
        if forward is not None:
            forward.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await forward
        await panel.close()
        logger.info("Conversation socket %s <-> %s closed", user.id, peer_id)
