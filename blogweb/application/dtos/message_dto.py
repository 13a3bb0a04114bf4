from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from blogweb.domain.entities.message import MessageEntity
from blogweb.domain.entities.profile import ProfileEntity


class PeerItem(BaseModel):
    """Another user that can be messaged."""
    id: str = Field(..., description="User id of the peer")
    username: str | None = Field(None, description="Peer display name")
    display_name: str = Field(..., description="Username, or the user id when none is set")
    avatar_url: str | None = Field(None, description="Peer avatar URL")

    @classmethod
    def from_entity(cls, profile: ProfileEntity) -> PeerItem:
        return cls(
            id=profile.id,
            username=profile.username,
            display_name=profile.display_name,
            avatar_url=profile.avatar_url,
        )


class MessageItem(BaseModel):
    id: str = Field(..., description="Unique identifier of the message")
    sender_id: str = Field(..., description="User id of the sender")
    receiver_id: str = Field(..., description="User id of the receiver")
    content: str = Field(..., description="Message text")
    created_at: datetime = Field(..., description="ISO timestamp when the message was sent")

    @classmethod
    def from_entity(cls, message: MessageEntity) -> MessageItem:
        return cls(
            id=message.id,
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            content=message.content,
            created_at=message.created_at,
        )


class ListPeersResponse(BaseModel):
    peers: list[PeerItem] = Field(..., description="Every other user with a profile")


class ConversationResponse(BaseModel):
    peer: PeerItem = Field(..., description="The other participant")
    messages: list[MessageItem] = Field(..., description="Messages oldest first")


class SendMessageBody(BaseModel):
    content: str = Field("", description="Message text")
