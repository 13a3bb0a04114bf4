from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class MessageEntity:
    id: str
    sender_id: str
    receiver_id: str
    content: str
    created_at: datetime
