from __future__ import annotations

import logging
import os
import secrets
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

from supabase import Client, ClientOptions, create_client

from blogweb.domain.errors import AuthenticationError, BackendError
from blogweb.infrastructure.database.memory_store import MemoryStore
from blogweb.infrastructure.realtime.change_feed import InMemoryChangeFeed, SupabaseChangeFeed

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

_SESSION_TTL = timedelta(hours=1)


@dataclass(frozen=True)
class BackendConfig:
    url: str | None = None
    key: str | None = None
    disabled: bool = False
    avatar_bucket: str = "avatars"
    post_image_bucket: str = "post-images"
    local_storage_dir: str = ".local_storage"

    @classmethod
    def from_env(cls) -> BackendConfig:
        return cls(
            url=os.getenv("SUPABASE_URL"),
            key=os.getenv("SUPABASE_ANON_KEY"),
            disabled=os.getenv("SUPABASE_DISABLED", "0") == "1",
            avatar_bucket=os.getenv("SUPABASE_AVATAR_BUCKET", "avatars"),
            post_image_bucket=os.getenv("SUPABASE_POST_IMAGE_BUCKET", "post-images"),
            local_storage_dir=os.getenv("SUPABASE_STORAGE_LOCAL_DIR", ".local_storage"),
        )

    @property
    def in_memory(self) -> bool:
        return self.disabled or not self.url or not self.key


@dataclass
class Backend:
    """The one Supabase connection of an application, shared by every adapter."""

    config: BackendConfig
    client: Client | None = None
    memory: MemoryStore | None = None
    realtime: InMemoryChangeFeed | SupabaseChangeFeed | None = field(default=None, repr=False)

    @property
    def in_memory(self) -> bool:
        return self.client is None

    def for_user(self, access_token: str | None) -> Backend:
        """The same backend with REST and storage calls made as the signed-in user.

        Row-level security policies see the user's JWT instead of the anon
        key. The realtime feed stays shared; subscriptions carry their own
        token. Without a token, or in memory mode, this is the backend itself.
        """
        if self.client is None or not access_token:
            return self
        client = create_client(
            self.config.url,
            self.config.key,
            options=ClientOptions(headers={"Authorization": f"Bearer {access_token}"}),
        )
        return replace(self, client=client)


def create_backend(config: BackendConfig | None = None) -> Backend:
    config = config or BackendConfig.from_env()
    if config.in_memory:
        logger.warning("Supabase is disabled or not configured; using the in-memory backend")
        memory = MemoryStore()
        return Backend(config=config, memory=memory, realtime=InMemoryChangeFeed(memory))
    return Backend(
        config=config,
        client=create_client(config.url, config.key),
        realtime=SupabaseChangeFeed(config.url, config.key),
    )


def error_message(exc: Exception) -> str:
    """The message Supabase attached to a failed call, falling back to str(exc)."""
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc)


@dataclass(slots=True)
class UserInfo:
    id: str
    email: str | None


@dataclass(slots=True)
class AuthSession:
    access_token: str
    user: UserInfo
    refresh_token: str | None = None
    expires_at: int | None = None  # unix seconds


AuthListener = Callable[[str, "AuthSession | None"], None]


class AuthSubscription:
    def __init__(self, listeners: list[AuthListener], callback: AuthListener) -> None:
        self._listeners = listeners
        self.callback = callback

    def unsubscribe(self) -> None:
        if self.callback in self._listeners:
            self._listeners.remove(self.callback)


class SupabaseAuthAdapter:
    """Supabase Auth for the credential form and the session manager.

    Token checks and sign-out go through the shared client. Sign-up, sign-in
    and refresh use a client of their own, created on first use, because
    GoTrue keeps the resulting session on the client. Listeners registered with ``on_auth_state_change`` receive
    SIGNED_IN, TOKEN_REFRESHED and SIGNED_OUT after the matching call
    succeeds. With an in-memory backend, users and tokens live in the
    MemoryStore and unknown tokens resolve to a deterministic fake user.
    """

    def __init__(self, backend: Backend) -> None:
        self.backend = backend
        self.memory = backend.memory
        self._listeners: list[AuthListener] = []
        self._session_client: Client | None = None

    @property
    def session_client(self) -> Client:
        if self._session_client is None:
            self._session_client = create_client(self.backend.config.url, self.backend.config.key)
        return self._session_client

    def on_auth_state_change(self, callback: AuthListener) -> AuthSubscription:
        self._listeners.append(callback)
        return AuthSubscription(self._listeners, callback)

    def _emit(self, event: str, session: AuthSession | None) -> None:
        logger.debug("Auth event %s", event)
        for listener in list(self._listeners):
            listener(event, session)

    def _issue_session(self, user: UserInfo) -> AuthSession:
        access_token = secrets.token_urlsafe(24)
        refresh_token = secrets.token_urlsafe(24)
        self.memory.access_tokens[access_token] = user.id
        self.memory.refresh_tokens[refresh_token] = user.id
        expires_at = int((datetime.now(UTC) + _SESSION_TTL).timestamp())
        return AuthSession(access_token, user, refresh_token, expires_at)

    def _memory_user(self, user_id: str) -> UserInfo:
        for record in self.memory.users.values():
            if record["id"] == user_id:
                return UserInfo(id=record["id"], email=record["email"])
        return UserInfo(id=user_id, email=None)

    @staticmethod
    def _from_response(res) -> AuthSession:
        session = res.session
        if session is None or res.user is None:
            raise AuthenticationError("Auth session missing!")
        return AuthSession(
            access_token=session.access_token,
            user=UserInfo(id=res.user.id, email=res.user.email),
            refresh_token=session.refresh_token,
            expires_at=session.expires_at,
        )

    def validate_token(self, token: str) -> UserInfo:
        if not token:
            raise AuthenticationError("Missing access token")
        if self.backend.in_memory:
            if token in self.memory.revoked_tokens:
                raise AuthenticationError("Invalid access token: session has been signed out")
            user_id = self.memory.access_tokens.get(token)
            if user_id is not None:
                return self._memory_user(user_id)
            # deterministic fake user for any other token
            return UserInfo(id=str(uuid.uuid5(uuid.NAMESPACE_URL, token)), email=None)
        try:
            res = self.backend.client.auth.get_user(token)
            user = res.user if res else None
            if not user:
                raise AuthenticationError("Invalid access token")
            return UserInfo(id=user.id, email=user.email)
        except AuthenticationError:
            raise
        except Exception as exc:
            raise AuthenticationError(f"Invalid access token: {error_message(exc)}") from exc

    def get_session(self, token: str | None) -> AuthSession | None:
        """The session an access token belongs to, or None when it is not valid."""
        if not token:
            return None
        try:
            user = self.validate_token(token)
        except AuthenticationError as exc:
            logger.info("No current session: %s", exc)
            return None
        return AuthSession(access_token=token, user=user)

    def sign_up(self, email: str, password: str) -> UserInfo:
        if self.backend.in_memory:
            key = email.strip().lower()
            if "@" not in key:
                raise BackendError("Unable to validate email address: invalid format")
            if len(password) < 6:
                raise BackendError("Password should be at least 6 characters.")
            if key in self.memory.users:
                raise BackendError("User already registered")
            record = {"id": str(uuid.uuid4()), "email": email.strip(), "password": password}
            self.memory.users[key] = record
            return UserInfo(id=record["id"], email=record["email"])
        try:  # pragma: no cover - network
            res = self.session_client.auth.sign_up({"email": email, "password": password})
        except Exception as exc:
            raise BackendError(error_message(exc)) from exc
        if not res.user:  # pragma: no cover - network
            raise BackendError("Failed to register user")
        return UserInfo(id=res.user.id, email=res.user.email or email)

    def sign_in(self, email: str, password: str) -> AuthSession:
        if self.backend.in_memory:
            record = self.memory.users.get(email.strip().lower())
            if record is None or record["password"] != password:
                raise AuthenticationError("Invalid login credentials")
            session = self._issue_session(UserInfo(id=record["id"], email=record["email"]))
        else:
            try:
                res = self.session_client.auth.sign_in_with_password({"email": email, "password": password})
            except Exception as exc:
                raise AuthenticationError(error_message(exc)) from exc
            session = self._from_response(res)
        self._emit(SIGNED_IN, session)
        return session

    def refresh(self, refresh_token: str) -> AuthSession:
        if not refresh_token:
            raise AuthenticationError("Missing refresh token")
        if self.backend.in_memory:
            user_id = self.memory.refresh_tokens.pop(refresh_token, None)
            if user_id is None:
                raise AuthenticationError("Invalid Refresh Token: Refresh Token Not Found")
            session = self._issue_session(self._memory_user(user_id))
        else:
            try:  # pragma: no cover - network
                res = self.session_client.auth.refresh_session(refresh_token)
            except Exception as exc:
                raise AuthenticationError(error_message(exc)) from exc
            session = self._from_response(res)
        self._emit(TOKEN_REFRESHED, session)
        return session

    def sign_out(self, token: str) -> None:
        if self.backend.in_memory:
            user_id = self.memory.access_tokens.pop(token, None)
            self.memory.revoked_tokens.add(token)
            if user_id is not None:
                stale = [r for r, uid in self.memory.refresh_tokens.items() if uid == user_id]
                for refresh_token in stale:
                    del self.memory.refresh_tokens[refresh_token]
        else:
            try:  # pragma: no cover - network
                self.backend.client.auth.admin.sign_out(token)
            except Exception as exc:
                raise BackendError(error_message(exc)) from exc
        self._emit(SIGNED_OUT, None)
