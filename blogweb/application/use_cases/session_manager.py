from __future__ import annotations

import logging

from blogweb.domain.entities.profile import ProfileEntity
from blogweb.domain.errors import BackendError
from blogweb.infrastructure.database.repositories.profile_repository import ProfileRepository
from blogweb.infrastructure.database.supabase_client import (
    SIGNED_OUT,
    AuthSession,
    SupabaseAuthAdapter,
    UserInfo,
)

logger = logging.getLogger(__name__)


class SessionManager:
    """Current identity and profile, kept in step with auth state changes.

    Every identity change triggers a profile fetch. A failed fetch (typically
    no profile row yet) is logged and leaves the profile empty, which callers
    read as "profile setup still needed".
    """

    def __init__(self, auth: SupabaseAuthAdapter, profiles: ProfileRepository) -> None:
        self.auth = auth
        self.profiles = profiles
        self.identity: UserInfo | None = None
        self.profile: ProfileEntity | None = None
        self.access_token: str | None = None
        self._subscription = auth.on_auth_state_change(self.handle_auth_event)

    def load(self, access_token: str | None) -> SessionManager:
        """Resolve the session behind an access token, as on first page load."""
        session = self.auth.get_session(access_token)
        self._set_session(session)
        return self

    def handle_auth_event(self, event: str, session: AuthSession | None) -> None:
        logger.debug("Session manager received %s", event)
        self._set_session(None if event == SIGNED_OUT else session)

    def _set_session(self, session: AuthSession | None) -> None:
        self.access_token = session.access_token if session else None
        self.identity = session.user if session else None
        self.profile = None
        if self.identity is not None:
            self.fetch_profile(self.identity.id)

    def fetch_profile(self, user_id: str) -> ProfileEntity | None:
        try:
            self.profile = self.profiles.get(user_id)
        except BackendError as exc:
            logger.warning("Failed to fetch profile for %s: %s", user_id, exc)
            self.profile = None
        return self.profile

    @property
    def needs_profile_setup(self) -> bool:
        if self.identity is None:
            return False
        return self.profile is None or not self.profile.setup_complete

    def sign_out(self) -> None:
        token = self.access_token
        try:
            if token:
                self.auth.sign_out(token)
        finally:
            self.access_token = None
            self.identity = None
            self.profile = None

    def close(self) -> None:
        self._subscription.unsubscribe()

    def __enter__(self) -> SessionManager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
