from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from blogweb.domain.errors import BackendError, ValidationError
from blogweb.infrastructure.database.supabase_client import AuthSession, SupabaseAuthAdapter, UserInfo


class AuthMode(str, Enum):
    SIGN_IN = "sign_in"
    SIGN_UP = "sign_up"


@dataclass
class CredentialResult:
    mode: AuthMode  # the mode the submission ran in
    identity: UserInfo | None
    session: AuthSession | None = None


class CredentialForm:
    """Email/password form with sign-in and sign-up modes.

    Only presence of both fields is checked here; email format and the
    credentials themselves are the backend's business, and its error
    message is kept verbatim in ``error``.
    """

    def __init__(self, auth: SupabaseAuthAdapter, mode: AuthMode = AuthMode.SIGN_IN) -> None:
        self.auth = auth
        self.mode = mode
        self.error: str | None = None

    def toggle(self) -> AuthMode:
        self.mode = AuthMode.SIGN_IN if self.mode is AuthMode.SIGN_UP else AuthMode.SIGN_UP
        self.error = None
        return self.mode

    def submit(self, email: str, password: str) -> CredentialResult:
        self.error = None
        if not email or not password:
            self.error = "Email and password are required"
            raise ValidationError(self.error)
        mode = self.mode
        try:
            if mode is AuthMode.SIGN_UP:
                identity = self.auth.sign_up(email, password)
                self.mode = AuthMode.SIGN_IN
                return CredentialResult(mode=mode, identity=identity)
            session = self.auth.sign_in(email, password)
            return CredentialResult(mode=mode, identity=session.user, session=session)
        except BackendError as exc:
            self.error = str(exc)
            raise
