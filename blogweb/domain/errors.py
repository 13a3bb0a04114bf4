"""Failure taxonomy shared by the application components and the API layer."""
from __future__ import annotations


class ValidationError(ValueError):
    """Input rejected before any request reaches the backend."""


class BackendError(RuntimeError):
    """A Supabase call failed; the message is the platform's own text."""


class AuthenticationError(BackendError):
    """Credentials or access token rejected by Supabase Auth."""


class GenerationError(RuntimeError):
    """The text-generation service failed or could not be reached."""

    default_message = "Failed to generate content. Please try again."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
