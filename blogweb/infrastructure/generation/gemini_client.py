"""Body drafting for the post composer through Gemini's generateContent API."""
from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from blogweb.domain.errors import GenerationError

logger = logging.getLogger(__name__)

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
PROMPT_TEMPLATE = "Write a concise blog post about: {title}"


def first_candidate_text(data: Any) -> str:
    """candidates[0].content.parts[0].text, or "" when the response has another shape."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return ""
    return text if isinstance(text, str) else ""


class GeminiTextGenerator:
    def __init__(
        self,
        api_key: str | None,
        model: str = "gemini-2.0-flash",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_env(cls) -> GeminiTextGenerator:
        return cls(
            api_key=os.getenv("GEMINI_API_KEY"),
            model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash"),
            timeout=float(os.getenv("GEMINI_TIMEOUT", "30")),
        )

    @property
    def url(self) -> str:
        return GEMINI_ENDPOINT.format(model=self.model)

    def generate(self, title: str) -> str:
        if not self.api_key:
            logger.warning("GEMINI_API_KEY is not set; cannot generate content")
            raise GenerationError()
        body = {"contents": [{"parts": [{"text": PROMPT_TEMPLATE.format(title=title)}]}]}
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.url, params={"key": self.api_key}, json=body)
        except httpx.HTTPError as exc:
            logger.exception("Content generation request failed")
            raise GenerationError() from exc

        if response.status_code >= 400:
            logger.warning("Content generation returned %s: %s", response.status_code, response.text[:200])
            raise GenerationError()

        try:
            data = response.json()
        except ValueError as exc:
            logger.warning("Content generation returned a non-JSON body")
            raise GenerationError() from exc
        return first_candidate_text(data)
