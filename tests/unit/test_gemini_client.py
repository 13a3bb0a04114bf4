import json

import httpx
import pytest
from conftest import gemini_reply

from blogweb.domain.errors import GenerationError
from blogweb.infrastructure.generation.gemini_client import GeminiTextGenerator, first_candidate_text


def make_generator(handler, api_key="test-key"):
    return GeminiTextGenerator(api_key=api_key, transport=httpx.MockTransport(handler))


def test_generate_sends_prompt_and_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=gemini_reply("Bread is great."))

    assert make_generator(handler).generate("Bread") == "Bread is great."
    assert seen["url"].path == "/v1beta/models/gemini-2.0-flash:generateContent"
    assert seen["url"].params["key"] == "test-key"
    assert seen["body"] == {"contents": [{"parts": [{"text": "Write a concise blog post about: Bread"}]}]}


def test_missing_key_fails_without_request():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(GenerationError, match="Failed to generate content"):
        make_generator(handler, api_key=None).generate("Bread")


def test_error_status_is_generation_error():
    with pytest.raises(GenerationError):
        make_generator(lambda r: httpx.Response(500, text="boom")).generate("Bread")


def test_transport_failure_is_generation_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(GenerationError):
        make_generator(handler).generate("Bread")


def test_unexpected_shape_yields_empty_text():
    assert make_generator(lambda r: httpx.Response(200, json={"candidates": []})).generate("Bread") == ""
    assert first_candidate_text(None) == ""
    assert first_candidate_text({"candidates": [{"content": {"parts": [{"text": 3}]}}]}) == ""
