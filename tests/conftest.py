import io
import os
import sys
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Ensure project root is on sys.path so 'blogweb' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SUPABASE_DISABLED", "1")
os.environ.setdefault("SUPABASE_STORAGE_LOCAL_DIR", ".local_storage")

from blogweb.infrastructure.database.supabase_client import (  # noqa: E402
    BackendConfig,
    SupabaseAuthAdapter,
    create_backend,
)
from blogweb.infrastructure.generation.gemini_client import GeminiTextGenerator  # noqa: E402

GENERATED_TEXT = "A short post about the given title."


def make_png_bytes(w=4, h=4, color=(128, 64, 32)) -> bytes:
    img = Image.new("RGB", (w, h), color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def gemini_reply(text: str = GENERATED_TEXT) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture()
def backend(tmp_path):
    return create_backend(BackendConfig(disabled=True, local_storage_dir=str(tmp_path / "storage")))


@pytest.fixture()
def generator() -> GeminiTextGenerator:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=gemini_reply())

    return GeminiTextGenerator(api_key="test-key", transport=httpx.MockTransport(handler))


@pytest.fixture()
def auth(backend) -> SupabaseAuthAdapter:
    return SupabaseAuthAdapter(backend)


@pytest.fixture()
def app(backend, generator):
    # lazy import after env configured
    from blogweb.main import create_app

    return create_app(backend=backend, generator=generator)


@pytest.fixture()
def client(app) -> TestClient:
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def register(client):
    """Sign up and sign in through the API; returns (user_id, auth header)."""

    def _register(email: str, password: str = "secret123") -> tuple[str, dict[str, str]]:
        r = client.post("/auth/sign-up", json={"email": email, "password": password})
        assert r.status_code == 201, r.text
        r = client.post("/auth/sign-in", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        data = r.json()
        return data["user_id"], {"Authorization": f"Bearer {data['access_token']}"}

    return _register
