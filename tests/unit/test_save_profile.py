from datetime import UTC, datetime
from pathlib import Path

import pytest
from conftest import make_png_bytes

from blogweb.application.use_cases.save_profile import SaveProfileUseCase
from blogweb.domain.errors import ValidationError
from blogweb.infrastructure.database.repositories.profile_repository import ProfileRepository
from blogweb.infrastructure.storage.supabase_storage import SupabaseStorage, UploadedFile

NOW = datetime(2024, 1, 1, tzinfo=UTC)


@pytest.fixture()
def use_case(backend):
    return SaveProfileUseCase(storage=SupabaseStorage(backend), profiles=ProfileRepository(backend))


def test_save_without_avatar(use_case, backend):
    profile = use_case.execute("u1", "  jane  ")
    assert profile.username == "jane"
    assert profile.avatar_url is None
    assert profile.setup_complete is True
    assert backend.memory.select("profiles") == [
        {"id": "u1", "username": "jane", "avatar_url": None, "isModal": True}
    ]


def test_save_with_avatar_uploads_first(use_case, backend):
    png = make_png_bytes()
    profile = use_case.execute("u1", "jane", UploadedFile("me.png", png), now=NOW)
    assert profile.avatar_url == "/local-storage/avatars/public/1704067200000-me.png"
    assert backend.memory.objects[("avatars", "public/1704067200000-me.png")] == png
    stored = Path(backend.config.local_storage_dir) / "avatars" / "public" / "1704067200000-me.png"
    assert stored.read_bytes() == png


def test_invalid_avatar_saves_nothing(use_case, backend):
    with pytest.raises(ValidationError):
        use_case.execute("u1", "jane", UploadedFile("me.png", b"not an image"))
    assert backend.memory.select("profiles") == []
    assert backend.memory.objects == {}


def test_repeated_save_replaces_profile(use_case, backend):
    use_case.execute("u1", "jane")
    use_case.execute("u1", "janet")
    rows = backend.memory.select("profiles")
    assert len(rows) == 1
    assert rows[0]["username"] == "janet"
