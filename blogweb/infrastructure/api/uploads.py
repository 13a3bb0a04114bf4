from __future__ import annotations

from fastapi import UploadFile

from blogweb.infrastructure.storage.supabase_storage import UploadedFile


async def read_upload(file: UploadFile | None) -> UploadedFile | None:
    """Browsers send an empty part when no file was picked; treat it as no image."""
    if file is None or not file.filename:
        return None
    data = await file.read()
    if not data:
        return None
    return UploadedFile(filename=file.filename, data=data)
