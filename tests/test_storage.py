import os
import time
from unittest.mock import MagicMock

import pytest

from app.storage.local import LocalStorage
from app.storage.supabase_storage import SupabaseStorage


@pytest.fixture
def local(tmp_path):
    return LocalStorage(base_dir=str(tmp_path), url_prefix="/generated/", ttl_hours=1)


@pytest.mark.asyncio
async def test_local_upload_writes_file_and_returns_url(local, tmp_path):
    url = await local.upload("audio/a.mp3", b"abc")
    assert url == "/generated/audio/a.mp3"
    assert (tmp_path / "audio" / "a.mp3").read_bytes() == b"abc"


@pytest.mark.asyncio
async def test_local_upload_rejects_path_escape(local):
    with pytest.raises(ValueError):
        await local.upload("../outside.mp3", b"x")


@pytest.mark.asyncio
async def test_cleanup_removes_only_expired_files(local, tmp_path):
    await local.upload("videos/old.mp4", b"old")
    await local.upload("videos/new.mp4", b"new")
    two_hours_ago = time.time() - 7200
    os.utime(tmp_path / "videos" / "old.mp4", (two_hours_ago, two_hours_ago))

    assert local.cleanup_expired() == 1
    assert not (tmp_path / "videos" / "old.mp4").exists()
    assert (tmp_path / "videos" / "new.mp4").exists()


def _bucket(client):
    return client.storage.from_.return_value


@pytest.mark.asyncio
async def test_supabase_upload_returns_public_url():
    client = MagicMock()
    _bucket(client).get_public_url.return_value = "https://sb.test/public/audio/a.mp3"
    storage = SupabaseStorage(client, bucket="video-generation")

    url = await storage.upload("audio/a.mp3", b"abc")

    assert url == "https://sb.test/public/audio/a.mp3"
    client.storage.from_.assert_called_with("video-generation")
    args, kwargs = _bucket(client).upload.call_args
    assert args == ("audio/a.mp3", b"abc")
    assert kwargs["file_options"]["content-type"] == "audio/mpeg"


@pytest.mark.asyncio
async def test_supabase_upload_falls_back_to_local(local, tmp_path):
    client = MagicMock()
    _bucket(client).upload.side_effect = RuntimeError("bucket missing")
    storage = SupabaseStorage(client, fallback=local)

    url = await storage.upload("videos/v.mp4", b"data")

    assert url == "/generated/videos/v.mp4"
    assert (tmp_path / "videos" / "v.mp4").exists()


@pytest.mark.asyncio
async def test_supabase_upload_without_fallback_raises():
    client = MagicMock()
    _bucket(client).upload.side_effect = RuntimeError("bucket missing")
    storage = SupabaseStorage(client)

    with pytest.raises(RuntimeError, match="bucket missing"):
        await storage.upload("videos/v.mp4", b"data")
