"""Supabase bucket storage with a local fallback."""

import asyncio
import logging
import mimetypes
from typing import Optional

from supabase import Client

from app.collaborators.base import Storage

logger = logging.getLogger(__name__)


class SupabaseStorage(Storage):
    """Uploads to a Supabase storage bucket and returns the public URL.

    On any upload failure the file goes to ``fallback`` instead (when one is
    configured) so a flaky bucket never fails a pipeline stage by itself.
    """

    def __init__(
        self,
        client: Client,
        bucket: str = "video-generation",
        fallback: Optional[Storage] = None,
    ):
        self._client = client
        self._bucket = bucket
        self._fallback = fallback

    async def upload(self, path: str, data: bytes) -> str:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._upload_sync, path, data)
        except Exception as e:
            if self._fallback is None:
                raise
            logger.warning("Supabase upload of %s failed, storing locally: %s", path, e)
            return await self._fallback.upload(path, data)

    def _upload_sync(self, path: str, data: bytes) -> str:
        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        bucket = self._client.storage.from_(self._bucket)
        bucket.upload(
            path,
            data,
            file_options={"content-type": content_type, "upsert": "true"},
        )
        return bucket.get_public_url(path)
