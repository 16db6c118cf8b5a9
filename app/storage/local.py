"""Local file storage for generated media with TTL-based cleanup."""

import logging
import os
import time
from typing import Optional

from app.collaborators.base import Storage
from app.config import settings

logger = logging.getLogger(__name__)


class LocalStorage(Storage):
    """Writes uploads under a base directory and serves them from a URL prefix."""

    def __init__(
        self,
        base_dir: Optional[str] = None,
        url_prefix: str = "/generated",
        ttl_hours: int = 24,
    ):
        self._base_dir = base_dir or settings.generated_dir
        os.makedirs(self._base_dir, exist_ok=True)
        self._url_prefix = url_prefix.rstrip("/")
        self._ttl_seconds = ttl_hours * 3600

    @property
    def base_dir(self) -> str:
        return self._base_dir

    def get_output_path(self, path: str) -> str:
        """Resolve ``path`` inside the base directory, rejecting escapes."""
        base = os.path.normpath(self._base_dir)
        full = os.path.normpath(os.path.join(base, path.lstrip("/")))
        if os.path.commonpath([full, base]) != base:
            raise ValueError(f"Path escapes storage directory: {path}")
        return full

    async def upload(self, path: str, data: bytes) -> str:
        full = self.get_output_path(path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "wb") as dst:
            dst.write(data)
        rel = os.path.relpath(full, self._base_dir).replace(os.sep, "/")
        return f"{self._url_prefix}/{rel}"

    def cleanup_expired(self) -> int:
        """Remove files older than TTL. Returns count of removed files."""
        now = time.time()
        removed = 0
        if not os.path.exists(self._base_dir):
            return 0
        for root, _dirs, files in os.walk(self._base_dir):
            for name in files:
                full = os.path.join(root, name)
                if now - os.path.getmtime(full) > self._ttl_seconds:
                    os.remove(full)
                    removed += 1
        if removed:
            logger.info("Removed %d expired generated file(s)", removed)
        return removed
