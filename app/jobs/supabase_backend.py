"""Supabase-backed job persistence.

Rows live in a single table keyed by ``job_id``. supabase-py is a
synchronous client, so every call runs in the default thread executor to
keep the event loop free.
"""

import asyncio
from typing import Any, Callable, Dict, Optional

from supabase import Client

from app.jobs.errors import StoreError
from app.jobs.models import Job
from app.jobs.store import JobBackend

# Job field -> table column, where they differ
_COLUMN_MAP = {
    "script": "script_data",
    "narrations": "narration_urls",
    "animations": "animation_urls",
    "error": "error_message",
}
_FIELD_MAP = {column: field for field, column in _COLUMN_MAP.items()}


def job_to_row(job: Job) -> Dict[str, Any]:
    data = job.model_dump(mode="json")
    return {_COLUMN_MAP.get(key, key): value for key, value in data.items()}


def row_to_job(row: Dict[str, Any]) -> Job:
    data = {
        _FIELD_MAP.get(key, key): value
        for key, value in row.items()
        if _FIELD_MAP.get(key, key) in Job.model_fields
    }
    # Columns may be NULL for rows written by older clients
    data["errors"] = data.get("errors") or []
    data["retry_count"] = data.get("retry_count") or {}
    return Job.model_validate(data)


class SupabaseJobBackend(JobBackend):
    name = "supabase"

    def __init__(self, client: Client, table: str = "video_jobs"):
        self._client = client
        self._table = table

    async def insert(self, job: Job) -> None:
        await self._call(
            lambda: self._client.table(self._table).insert(job_to_row(job)).execute()
        )

    async def fetch(self, job_id: str) -> Optional[Job]:
        response = await self._call(
            lambda: self._client.table(self._table)
            .select("*")
            .eq("job_id", job_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        try:
            return row_to_job(response.data[0])
        except ValueError as e:
            raise StoreError(f"Malformed job row {job_id}: {e}") from e

    async def save(self, job: Job) -> None:
        await self._call(
            lambda: self._client.table(self._table)
            .upsert(job_to_row(job), on_conflict="job_id")
            .execute()
        )

    async def _call(self, fn: Callable[[], Any]) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn)
        except Exception as e:
            raise StoreError(f"{type(e).__name__}: {e}") from e
