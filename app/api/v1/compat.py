"""Browser-facing compatibility API.

Provides the query-parameter shape the chat frontend already uses:
  POST   /api/video-generation           {topic} -> {jobId}
  GET    /api/video-generation?jobId=... poll job progress
  DELETE /api/video-generation?jobId=... cancel

This is a thin layer over the /api/v1/jobs handlers.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from app.api.v1.jobs import (
    CancelResponse,
    JobSubmitRequest,
    JobSubmitResponse,
    JobView,
    cancel_job,
    job_view,
    submit_topic,
)

router = APIRouter(prefix="/api/video-generation")


def _require_job_id(job_id: Optional[str]) -> str:
    if not job_id:
        raise HTTPException(status_code=400, detail="Job ID is required")
    return job_id


@router.post("", response_model=JobSubmitResponse, response_model_by_alias=True)
async def start_generation(request: JobSubmitRequest):
    return await submit_topic(request.topic)


@router.get(
    "",
    response_model=JobView,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def poll_generation(job_id: Optional[str] = Query(default=None, alias="jobId")):
    return await job_view(_require_job_id(job_id))


@router.delete("", response_model=CancelResponse)
async def cancel_generation(job_id: Optional[str] = Query(default=None, alias="jobId")):
    return await cancel_job(_require_job_id(job_id))
