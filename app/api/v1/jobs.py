"""Job management API: submit jobs, poll status, cancel."""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from app.jobs.errors import InvalidArgument, NotFound
from app.jobs.models import Job

router = APIRouter()

# Set by main.py during lifespan
_controller = None


def set_controller(controller):
    global _controller
    _controller = controller


def get_controller():
    if _controller is None:
        raise HTTPException(status_code=503, detail="Job controller not initialized")
    return _controller


class JobSubmitRequest(BaseModel):
    # Optional so a missing topic is a 400 from the controller, not a 422
    topic: Optional[Any] = None


class JobSubmitResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")


class CancelResponse(BaseModel):
    ok: bool


class JobView(BaseModel):
    """Client-facing projection of a job. Internal diagnostics stay hidden."""
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    topic: str
    status: str
    progress: int
    current_stage: str = Field(alias="currentStage")
    video_url: Optional[str] = Field(default=None, alias="videoUrl")
    error: Optional[str] = None
    script: Optional[Dict[str, Any]] = None
    narrations: Optional[Dict[str, str]] = None
    animations: Optional[Dict[str, str]] = None
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @classmethod
    def from_job(cls, job: Job) -> "JobView":
        return cls(
            job_id=job.job_id,
            topic=job.topic,
            status=job.status.value,
            progress=job.progress,
            current_stage=job.current_stage,
            video_url=job.video_url,
            error=job.error,
            script=job.script,
            narrations=job.narrations,
            animations=job.animations,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


async def submit_topic(topic: Any) -> JobSubmitResponse:
    controller = get_controller()
    try:
        job_id = await controller.submit(topic)
    except InvalidArgument as e:
        raise HTTPException(status_code=400, detail=str(e))
    return JobSubmitResponse(job_id=job_id)


async def job_view(job_id: str) -> JobView:
    controller = get_controller()
    try:
        job = await controller.get_status(job_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobView.from_job(job)


async def cancel_job(job_id: str) -> CancelResponse:
    controller = get_controller()
    try:
        ok = await controller.cancel(job_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Job not found")
    return CancelResponse(ok=ok)


@router.post(
    "/jobs",
    response_model=JobSubmitResponse,
    response_model_by_alias=True,
)
async def submit_job(request: JobSubmitRequest):
    """Start generating a video for a topic. Poll GET /api/v1/jobs/{id} for status."""
    return await submit_topic(request.topic)


@router.get(
    "/jobs/{job_id}",
    response_model=JobView,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def get_job_status(job_id: str):
    """Get the current status and results of a job."""
    return await job_view(job_id)


@router.delete("/jobs/{job_id}", response_model=CancelResponse)
async def delete_job(job_id: str):
    """Cancel a job. Stages already running finish; later ones are skipped."""
    return await cancel_job(job_id)
