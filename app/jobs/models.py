"""Job record data model and merge rules for async video generation."""

import random
import string
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def can_transition_to(self, target: "JobStatus") -> bool:
        """Statuses only move forward: pending -> in_progress -> terminal."""
        if self is target:
            return not self.is_terminal
        if self.is_terminal:
            return False
        if self is JobStatus.PENDING:
            return target is not JobStatus.COMPLETED
        return target.is_terminal


TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}
)


def new_job_id() -> str:
    """video_<epoch millis>_<7 random lowercase alphanumerics>"""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"video_{int(time.time() * 1000)}_{suffix}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def section_key(index: int) -> str:
    return f"section_{index}"


class StageError(BaseModel):
    stage: str
    error: str


class Job(BaseModel):
    """Tracks the lifecycle of one topic through the generation pipeline."""
    job_id: str = Field(default_factory=new_job_id)
    topic: str
    status: JobStatus = JobStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    current_stage: str = "Initializing"
    script: Optional[Dict[str, Any]] = None
    narrations: Optional[Dict[str, str]] = None
    animations: Optional[Dict[str, str]] = None
    video_url: Optional[str] = None
    error: Optional[str] = None
    errors: List[StageError] = Field(default_factory=list)
    retry_count: Dict[str, int] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


_IMMUTABLE_FIELDS = ("job_id", "topic", "created_at")

# Per-section results land in keyed maps so concurrent sections never clobber
_KEYED_FIELDS = ("narrations", "animations", "retry_count")


def merge_job(job: Job, fields: Dict[str, Any]) -> Job:
    """Return a copy of ``job`` with ``fields`` merged in.

    Terminal jobs are returned unchanged. Progress never decreases, status
    never moves backwards, keyed maps merge per key and ``errors`` appends.
    """
    if job.status.is_terminal:
        return job

    data = job.model_dump()
    for key, value in fields.items():
        if key not in Job.model_fields:
            raise ValueError(f"Unknown job field: {key}")
        if key in _IMMUTABLE_FIELDS:
            if value != data[key]:
                raise ValueError(f"Job field '{key}' is immutable")
            continue

        if key == "progress":
            value = max(job.progress, int(value))
        elif key == "status":
            target = JobStatus(value)
            if target is not job.status and not job.status.can_transition_to(target):
                continue
            value = target
        elif key in _KEYED_FIELDS and value is not None:
            value = {**(data[key] or {}), **value}
        elif key == "errors":
            value = data["errors"] + [
                StageError.model_validate(e).model_dump() for e in value
            ]
        data[key] = value

    data["updated_at"] = utcnow()
    return Job.model_validate(data)
