"""Job-level error taxonomy."""


class JobError(Exception):
    """Base class for job orchestration errors."""


class InvalidArgument(JobError):
    """Bad input supplied by an external caller."""


class NotFound(JobError):
    """No job record exists for the requested id."""

    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class StoreError(JobError):
    """The durable job backend failed. Always downgraded to the in-memory path."""


class PipelineCancelled(JobError):
    """Raised inside the orchestrator when a cancel was requested for the job."""
