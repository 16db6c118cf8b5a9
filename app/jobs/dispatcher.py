"""Job dispatcher interface implemented by the in-process controller."""

from abc import ABC, abstractmethod

from app.jobs.models import Job


class JobDispatcher(ABC):
    """Abstract boundary external callers use to start and track jobs."""

    @abstractmethod
    async def submit(self, topic: str) -> str:
        """Create a job for ``topic`` and start it in the background. Returns job_id."""
        ...

    @abstractmethod
    async def get_status(self, job_id: str) -> Job:
        """Current job record. Raises NotFound for unknown ids."""
        ...

    @abstractmethod
    async def cancel(self, job_id: str) -> bool:
        """Stop scheduling further stages. False if the job already finished."""
        ...

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the dispatcher gracefully."""
        ...
