"""Health check endpoint."""

import platform
import sys

from fastapi import APIRouter

router = APIRouter()

# Set by main.py during lifespan
_controller = None
_store = None


def set_components(controller, store):
    global _controller, _store
    _controller = controller
    _store = store


@router.get("/health")
async def health_check():
    """Service health, job store backend and pipeline load."""
    ready = _controller is not None and _controller.running
    return {
        "status": "healthy" if ready else "starting",
        "job_store": _store.backend_name if _store is not None else None,
        "active_jobs": _controller.active_jobs() if _controller is not None else 0,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
