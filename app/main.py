"""Explainer video generation service - FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.api.v1 import health as health_api
from app.api.v1 import jobs as jobs_api
from app.api.v1.health import router as health_root_router
from app.api.v1.router import compat_router_root, v1_router
from app.collaborators.base import Storage
from app.collaborators.simulated import build_simulated_collaborators
from app.config import settings
from app.core.logging import setup_logging
from app.db.supabase_client import get_supabase
from app.jobs.controller import JobController
from app.jobs.store import JobStore
from app.jobs.supabase_backend import SupabaseJobBackend
from app.pipeline.orchestrator import PipelineOrchestrator
from app.storage.local import LocalStorage
from app.storage.supabase_storage import SupabaseStorage

logger = logging.getLogger(__name__)

local_storage = LocalStorage(
    base_dir=settings.generated_dir,
    url_prefix=settings.generated_url_prefix,
    ttl_hours=settings.job_result_ttl_hours,
)


def build_store_and_storage():
    """Durable Supabase components when configured, in-process otherwise."""
    try:
        client = get_supabase()
    except RuntimeError as e:
        logger.warning("Supabase unavailable (%s); jobs are kept in memory only", e)
        return JobStore(), local_storage

    store = JobStore(durable=SupabaseJobBackend(client, table=settings.jobs_table))
    storage: Storage = SupabaseStorage(
        client, bucket=settings.storage_bucket, fallback=local_storage
    )
    return store, storage


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    setup_logging(settings.log_level, use_json=settings.log_json)
    logger.info("Starting explainer video service on port %s", settings.api_port)

    store, storage = build_store_and_storage()
    logger.info("Job store backend: %s", store.backend_name)

    collaborators = build_simulated_collaborators(
        storage,
        delay=settings.simulated_delay_seconds,
        failing_models=settings.simulated_failing_models,
    )
    orchestrator = PipelineOrchestrator(store, collaborators, settings)
    controller = JobController(store, orchestrator)
    await controller.start()
    logger.info("Job controller started")

    # Wire controller and store into API endpoints
    jobs_api.set_controller(controller)
    health_api.set_components(controller, store)

    yield

    logger.info("Shutting down explainer video service")
    await controller.stop()
    jobs_api.set_controller(None)
    health_api.set_components(None, None)
    local_storage.cleanup_expired()


app = FastAPI(
    title="Explainer Video Service",
    description="Turns a topic into a narrated, animated explainer video",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(health_root_router, tags=["health"])  # GET /health at root
app.include_router(v1_router)  # All /api/v1/* endpoints
app.include_router(compat_router_root)  # /api/video-generation compat layer

# Locally stored media (fallback narration, animations, videos)
app.mount(
    settings.generated_url_prefix,
    StaticFiles(directory=local_storage.base_dir),
    name="generated",
)
