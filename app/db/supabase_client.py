"""Service-role Supabase client singleton shared by the job store and storage."""

import logging

from supabase import create_client, Client
from app.config import settings

logger = logging.getLogger(__name__)

_client: Client | None = None


def supabase_configured() -> bool:
    return bool(settings.supabase_url and settings.supabase_service_role_key)


def get_supabase() -> Client:
    """Get or create the Supabase client using the service role key.

    Raises RuntimeError when credentials are missing; callers treat that as
    "no durable backend" and fall back to in-process state.
    """
    global _client
    if _client is None:
        if not supabase_configured():
            raise RuntimeError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set"
            )
        logger.info("Connecting to Supabase at %s", settings.supabase_url)
        _client = create_client(
            settings.supabase_url,
            settings.supabase_service_role_key,
        )
    return _client
