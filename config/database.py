"""
Supabase connection.

One client per process, shared by every service through
get_supabase_client(). Tests patch that function per module.
"""

from functools import lru_cache
from typing import Optional

from supabase import create_client, Client
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)


class DatabaseConnectionError(Exception):
    """The Supabase client could not be created."""


@lru_cache()
def get_supabase_client() -> Client:
    """
    Shared Supabase client.

    The service role key is preferred when configured: promotion and
    catalog propagation write rows of many clients at once.

    Raises:
        DatabaseConnectionError: If the client cannot be created
    """
    key = settings.supabase_service_key or settings.supabase_key
    logger.info(
        "supabase_client_creating",
        url=settings.supabase_url[:30] + "...",
        service_role=bool(settings.supabase_service_key)
    )

    try:
        client = create_client(settings.supabase_url, key)
    except Exception as e:
        logger.error("supabase_client_failed", error=str(e), error_type=type(e).__name__)
        raise DatabaseConnectionError(f"Cannot create Supabase client: {e}") from e

    return client


def _count(client: Client, table: str, status: Optional[str] = None) -> Optional[int]:
    query = client.table(table).select("id", count="exact")
    if status is not None:
        query = query.eq("status", status)
    return query.limit(1).execute().count


def check_connection() -> dict:
    """
    Check the store with two counts.

    Returns:
        {"status": "healthy", "clients_count", "scheduled_orders_count"}
        or {"status": "unhealthy", "error"}
    """
    try:
        client = get_supabase_client()
        return {
            "status": "healthy",
            "clients_count": _count(client, "clients"),
            "scheduled_orders_count": _count(client, "upcoming_orders", status="scheduled"),
        }

    except Exception as e:
        logger.warning("database_check_failed", error=str(e))
        return {"status": "unhealthy", "error": str(e)}
