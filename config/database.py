"""
Supabase client for the storage adapters.

The client is created on first use and cached; settings can be loaded
without credentials as long as nothing touches the database.
"""

from functools import lru_cache
import structlog
from supabase import create_client, Client

from config.settings import settings
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


# Tables counted by the health check: (table, key column, report field)
HEALTH_TABLES = (
    ("product_records", "key", "product_records_count"),
    ("category_mappings", "source_key", "category_mappings_count"),
)


@lru_cache()
def get_supabase_client() -> Client:
    """
    Cached Supabase client.

    Raises:
        DatabaseError: Credentials missing or the first query failed
    """
    if not settings.supabase_configured:
        raise DatabaseError("connect", "SUPABASE_URL and SUPABASE_KEY are not configured")

    logger.info("connecting_to_supabase", url=settings.supabase_url[:30] + "...")

    try:
        client = create_client(settings.supabase_url, settings.supabase_key)
        client.table("product_records").select("key").limit(1).execute()
    except Exception as e:
        logger.error("supabase_connection_failed", error=str(e), error_type=type(e).__name__)
        raise DatabaseError("connect", str(e)) from e

    logger.info("supabase_connected")
    return client


def check_connection() -> dict:
    """
    Row counts of the sync tables, or the connection error.

    Returns:
        {"status": "healthy", "<table>_count": n, ...} or
        {"status": "unhealthy", "error": "..."}
    """
    try:
        client = get_supabase_client()
        status = {"status": "healthy"}
        for table, column, field in HEALTH_TABLES:
            status[field] = client.table(table).select(column, count="exact").execute().count
        return status

    except Exception as e:
        logger.warning("database_health_check_failed", error=str(e))
        return {
            "status": "unhealthy",
            "error": str(e)
        }
