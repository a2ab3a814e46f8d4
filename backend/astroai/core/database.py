"""
Supabase client factory.
"""
from typing import Optional

from supabase import Client, create_client

from astroai.core.logging import get_logger

logger = get_logger(__name__)


def get_supabase_client(supabase_url: Optional[str], supabase_key: Optional[str]) -> Optional[Client]:
    """
    Create a Supabase client, or return None when unconfigured or invalid.

    Connection problems are not raised: a missing document store puts the
    vector facade into degraded mode instead of failing startup.
    """
    if not supabase_url or not supabase_key:
        logger.warning(
            "supabase_credentials_missing",
            message="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in .env",
        )
        return None

    if not supabase_url.startswith("http"):
        logger.error(
            "supabase_url_invalid",
            message="Should start with http:// or https://",
        )
        return None

    try:
        logger.info("supabase_client_creating", url_prefix=supabase_url[:30])
        client = create_client(supabase_url, supabase_key)
        logger.info("supabase_client_created")
        return client
    except Exception as e:
        logger.error(
            "supabase_client_creation_failed",
            error_type=type(e).__name__,
        )
        return None
