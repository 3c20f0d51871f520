"""Supabase client for Python backend."""

import logging
from typing import Optional

from supabase import Client, create_client

logger = logging.getLogger(__name__)


def get_supabase_client(url: Optional[str], key: Optional[str]) -> Client | None:
    """Create a Supabase client instance.

    Returns:
        Supabase Client instance if configured, None otherwise.
        Note: This does not test the connection - actual queries may fail with network errors.
    """
    if not url or not key:
        logger.warning("Supabase credentials not configured (missing URL or key)")
        return None

    try:
        return create_client(url, key)
    except Exception as e:
        logger.error(f"Failed to create Supabase client: {e}")
        return None
