"""
Settings and the Supabase connection.

    from config import settings, get_supabase_client
"""

from config.settings import settings, get_settings, Settings
from config.database import get_supabase_client, check_connection, DatabaseConnectionError

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "get_supabase_client",
    "check_connection",
    "DatabaseConnectionError",
]
