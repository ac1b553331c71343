"""
SITA Core - Supabase Client.

Low-level hosted database access. Only the onboarding remote persistence
adapter goes through here.
"""

from supabase import Client, create_client

from sita.config import settings

# Singleton client instance
_client: Client | None = None


def get_client() -> Client:
    """
    Get the Supabase client.

    Uses singleton pattern to reuse connection.
    Raises RuntimeError when Supabase credentials are not configured.
    """
    global _client

    if _client is None:
        if not settings.remote_enabled:
            raise RuntimeError("Supabase is not configured (SUPABASE_URL / SUPABASE_ANON_KEY)")
        _client = create_client(
            settings.supabase_url,
            settings.supabase_anon_key,
        )

    return _client


def reset_client() -> None:
    """Drop the cached client (tests, credential rotation)."""
    global _client
    _client = None
