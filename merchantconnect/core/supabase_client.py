# merchantconnect/core/supabase_client.py
from supabase import create_client, Client

from merchantconnect.core.config import Settings


def supabase_public(settings: Settings) -> Client:
    """
    Create a Supabase client with the anon/public key.

    Use cases:
      - reading public buckets
      - verifying tokens via Supabase endpoints (if needed later)

    Note: This client still respects RLS.
    """
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


def supabase_admin(settings: Settings) -> Client:
    """
    Create a Supabase client with the service role key.

    Use cases:
      - uploading to / deleting from the product images bucket
      - listing storage folders for cleanup

    WARNING:
      - Never expose service role key to frontend.
      - Only backend should call this.

    Raises:
        RuntimeError: if SUPABASE_SERVICE_ROLE_KEY is not set.
    """
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY in .env")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
