from supabase import AsyncClient, acreate_client
from .config import get_settings


async def create_session_client() -> AsyncClient:
    """
    Returns a fresh Supabase client using the anon key.

    Every browser session gets its own client so that the auth session the
    client keeps in memory belongs to exactly one visitor.
    """
    settings = get_settings()
    return await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
