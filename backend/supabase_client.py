# backend/supabase_client.py
from supabase import AsyncClient, acreate_client

from .config import Settings


async def create_client(settings: Settings) -> AsyncClient:
    """Cliente assíncrono: o realtime do supabase-py só existe na versão async."""
    return await acreate_client(settings.supabase_url, settings.supabase_anon_key)
