"""
Supabase Client
===============
Configured Supabase clients for the routers and services.

The shared client uses the service_role key (not the anon key) because
the backend reads and writes profile, emotion and streak rows on behalf
of authenticated users.

Password sign-in and token refresh go through a throwaway anon-key
client instead: signing in stores the user session on the client, and
that session must never end up on the shared service client.
"""

from functools import lru_cache

from supabase import Client, create_client

from app.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_service_key)


def create_auth_client() -> Client:
    settings = get_settings()
    key = settings.supabase_anon_key or settings.supabase_service_key
    return create_client(settings.supabase_url, key)
