from functools import lru_cache

from supabase import Client, ClientOptions, create_client

from app.core.config import get_settings

settings = get_settings()


def _stateless_options() -> ClientOptions:
    return ClientOptions(persist_session=False, auto_refresh_token=False)


@lru_cache
def supabase_public() -> Client:
    """
    Create the shared Supabase client with the anon/public key.

    Use cases (calls that take the user's token and open no session):
      - resolving a bearer token to its auth user (remote verification)
      - sign-out / resend confirmation

    Sign-up and sign-in store the returned session on the client that
    made the call, so they go through `supabase_auth_session()` instead.

    Note: This client still respects RLS.
    """
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY, _stateless_options())


def supabase_auth_session() -> Client:
    """
    Create a throwaway anon client for ONE sign-up or sign-in call.

    The session Supabase hands back lives and dies with this client.
    """
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY, _stateless_options())


@lru_cache
def supabase_storage() -> Client:
    """
    Create the Supabase client used for review media Storage.

    Uses the service role key when configured (bypasses bucket policies),
    otherwise falls back to the anon key.

    WARNING:
      - Never expose service role key to frontend.
      - Only backend should call this.
    """
    key = settings.SUPABASE_SERVICE_ROLE_KEY or settings.SUPABASE_KEY
    return create_client(settings.SUPABASE_URL, key, _stateless_options())
