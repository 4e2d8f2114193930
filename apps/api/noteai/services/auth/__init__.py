from __future__ import annotations

from noteai.services.auth.supabase_auth import AuthenticatedUser, SupabaseAuthClient

__all__ = ["AuthenticatedUser", "SupabaseAuthClient"]
