"""Adapters - I/O implementations of ports."""

from .supabase_rest import SupabaseClient, SupabaseListStore, SupabaseTaskStore, create_stores

__all__ = [
    "SupabaseClient",
    "SupabaseTaskStore",
    "SupabaseListStore",
    "create_stores",
]
