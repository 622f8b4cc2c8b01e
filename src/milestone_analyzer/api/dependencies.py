"""Dependency providers for the store, the model invoker and API-key auth."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

import structlog
from fastapi import Depends, Header

from milestone_analyzer.config import settings
from milestone_analyzer.errors import Unauthorized
from milestone_analyzer.models.catalog import ApiKey
from milestone_analyzer.storage.base import CatalogStore
from milestone_analyzer.tools.gemini import AnalysisInvoker, GeminiAnalysisInvoker

logger = structlog.get_logger()


@lru_cache(maxsize=1)
def get_store() -> CatalogStore:
    """Return a singleton catalog store.

    Uses Supabase when supabase_url is set, otherwise falls back to an empty
    in-memory store.
    """
    if settings.supabase_url:
        from milestone_analyzer.storage.supabase_store import SupabaseCatalogStore

        return SupabaseCatalogStore(settings.supabase_url, settings.supabase_service_role_key)

    from milestone_analyzer.storage.memory_store import InMemoryCatalogStore

    logger.warning("store.in_memory", reason="supabase_url not configured")
    return InMemoryCatalogStore()


@lru_cache(maxsize=1)
def get_invoker() -> AnalysisInvoker:
    return GeminiAnalysisInvoker()


def extract_api_key(x_api_key: Optional[str], authorization: Optional[str]) -> Optional[str]:
    """X-API-Key wins; otherwise ``Authorization: Bearer <key>``."""
    if x_api_key:
        return x_api_key
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    return None


async def require_api_key(
    x_api_key: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
    store: CatalogStore = Depends(get_store),
) -> ApiKey:
    key = extract_api_key(x_api_key, authorization)
    if not key:
        raise Unauthorized("No API key provided")

    api_key = await store.get_api_key(key)
    if api_key is None:
        raise Unauthorized("Invalid API key")
    if not api_key.is_active:
        raise Unauthorized("API key is inactive")

    try:
        await store.touch_api_key(api_key.id)
    except Exception:
        logger.exception("api_key.touch_failed", api_key_id=api_key.id)
    return api_key
