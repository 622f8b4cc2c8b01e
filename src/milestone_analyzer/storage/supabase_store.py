"""Supabase (PostgREST) implementation of the catalog store."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from supabase import Client, create_client

from milestone_analyzer.models.catalog import (
    AiModel,
    ApiKey,
    Milestone,
    MilestoneIdName,
    Policy,
    SystemPrompt,
    Validator,
)
from milestone_analyzer.models.stats import InvocationStat
from milestone_analyzer.storage.base import CatalogStore

logger = structlog.get_logger()


class SupabaseCatalogStore(CatalogStore):
    """Runs sync Supabase SDK calls in a thread pool to avoid blocking the event loop."""

    def __init__(self, supabase_url: str, service_role_key: str):
        self.supabase_url = supabase_url
        self.service_role_key = service_role_key
        self._client: Client | None = None

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = create_client(self.supabase_url, self.service_role_key)
        return self._client

    def _first_row_sync(self, table: str, column: str, value: Any) -> dict | None:
        response = (
            self._get_client()
            .table(table)
            .select("*")
            .eq(column, value)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def _first_row(self, table: str, column: str, value: Any) -> dict | None:
        return await asyncio.to_thread(self._first_row_sync, table, column, value)

    # -- catalog ------------------------------------------------------------

    async def get_milestone(self, milestone_id: int) -> Optional[Milestone]:
        row = await self._first_row("milestones", "id", milestone_id)
        return Milestone(**row) if row else None

    def _get_validators_sync(self, milestone_id: int) -> list[dict]:
        response = (
            self._get_client()
            .table("validators")
            .select("*")
            .eq("milestone_id", milestone_id)
            .order("id")
            .execute()
        )
        return response.data or []

    async def get_validators(self, milestone_id: int) -> list[Validator]:
        rows = await asyncio.to_thread(self._get_validators_sync, milestone_id)
        return [Validator(**row) for row in rows]

    def _get_current_system_prompt_sync(self) -> dict | None:
        response = (
            self._get_client()
            .table("system_prompt_history")
            .select("*")
            .order("id", desc=True)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def get_current_system_prompt(self) -> Optional[SystemPrompt]:
        row = await asyncio.to_thread(self._get_current_system_prompt_sync)
        return SystemPrompt(**row) if row else None

    async def get_active_model(self) -> Optional[AiModel]:
        row = await self._first_row("models", "is_active", True)
        return AiModel(**row) if row else None

    async def get_policy(self, policy_id: int) -> Optional[Policy]:
        row = await self._first_row("policies", "id", policy_id)
        return Policy(**row) if row else None

    async def get_default_policy(self) -> Optional[Policy]:
        row = await self._first_row("policies", "is_default", True)
        return Policy(**row) if row else None

    def _list_milestone_ids_sync(self) -> list[dict]:
        response = self._get_client().table("milestones").select("id, name").order("id").execute()
        return response.data or []

    async def list_milestone_ids(self) -> list[MilestoneIdName]:
        rows = await asyncio.to_thread(self._list_milestone_ids_sync)
        return [MilestoneIdName(**row) for row in rows]

    # -- api keys -----------------------------------------------------------

    async def get_api_key(self, key: str) -> Optional[ApiKey]:
        row = await self._first_row("api_keys", "key", key)
        return ApiKey(**row) if row else None

    def _touch_api_key_sync(self, api_key_id: int) -> None:
        self._get_client().table("api_keys").update(
            {"last_used_at": datetime.now(timezone.utc).isoformat()}
        ).eq("id", api_key_id).execute()

    async def touch_api_key(self, api_key_id: int) -> None:
        await asyncio.to_thread(self._touch_api_key_sync, api_key_id)

    # -- response stats -----------------------------------------------------

    def _insert_response_stat_sync(self, stat: InvocationStat) -> dict:
        payload = stat.model_dump(mode="json", exclude={"id", "created_at"})
        response = self._get_client().table("response_stats").insert(payload).execute()
        logger.info("supabase.response_stat.inserted", request_id=stat.request_id)
        return response.data[0] if response.data else payload

    async def insert_response_stat(self, stat: InvocationStat) -> InvocationStat:
        row = await asyncio.to_thread(self._insert_response_stat_sync, stat)
        return InvocationStat(**row)

    def _get_response_stats_sync(self, request_id: str) -> list[dict]:
        response = (
            self._get_client()
            .table("response_stats")
            .select("*")
            .eq("request_id", request_id)
            .order("id")
            .execute()
        )
        return response.data or []

    async def get_response_stats(self, request_id: str) -> list[InvocationStat]:
        rows = await asyncio.to_thread(self._get_response_stats_sync, request_id)
        return [InvocationStat(**row) for row in rows]
