"""In-memory catalog store for local development and tests.

Replace with the Supabase-backed implementation by setting ``SUPABASE_URL``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from itertools import count
from typing import Iterable, Optional

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


class InMemoryCatalogStore(CatalogStore):
    def __init__(
        self,
        milestones: Iterable[Milestone] = (),
        validators: Iterable[Validator] = (),
        policies: Iterable[Policy] = (),
        system_prompts: Iterable[SystemPrompt] = (),
        models: Iterable[AiModel] = (),
        api_keys: Iterable[ApiKey] = (),
    ):
        self.milestones: dict[int, Milestone] = {m.id: m for m in milestones}
        self.validators: list[Validator] = list(validators)
        self.policies: dict[int, Policy] = {p.id: p for p in policies}
        self.system_prompts: list[SystemPrompt] = list(system_prompts)
        self.models: list[AiModel] = list(models)
        self.api_keys: dict[str, ApiKey] = {k.key: k for k in api_keys}
        self.response_stats: list[InvocationStat] = []
        self._stat_ids = count(1)

    async def get_milestone(self, milestone_id: int) -> Optional[Milestone]:
        return self.milestones.get(milestone_id)

    async def get_validators(self, milestone_id: int) -> list[Validator]:
        return [v for v in self.validators if v.milestone_id == milestone_id]

    async def get_current_system_prompt(self) -> Optional[SystemPrompt]:
        return max(self.system_prompts, key=lambda p: p.id, default=None)

    async def get_active_model(self) -> Optional[AiModel]:
        return next((m for m in self.models if m.is_active), None)

    async def get_policy(self, policy_id: int) -> Optional[Policy]:
        return self.policies.get(policy_id)

    async def get_default_policy(self) -> Optional[Policy]:
        return next((p for p in self.policies.values() if p.is_default), None)

    async def get_api_key(self, key: str) -> Optional[ApiKey]:
        return self.api_keys.get(key)

    async def touch_api_key(self, api_key_id: int) -> None:
        for key, api_key in self.api_keys.items():
            if api_key.id == api_key_id:
                self.api_keys[key] = api_key.model_copy(
                    update={"last_used_at": datetime.now(timezone.utc)}
                )

    async def insert_response_stat(self, stat: InvocationStat) -> InvocationStat:
        stored = stat.model_copy(
            update={"id": next(self._stat_ids), "created_at": datetime.now(timezone.utc)}
        )
        self.response_stats.append(stored)
        return stored

    async def get_response_stats(self, request_id: str) -> list[InvocationStat]:
        return [s for s in self.response_stats if s.request_id == request_id]

    async def list_milestone_ids(self) -> list[MilestoneIdName]:
        return [
            MilestoneIdName(id=m.id, name=m.name)
            for m in sorted(self.milestones.values(), key=lambda m: m.id)
        ]
