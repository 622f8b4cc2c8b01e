"""Storage interface for the milestone catalog, API keys and response stats."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

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


class CatalogStore(ABC):
    """Read access to the catalog plus the append-only response-stats log."""

    @abstractmethod
    async def get_milestone(self, milestone_id: int) -> Optional[Milestone]: ...

    @abstractmethod
    async def get_validators(self, milestone_id: int) -> list[Validator]: ...

    @abstractmethod
    async def get_current_system_prompt(self) -> Optional[SystemPrompt]:
        """Return the most recent prompt-history row (highest id)."""

    @abstractmethod
    async def get_active_model(self) -> Optional[AiModel]:
        """Return the single model row flagged active."""

    @abstractmethod
    async def get_policy(self, policy_id: int) -> Optional[Policy]: ...

    @abstractmethod
    async def get_default_policy(self) -> Optional[Policy]: ...

    @abstractmethod
    async def get_api_key(self, key: str) -> Optional[ApiKey]: ...

    @abstractmethod
    async def touch_api_key(self, api_key_id: int) -> None:
        """Set ``last_used_at`` to now."""

    @abstractmethod
    async def insert_response_stat(self, stat: InvocationStat) -> InvocationStat: ...

    @abstractmethod
    async def get_response_stats(self, request_id: str) -> list[InvocationStat]: ...

    @abstractmethod
    async def list_milestone_ids(self) -> list[MilestoneIdName]: ...
