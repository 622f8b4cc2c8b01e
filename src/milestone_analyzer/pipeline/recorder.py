"""Response-stats recording for each analyze request attempt."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

import structlog

from milestone_analyzer.models.analysis import Decision
from milestone_analyzer.models.stats import InvocationStat, InvocationStatus
from milestone_analyzer.storage.base import CatalogStore

logger = structlog.get_logger()


@dataclass
class InvocationTrace:
    """Audit fields collected while a request moves through the pipeline."""

    request_id: str
    api_key_id: Optional[int] = None
    milestone_id: Optional[int] = None
    system_prompt_id: Optional[int] = None
    policy_id: Optional[int] = None
    model_id: Optional[int] = None
    model_name: Optional[str] = None
    total_token_count: Optional[int] = None
    result: Optional[bool] = None
    confidence: Optional[int] = None
    validators_total: Optional[int] = None
    validators_passed: Optional[int] = None
    started_at: float = field(default_factory=time.perf_counter)

    def record_decision(self, decision: Decision) -> None:
        self.result = decision.result
        self.confidence = round(decision.confidence * 100)
        self.validators_total = len(decision.validators)
        self.validators_passed = sum(1 for v in decision.validators if v.result)

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self.started_at) * 1000)

    def to_stat(
        self,
        status: InvocationStatus,
        http_status: Optional[int] = None,
        error_code: Optional[str] = None,
    ) -> InvocationStat:
        return InvocationStat(
            request_id=self.request_id,
            status=status,
            http_status=http_status,
            error_code=error_code,
            api_key_id=self.api_key_id,
            milestone_id=self.milestone_id,
            system_prompt_id=self.system_prompt_id,
            policy_id=self.policy_id,
            model_id=self.model_id,
            model_name=self.model_name,
            total_token_count=self.total_token_count,
            result=self.result,
            confidence=self.confidence,
            validators_total=self.validators_total,
            validators_passed=self.validators_passed,
            processing_time_ms=self.elapsed_ms(),
        )


async def record_invocation(store: CatalogStore, stat: InvocationStat) -> None:
    """Append *stat* to the audit trail. Failures are logged, never raised."""
    try:
        await store.insert_response_stat(stat)
    except Exception:
        logger.exception(
            "response_stats.record_failed",
            request_id=stat.request_id,
            status=stat.status.value,
        )
