"""The analyze pipeline from request fields to a policy decision."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from milestone_analyzer.errors import ConfigurationMissing, InvalidMilestoneId, MilestoneNotFound
from milestone_analyzer.models.analysis import Decision
from milestone_analyzer.models.catalog import Policy
from milestone_analyzer.pipeline.materializer import materialized_video
from milestone_analyzer.pipeline.policy import evaluate_policy, resolve_effective_policy
from milestone_analyzer.pipeline.prompt import build_prompt
from milestone_analyzer.pipeline.recorder import InvocationTrace
from milestone_analyzer.pipeline.sources import UploadSource, resolve_video_source
from milestone_analyzer.storage.base import CatalogStore
from milestone_analyzer.tools.gemini import AnalysisInvoker

logger = structlog.get_logger()

_INTEGER = re.compile(r"^[+-]?[0-9]+$")


@dataclass(frozen=True)
class AnalysisOutcome:
    milestone_id: int
    decision: Decision
    policy: Policy


def parse_milestone_id(raw: Any) -> int:
    """Accept an int or a string of ASCII digits (optional sign, surrounding whitespace)."""
    if isinstance(raw, bool):
        raise InvalidMilestoneId("milestoneId must be an integer")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and _INTEGER.match(raw.strip()):
        try:
            return int(raw.strip())
        except ValueError as exc:
            # Longer than the interpreter's int string-conversion limit.
            raise InvalidMilestoneId("milestoneId is out of range") from exc
    raise InvalidMilestoneId("milestoneId must be an integer")


async def run_analysis(
    store: CatalogStore,
    invoker: AnalysisInvoker,
    *,
    milestone_id_raw: Any,
    upload: UploadSource | None,
    video_url: str | None,
    trace: InvocationTrace,
    http_client: httpx.AsyncClient | None = None,
) -> AnalysisOutcome:
    """Run one analyze request end to end.

    *trace* is filled in as values become known so the caller can record an
    audit row on both the success and the failure path.

    Raises:
        AnalyzerError: any categorized failure (see ``milestone_analyzer.errors``).
    """
    source = resolve_video_source(upload, video_url)
    milestone_id = parse_milestone_id(milestone_id_raw)
    trace.milestone_id = milestone_id

    milestone, validators, system_prompt, model = await asyncio.gather(
        store.get_milestone(milestone_id),
        store.get_validators(milestone_id),
        store.get_current_system_prompt(),
        store.get_active_model(),
    )

    if milestone is None:
        raise MilestoneNotFound(f"Milestone {milestone_id} not found")
    if not validators:
        raise ConfigurationMissing(f"Milestone {milestone_id} has no validators", error_code="NO_VALIDATORS")
    if system_prompt is None:
        raise ConfigurationMissing("No system prompt configured", error_code="NO_SYSTEM_PROMPT")
    trace.system_prompt_id = system_prompt.id
    if model is None:
        raise ConfigurationMissing("No active model configured", error_code="NO_ACTIVE_MODEL")
    trace.model_id = model.id
    trace.model_name = model.name

    policy = await resolve_effective_policy(store, milestone)
    trace.policy_id = policy.id

    prompt = build_prompt(system_prompt.content, milestone.name, validators)

    async with materialized_video(source, http_client=http_client) as video:
        logger.info(
            "analyze.submit",
            request_id=trace.request_id,
            milestone_id=milestone_id,
            source=type(source).__name__,
            model=model.name,
        )
        model_response, token_count = await invoker.submit(video, prompt, model.name)
    trace.total_token_count = token_count

    decision = evaluate_policy(model_response, policy)
    trace.record_decision(decision)

    logger.info(
        "analyze.completed",
        request_id=trace.request_id,
        milestone_id=milestone_id,
        result=decision.result,
        confidence=decision.confidence,
        validators_passed=trace.validators_passed,
        validators_total=trace.validators_total,
    )
    return AnalysisOutcome(milestone_id=milestone_id, decision=decision, policy=policy)
