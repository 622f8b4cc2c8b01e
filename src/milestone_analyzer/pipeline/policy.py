"""Pass/fail policy evaluation over sanitized model output."""

from __future__ import annotations

import structlog

from milestone_analyzer.errors import ConfigurationMissing
from milestone_analyzer.models.analysis import Decision, ModelResponse, PolicyThreshold, ValidatorCheck
from milestone_analyzer.models.catalog import Milestone, Policy
from milestone_analyzer.storage.base import CatalogStore

logger = structlog.get_logger()


def percent_passed(validators: list[ValidatorCheck]) -> float:
    """Share of passing validators as a 0-100 percentage; 0 when there are none."""
    total = len(validators)
    if total == 0:
        return 0.0
    passed = sum(1 for v in validators if v.result is True)
    return passed / total * 100


def evaluate_policy(response: ModelResponse, policy: PolicyThreshold) -> Decision:
    # Confidence is taken as a 0-1 fraction; no clamping happens here.
    confidence_pct = response.confidence * 100
    result = (
        percent_passed(response.validators) >= policy.min_validators_passed
        and confidence_pct >= policy.min_confidence
    )
    return Decision(result=result, confidence=response.confidence, validators=response.validators)


async def resolve_effective_policy(store: CatalogStore, milestone: Milestone) -> Policy:
    """Return the milestone's own policy if it still exists, else the default policy."""
    policy = None
    if milestone.policy_id is not None:
        policy = await store.get_policy(milestone.policy_id)
        if policy is None:
            logger.warning(
                "policy.dangling_reference",
                milestone_id=milestone.id,
                policy_id=milestone.policy_id,
            )
    if policy is None:
        policy = await store.get_default_policy()
    if policy is None:
        raise ConfigurationMissing("No policy resolvable for milestone", error_code="NO_POLICY")
    return policy
