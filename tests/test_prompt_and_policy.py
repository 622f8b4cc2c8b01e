"""Unit tests for prompt composition and policy evaluation."""

import pytest

from conftest import model_response
from milestone_analyzer.errors import ConfigurationMissing
from milestone_analyzer.models.analysis import ModelResponse, PolicyThreshold
from milestone_analyzer.models.catalog import Milestone, MilestoneCategory, Policy, Validator
from milestone_analyzer.pipeline.policy import evaluate_policy, percent_passed, resolve_effective_policy
from milestone_analyzer.pipeline.prompt import build_prompt

POLICY = PolicyThreshold(min_validators_passed=80, min_confidence=70)


def _validators(*descriptions: str) -> list[Validator]:
    return [Validator(id=i, milestone_id=7, description=d) for i, d in enumerate(descriptions, 1)]


# ============================================================================
# Prompt builder
# ============================================================================


class TestBuildPrompt:
    def test_section_order_and_separators(self):
        prompt = build_prompt("Base prompt.", "Waves bye-bye", _validators("Raises hand", "Moves hand"))
        assert prompt == (
            "Base prompt.\n\n"
            "Milestone: Waves bye-bye\n\n"
            "Validators:\n- Raises hand\n- Moves hand"
        )

    def test_empty_base_prompt_omitted(self):
        prompt = build_prompt("", "Waves bye-bye", _validators("Raises hand"))
        assert prompt == "Milestone: Waves bye-bye\n\nValidators:\n- Raises hand"

    def test_deterministic(self):
        args = ("Base", "Stacks blocks", _validators("a", "b", "c"))
        assert build_prompt(*args) == build_prompt(*args)


# ============================================================================
# Policy evaluator
# ============================================================================


class TestEvaluatePolicy:
    def test_all_pass_high_confidence(self):
        decision = evaluate_policy(model_response([True] * 4, 0.9), POLICY)
        assert decision.result is True
        assert decision.confidence == 0.9

    def test_three_of_four_fails_validator_threshold(self):
        decision = evaluate_policy(model_response([True, True, True, False], 0.95), POLICY)
        assert decision.result is False

    def test_thresholds_are_inclusive(self):
        response = model_response([True, True, True, True, False], 0.75)
        policy = PolicyThreshold(min_validators_passed=80, min_confidence=75)
        assert evaluate_policy(response, policy).result is True

    def test_low_confidence_fails(self):
        assert evaluate_policy(model_response([True] * 4, 0.69), POLICY).result is False

    def test_zero_validators(self):
        empty = ModelResponse(validators=[], confidence=1.0)
        assert percent_passed(empty.validators) == 0
        assert evaluate_policy(empty, POLICY).result is False
        assert evaluate_policy(empty, PolicyThreshold(min_validators_passed=0, min_confidence=0)).result is True

    def test_out_of_range_confidence_not_clamped(self):
        decision = evaluate_policy(model_response([True], 1.5), POLICY)
        assert decision.confidence == 1.5
        assert decision.result is True

    def test_decision_carries_validators(self):
        response = model_response([True, False], 0.8)
        assert evaluate_policy(response, POLICY).validators == response.validators

    @pytest.mark.parametrize("total", [1, 3, 4, 7, 10])
    @pytest.mark.parametrize("confidence", [0.0, 0.5, 0.7, 1.0])
    def test_monotonic_in_passing_fraction(self, total, confidence):
        outcomes = [
            evaluate_policy(model_response([True] * k + [False] * (total - k), confidence), POLICY).result
            for k in range(total + 1)
        ]
        first_true = outcomes.index(True) if True in outcomes else len(outcomes)
        assert all(outcomes[first_true:])


# ============================================================================
# Effective policy resolution
# ============================================================================


class TestResolveEffectivePolicy:
    @pytest.mark.asyncio
    async def test_own_policy(self, store):
        milestone = await store.get_milestone(7)
        policy = await resolve_effective_policy(store, milestone)
        assert policy.id == 1

    @pytest.mark.asyncio
    async def test_default_policy_when_unset(self, store):
        milestone = await store.get_milestone(8)
        policy = await resolve_effective_policy(store, milestone)
        assert policy.id == 2

    @pytest.mark.asyncio
    async def test_dangling_reference_falls_back_to_default(self, store):
        milestone = Milestone(id=7, name="x", category=MilestoneCategory.SOCIAL, policy_id=99)
        policy = await resolve_effective_policy(store, milestone)
        assert policy.id == 2

    @pytest.mark.asyncio
    async def test_nothing_resolvable(self, store):
        store.policies = {1: Policy(id=1, min_validators_passed=80, min_confidence=70)}
        milestone = Milestone(id=7, name="x", category=MilestoneCategory.SOCIAL, policy_id=99)
        with pytest.raises(ConfigurationMissing) as exc_info:
            await resolve_effective_policy(store, milestone)
        assert exc_info.value.error_code == "NO_POLICY"
        assert exc_info.value.status_code == 500
