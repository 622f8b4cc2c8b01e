"""Unit tests for response-stats recording."""

from unittest.mock import AsyncMock

import pytest

from conftest import model_response
from milestone_analyzer.models.analysis import Decision
from milestone_analyzer.models.stats import InvocationStatus
from milestone_analyzer.pipeline.recorder import InvocationTrace, record_invocation


class TestInvocationTrace:
    def test_decision_fields(self):
        trace = InvocationTrace(request_id="req-1", api_key_id=1)
        response = model_response([True, True, False], 0.876)
        trace.record_decision(Decision(result=False, confidence=0.876, validators=response.validators))

        stat = trace.to_stat(InvocationStatus.SUCCESS, http_status=200)
        assert stat.request_id == "req-1"
        assert stat.confidence == 88
        assert stat.validators_total == 3
        assert stat.validators_passed == 2
        assert stat.result is False
        assert stat.processing_time_ms >= 0
        assert stat.error_code is None

    def test_error_stat(self):
        stat = InvocationTrace(request_id="req-2").to_stat(
            InvocationStatus.ERROR, http_status=400, error_code="INVALID_VIDEO"
        )
        assert stat.status is InvocationStatus.ERROR
        assert stat.http_status == 400
        assert stat.error_code == "INVALID_VIDEO"
        assert stat.result is None


class TestRecordInvocation:
    @pytest.mark.asyncio
    async def test_appends(self, store):
        stat = InvocationTrace(request_id="req-3").to_stat(InvocationStatus.SUCCESS, http_status=200)
        await record_invocation(store, stat)

        stored = await store.get_response_stats("req-3")
        assert len(stored) == 1
        assert stored[0].id is not None
        assert stored[0].created_at is not None

    @pytest.mark.asyncio
    async def test_failure_swallowed(self, store):
        store.insert_response_stat = AsyncMock(side_effect=RuntimeError("db down"))
        stat = InvocationTrace(request_id="req-4").to_stat(InvocationStatus.SUCCESS, http_status=200)

        await record_invocation(store, stat)
        store.insert_response_stat.assert_awaited_once()
