"""FastAPI route handlers for the analysis API."""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from milestone_analyzer.api.dependencies import get_invoker, get_store, require_api_key
from milestone_analyzer.api.schemas import AnalyzeResponse, ErrorResponse, PolicyBody
from milestone_analyzer.errors import INTERNAL_ERROR_MESSAGE, AnalyzerError
from milestone_analyzer.models.catalog import ApiKey, MilestoneIdName
from milestone_analyzer.models.stats import InvocationStat, InvocationStatus
from milestone_analyzer.pipeline.recorder import InvocationTrace, record_invocation
from milestone_analyzer.pipeline.runner import AnalysisOutcome, run_analysis
from milestone_analyzer.pipeline.sources import UploadSource
from milestone_analyzer.storage.base import CatalogStore
from milestone_analyzer.tools.gemini import AnalysisInvoker

logger = structlog.get_logger()

router = APIRouter(prefix="/api")

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status: {"model": ErrorResponse} for status in (400, 401, 404, 500)
}


async def _upload_source(value: Any) -> UploadSource | None:
    """Only real file parts count as an uploaded video."""
    if not isinstance(value, UploadFile):
        return None
    data = await value.read()
    return UploadSource(
        data=data,
        file_name=value.filename or "video.mp4",
        declared_mime_type=value.content_type,
    )


def _text_field(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _analyze_response(outcome: AnalysisOutcome) -> AnalyzeResponse:
    decision = outcome.decision
    return AnalyzeResponse(
        milestoneId=outcome.milestone_id,
        result=decision.result,
        confidence=decision.confidence,
        validators=decision.validators,
        policy=PolicyBody(
            minValidatorsPassed=outcome.policy.min_validators_passed,
            minConfidence=outcome.policy.min_confidence,
        ),
    )


@router.post("/analyze", response_model=AnalyzeResponse, responses=_ERROR_RESPONSES)
async def analyze(
    request: Request,
    background_tasks: BackgroundTasks,
    api_key: ApiKey = Depends(require_api_key),
    store: CatalogStore = Depends(get_store),
    invoker: AnalysisInvoker = Depends(get_invoker),
):
    """Analyze a milestone video (multipart: milestoneId + video | videoUrl).

    The response-stats row is written in a background task after the response
    is sent, so recording can neither fail nor delay the request.
    """
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    headers = {"X-Request-Id": request_id}
    trace = InvocationTrace(request_id=request_id, api_key_id=api_key.id)

    try:
        async with request.form() as form:
            upload = await _upload_source(form.get("video"))
            outcome = await run_analysis(
                store,
                invoker,
                milestone_id_raw=form.get("milestoneId"),
                upload=upload,
                video_url=_text_field(form.get("videoUrl")),
                trace=trace,
            )
    except AnalyzerError as exc:
        logger.warning(
            "analyze.rejected",
            request_id=request_id,
            status_code=exc.status_code,
            error_code=exc.error_code,
            reason=exc.message,
        )
        background_tasks.add_task(
            record_invocation,
            store,
            trace.to_stat(InvocationStatus.ERROR, http_status=exc.status_code, error_code=exc.error_code),
        )
        return JSONResponse(
            status_code=exc.status_code, content={"error": exc.response_message}, headers=headers
        )
    except Exception:
        logger.exception("analyze.failed", request_id=request_id)
        background_tasks.add_task(
            record_invocation,
            store,
            trace.to_stat(InvocationStatus.ERROR, http_status=500, error_code="INTERNAL_ERROR"),
        )
        return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR_MESSAGE}, headers=headers)

    background_tasks.add_task(
        record_invocation, store, trace.to_stat(InvocationStatus.SUCCESS, http_status=200)
    )
    body = _analyze_response(outcome)
    return JSONResponse(content=body.model_dump(mode="json"), headers=headers)


@router.get(
    "/analyze-results/{request_id}",
    response_model=list[InvocationStat],
    responses=_ERROR_RESPONSES,
)
async def get_analyze_results(
    request_id: str,
    _: ApiKey = Depends(require_api_key),
    store: CatalogStore = Depends(get_store),
):
    """Return the recorded response stats for one analyze request."""
    stats = await store.get_response_stats(request_id)
    if not stats:
        return JSONResponse(status_code=404, content={"error": "Analysis result not found"})
    return stats


@router.get("/milestone-ids", response_model=list[MilestoneIdName], responses=_ERROR_RESPONSES)
async def list_milestone_ids(
    _: ApiKey = Depends(require_api_key),
    store: CatalogStore = Depends(get_store),
):
    """List milestone id/name pairs."""
    return await store.list_milestone_ids()
