"""Gemini video analysis: submits a video plus prompt and returns sanitized output."""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Protocol

import httpx
import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from milestone_analyzer.config import settings
from milestone_analyzer.errors import ModelInvocationError, ModelResponseParseError
from milestone_analyzer.models.analysis import ModelResponse, ValidatorCheck
from milestone_analyzer.pipeline.materializer import (
    LocalVideoFile,
    MaterializedVideo,
    RemoteVideoReference,
)

logger = structlog.get_logger()

RESPONSE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "validators": types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "description": types.Schema(type=types.Type.STRING),
                    "result": types.Schema(type=types.Type.BOOLEAN),
                    "reasonForFailure": types.Schema(type=types.Type.STRING),
                },
                required=["description", "result"],
                property_ordering=["description", "result", "reasonForFailure"],
            ),
        ),
        "confidence": types.Schema(type=types.Type.NUMBER),
    },
    required=["validators", "confidence"],
    property_ordering=["validators", "confidence"],
)


class AnalysisInvoker(Protocol):
    async def submit(
        self, video: MaterializedVideo, prompt: str, model_id: str
    ) -> tuple[ModelResponse, Optional[int]]: ...


# ---------------------------------------------------------------------------
# Response sanitizing
# ---------------------------------------------------------------------------

_TRUTHY = frozenset({"true", "yes", "1", "pass", "passed"})


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


class _RawValidatorCheck(BaseModel):
    model_config = ConfigDict(extra="ignore")

    description: str = ""
    result: bool = False

    @field_validator("result", mode="before")
    @classmethod
    def _coerce_result(cls, value: Any) -> bool:
        return _coerce_bool(value)


class _RawModelResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    validators: list[_RawValidatorCheck]
    confidence: float = Field(allow_inf_nan=False)


def parse_model_response(text: Optional[str]) -> ModelResponse:
    """Parse the model's JSON body into the internal shape.

    Extra fields (free-text failure reasons included) are dropped, ``result`` is
    coerced to bool and confidence is clamped to [0, 1].

    Raises:
        ModelResponseParseError: body is missing, not JSON, or the wrong shape.
    """
    if not text:
        raise ModelResponseParseError("Model returned an empty response")
    try:
        raw = _RawModelResponse.model_validate_json(text)
    except ValidationError as exc:
        logger.warning("gemini.response.invalid", errors=exc.error_count())
        raise ModelResponseParseError("Model response did not match the expected schema") from exc

    confidence = raw.confidence
    if not 0.0 <= confidence <= 1.0:
        logger.warning("gemini.response.confidence_out_of_range", confidence=confidence)
        confidence = min(max(confidence, 0.0), 1.0)

    return ModelResponse(
        validators=[ValidatorCheck(description=v.description, result=v.result) for v in raw.validators],
        confidence=confidence,
    )


# ---------------------------------------------------------------------------
# Invoker
# ---------------------------------------------------------------------------


class GeminiAnalysisInvoker:
    """Sends videos to Gemini.

    Small local files are inlined into the request; larger ones are uploaded to
    the Gemini file store, polled until processing finishes and deleted
    afterwards. YouTube links are passed by URL.
    """

    def __init__(
        self,
        client: genai.Client | None = None,
        *,
        inline_max_bytes: int | None = None,
        poll_interval_sec: float | None = None,
        max_poll_attempts: int | None = None,
    ):
        self._client = client
        self.inline_max_bytes = (
            inline_max_bytes if inline_max_bytes is not None else settings.inline_video_max_bytes
        )
        self.poll_interval_sec = (
            poll_interval_sec if poll_interval_sec is not None else settings.file_poll_interval_sec
        )
        self.max_poll_attempts = (
            max_poll_attempts if max_poll_attempts is not None else settings.file_poll_max_attempts
        )

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=settings.google_api_key)
        return self._client

    async def _wait_for_active(self, uploaded: types.File) -> types.File:
        """Poll until the uploaded file leaves PROCESSING, up to max_poll_attempts."""
        file = uploaded
        attempts = 0
        while file.state == types.FileState.PROCESSING:
            if attempts >= self.max_poll_attempts:
                raise ModelInvocationError(
                    f"Uploaded video still processing after {attempts} polls (name={file.name})"
                )
            await asyncio.sleep(self.poll_interval_sec)
            attempts += 1
            file = await self.client.aio.files.get(name=file.name)
            logger.debug("gemini.upload.poll", name=file.name, state=str(file.state), attempt=attempts)

        if file.state == types.FileState.FAILED:
            raise ModelInvocationError(f"Video processing failed (name={file.name})")
        return file

    async def _upload(self, video: LocalVideoFile) -> types.File:
        uploaded = await self.client.aio.files.upload(
            file=str(video.path),
            config=types.UploadFileConfig(mime_type=video.mime_type, display_name=video.path.name),
        )
        logger.info("gemini.upload.done", name=uploaded.name, size=video.size)
        return uploaded

    async def _delete_uploaded(self, name: str) -> None:
        try:
            await self.client.aio.files.delete(name=name)
        except Exception:
            logger.warning("gemini.upload.delete_failed", name=name, exc_info=True)

    async def _generate(self, video_part: types.Part, prompt: str, model_id: str):
        return await self.client.aio.models.generate_content(
            model=model_id,
            contents=[video_part, prompt],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=RESPONSE_SCHEMA,
            ),
        )

    async def submit(
        self, video: MaterializedVideo, prompt: str, model_id: str
    ) -> tuple[ModelResponse, Optional[int]]:
        """Run the analysis and return ``(sanitized response, total token count)``."""
        uploaded_name: str | None = None
        loop = asyncio.get_running_loop()
        start = loop.time()
        try:
            if isinstance(video, RemoteVideoReference):
                part = types.Part(file_data=types.FileData(file_uri=video.url, mime_type=video.mime_type))
            elif video.size <= self.inline_max_bytes:
                data = await asyncio.to_thread(video.path.read_bytes)
                part = types.Part.from_bytes(data=data, mime_type=video.mime_type)
            else:
                uploaded = await self._upload(video)
                uploaded_name = uploaded.name
                active = await self._wait_for_active(uploaded)
                part = types.Part.from_uri(file_uri=active.uri, mime_type=active.mime_type or video.mime_type)

            logger.info("gemini.generate.start", model=model_id, prompt_len=len(prompt))
            response = await self._generate(part, prompt, model_id)
        except genai_errors.APIError as exc:
            logger.warning("gemini.generate.api_error", model=model_id, code=exc.code)
            raise ModelInvocationError(f"Gemini request failed: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.warning("gemini.generate.transport_error", model=model_id, error=str(exc))
            raise ModelInvocationError(f"Gemini request failed: {exc}") from exc
        finally:
            if uploaded_name:
                await self._delete_uploaded(uploaded_name)

        usage = response.usage_metadata
        token_count = usage.total_token_count if usage else None
        logger.info(
            "gemini.generate.done",
            model=model_id,
            elapsed_sec=round(loop.time() - start, 2),
            total_token_count=token_count,
        )
        return parse_model_response(response.text), token_count
