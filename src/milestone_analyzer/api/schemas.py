"""Response schemas for the FastAPI endpoints."""

from __future__ import annotations

from pydantic import BaseModel

from milestone_analyzer.models.analysis import ValidatorCheck


class PolicyBody(BaseModel):
    minValidatorsPassed: int
    minConfidence: int


class AnalyzeResponse(BaseModel):
    milestoneId: int
    result: bool
    confidence: float
    validators: list[ValidatorCheck]
    policy: PolicyBody


class ErrorResponse(BaseModel):
    error: str
