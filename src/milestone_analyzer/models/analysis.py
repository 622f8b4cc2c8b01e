"""Pydantic models for model output and policy decisions."""

from pydantic import BaseModel, Field


class ValidatorCheck(BaseModel):
    description: str
    result: bool


class ModelResponse(BaseModel):
    """Sanitized model output: exactly ``{description, result}[]`` plus confidence (0-1)."""

    validators: list[ValidatorCheck] = Field(default_factory=list)
    confidence: float


class PolicyThreshold(BaseModel):
    min_validators_passed: int = Field(ge=0, le=100, description="Percent of validators that must pass")
    min_confidence: int = Field(ge=0, le=100, description="Minimum model confidence, percent")


class Decision(BaseModel):
    result: bool
    confidence: float
    validators: list[ValidatorCheck]
