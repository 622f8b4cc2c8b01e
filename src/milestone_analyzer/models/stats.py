"""Pydantic models for the response-stats audit trail."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class InvocationStatus(str, Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class InvocationStat(BaseModel):
    """One append-only record per analyze request attempt.

    Foreign references are weak (plain ids); ``id`` and ``created_at`` are
    assigned by storage on insert.
    """

    id: Optional[int] = None
    created_at: Optional[datetime] = None
    request_id: str
    status: InvocationStatus
    http_status: Optional[int] = None
    error_code: Optional[str] = None
    api_key_id: Optional[int] = None
    milestone_id: Optional[int] = None
    system_prompt_id: Optional[int] = None
    policy_id: Optional[int] = None
    model_id: Optional[int] = None
    model_name: Optional[str] = None
    total_token_count: Optional[int] = None
    result: Optional[bool] = None
    confidence: Optional[int] = None  # integer percent
    validators_total: Optional[int] = None
    validators_passed: Optional[int] = None
    processing_time_ms: Optional[int] = None
