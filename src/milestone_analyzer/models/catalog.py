"""Pydantic models for the milestone catalog and access records."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from milestone_analyzer.models.analysis import PolicyThreshold


class MilestoneCategory(str, Enum):
    SOCIAL = "SOCIAL"
    LANGUAGE = "LANGUAGE"
    FINE_MOTOR = "FINE_MOTOR"
    GROSS_MOTOR = "GROSS_MOTOR"


class Milestone(BaseModel):
    id: int
    name: str
    category: MilestoneCategory
    policy_id: Optional[int] = None


class Validator(BaseModel):
    id: int
    milestone_id: int
    description: str


class Policy(PolicyThreshold):
    id: int
    is_default: bool = False


class SystemPrompt(BaseModel):
    """One row of the append-only prompt history; the highest id is current."""

    id: int
    content: str
    change_note: Optional[str] = None


class AiModel(BaseModel):
    id: int
    name: str  # provider model identifier, e.g. "gemini-2.5-flash"
    is_active: bool = False


class ApiKey(BaseModel):
    id: int
    key: str
    user_id: str
    name: str
    is_active: bool = True
    last_used_at: Optional[datetime] = None


class MilestoneIdName(BaseModel):
    id: int
    name: str
