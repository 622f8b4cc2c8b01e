"""Pytest configuration and shared fixtures."""

import os

# Environment defaults for tests (must be set before settings are imported)
os.environ["SUPABASE_URL"] = ""
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from milestone_analyzer.api.dependencies import get_invoker, get_store
from milestone_analyzer.config import settings
from milestone_analyzer.main import app
from milestone_analyzer.models.analysis import ModelResponse, ValidatorCheck
from milestone_analyzer.models.catalog import (
    AiModel,
    ApiKey,
    Milestone,
    MilestoneCategory,
    Policy,
    SystemPrompt,
    Validator,
)
from milestone_analyzer.storage.memory_store import InMemoryCatalogStore

API_KEY = "test-api-key"
INACTIVE_API_KEY = "inactive-api-key"

VALIDATOR_DESCRIPTIONS = [
    "Child raises a hand toward another person",
    "Hand moves side to side at least twice",
    "Gesture happens while someone is leaving or greeting",
    "Child looks at the person while waving",
]


class FakeInvoker:
    """Stands in for the Gemini invoker; records every submit call."""

    def __init__(self, response: ModelResponse | None = None, token_count: int | None = 1234):
        self.response = response or model_response([True, True, True, True], 0.9)
        self.token_count = token_count
        self.error: Exception | None = None
        self.calls: list[dict] = []

    async def submit(self, video, prompt, model_id):
        self.calls.append(
            {
                "video": video,
                "prompt": prompt,
                "model_id": model_id,
                "scratch_exists": getattr(video, "path", None) is not None and video.path.exists(),
            }
        )
        if self.error is not None:
            raise self.error
        return self.response, self.token_count


def model_response(results: list[bool], confidence: float) -> ModelResponse:
    return ModelResponse(
        validators=[
            ValidatorCheck(description=f"validator {i}", result=r) for i, r in enumerate(results, 1)
        ],
        confidence=confidence,
    )


@pytest.fixture(autouse=True)
def scratch_dir(tmp_path, monkeypatch):
    """Point scratch storage at a per-test temp directory."""
    directory = tmp_path / "scratch"
    directory.mkdir()
    monkeypatch.setattr(settings, "scratch_dir", str(directory))
    return directory


@pytest.fixture
def store() -> InMemoryCatalogStore:
    return InMemoryCatalogStore(
        milestones=[
            Milestone(id=7, name="Waves bye-bye", category=MilestoneCategory.SOCIAL, policy_id=1),
            Milestone(id=8, name="Stacks two blocks", category=MilestoneCategory.FINE_MOTOR),
            Milestone(id=9, name="Says mama", category=MilestoneCategory.LANGUAGE),
        ],
        validators=[
            Validator(id=i, milestone_id=7, description=d)
            for i, d in enumerate(VALIDATOR_DESCRIPTIONS, 1)
        ]
        + [Validator(id=10, milestone_id=8, description="Places one block on top of another")],
        policies=[
            Policy(id=1, min_validators_passed=80, min_confidence=70),
            Policy(id=2, min_validators_passed=50, min_confidence=50, is_default=True),
        ],
        system_prompts=[
            SystemPrompt(id=1, content="Old prompt"),
            SystemPrompt(id=2, content="You assess infant developmental milestones from video."),
        ],
        models=[
            AiModel(id=1, name="gemini-1.5-pro", is_active=False),
            AiModel(id=2, name="gemini-2.5-flash", is_active=True),
        ],
        api_keys=[
            ApiKey(id=1, key=API_KEY, user_id="user-1", name="ci"),
            ApiKey(id=2, key=INACTIVE_API_KEY, user_id="user-1", name="revoked", is_active=False),
        ],
    )


@pytest.fixture
def invoker() -> FakeInvoker:
    return FakeInvoker()


@pytest_asyncio.fixture
async def client(store, invoker):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_invoker] = lambda: invoker
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()
