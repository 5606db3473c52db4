"""
Shared fixtures for the tutor gateway tests.

The upstream model is replaced by FakeChatClient, injected into LLMService;
learner data comes from an InMemoryStudentDataSource.
"""

from types import SimpleNamespace

import pytest

from tutor_gateway.agents.orchestrator import TutorGateway
from tutor_gateway.config import Settings
from tutor_gateway.models.context import CallerContext
from tutor_gateway.services.llm_service import LLMService
from tutor_gateway.services.plan_limits import PlanCatalog
from tutor_gateway.services.student_context import InMemoryStudentDataSource, StudentContextBuilder
from tutor_gateway.services.usage_ledger import InMemoryUsageLedger


PRIMARY_MODEL = "primary/model"
FALLBACK_MODEL = "fallback/model"
DEFAULT_REPLY = "Let's start with a hint: what two numbers multiply to -9?"


class FakeChatClient:
    """
    Stand-in for AsyncOpenAI exposing chat.completions.create.

    Each call consumes the next scripted outcome: a string is returned as the
    message content, an exception is raised. Once the script runs out every
    call returns DEFAULT_REPLY.
    """

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0) if self.outcomes else DEFAULT_REPLY
        if isinstance(outcome, BaseException):
            raise outcome
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=outcome))]
        )


class CountingDataSource(InMemoryStudentDataSource):
    """In-memory data source that counts profile reads."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.profile_calls = 0

    async def fetch_profile(self, student_id):
        self.profile_calls += 1
        return await super().fetch_profile(student_id)


def build_profiles():
    return {
        "student-10": {"grade": 10, "level": 3, "strengths": ["Algebra"], "learning_style": {}},
        "student-5": {"grade": 5, "level": 1, "learning_style": {}},
        "student-off": {"grade": 7, "learning_style": {"allowTutor": False}},
        "student-capped": {"grade": 8, "learning_style": {"tutorDailyLimit": 1}},
        "student-zero": {"grade": 8, "learning_style": {"tutor_daily_limit": 0}},
        "student-pii": {
            "grade": 9,
            "strengths": ["email kid@example.com", "call 555-123-4567"],
            "learning_style": {},
        },
    }


@pytest.fixture
def settings():
    """Settings isolated from the developer's .env."""
    return Settings(
        _env_file=None,
        openrouter_api_key="test-key",
        primary_model=PRIMARY_MODEL,
        fallback_model=FALLBACK_MODEL,
    )


@pytest.fixture
def data_source():
    return CountingDataSource(profiles=build_profiles())


@pytest.fixture
def ledger():
    return InMemoryUsageLedger()


@pytest.fixture
def plans():
    return PlanCatalog()


@pytest.fixture
def make_gateway(settings, data_source, ledger):
    """Factory: make_gateway(*outcomes, **overrides) -> (gateway, fake_client)."""

    def _make(*outcomes, **overrides):
        client = FakeChatClient(*outcomes)
        gateway_settings = overrides.pop("settings", settings)
        gateway = TutorGateway(
            llm=LLMService(settings=gateway_settings, client=client),
            context_builder=StudentContextBuilder(overrides.pop("data_source", data_source)),
            usage_ledger=overrides.pop("usage_ledger", ledger),
            settings=gateway_settings,
            **overrides,
        )
        return gateway, client

    return _make


@pytest.fixture
def student_caller(plans):
    """Factory for an authenticated student caller on a given plan."""

    def _caller(user_id="student-10", plan_slug="family-free", role="student", client_ip="203.0.113.7"):
        return CallerContext(
            user_id=user_id,
            role=role,
            client_ip=client_ip,
            plan=plans.get(plan_slug),
        )

    return _caller
