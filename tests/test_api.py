"""
HTTP tests for the FastAPI app, with the gateway dependency overridden.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import PRIMARY_MODEL
from tutor_gateway import __version__
from tutor_gateway.main import app, get_gateway
from tutor_gateway.models.messages import TutorReply
from tutor_gateway.models.ops_events import OpsEventStore
from tutor_gateway.services.rate_limiter import SlidingWindowRateLimiter


STUDENT_HEADERS = {
    "X-User-Id": "student-10",
    "X-User-Role": "student",
    "X-Plan-Slug": "family-free",
    "X-Forwarded-For": "203.0.113.7",
}


class SpyGateway:
    """Records the caller context instead of running the pipeline."""

    def __init__(self):
        self.callers = []
        self.ops_store = OpsEventStore()

    async def handle(self, request, caller):
        self.callers.append(caller)
        return TutorReply(message="ok", model="spy/model")


@pytest.fixture
def use_gateway():
    def _use(gateway):
        app.dependency_overrides[get_gateway] = lambda: gateway
        return TestClient(app)

    yield _use
    app.dependency_overrides.clear()


# ============================================================
# POST /api/ai/tutor
# ============================================================

class TestTutorEndpoint:

    def test_learning_success_envelope(self, use_gateway, make_gateway):
        gateway, _ = make_gateway("Try a difference of squares.")
        client = use_gateway(gateway)

        response = client.post(
            "/api/ai/tutor",
            json={"prompt": "Help me factor x^2 - 9", "mode": "learning"},
            headers=STUDENT_HEADERS,
        )

        assert response.status_code == 200
        assert response.json() == {
            "message": "Try a difference of squares.",
            "model": PRIMARY_MODEL,
            "remaining": 2,
            "limit": 3,
            "plan": "family-free",
        }

    def test_marketing_envelope_has_null_quota(self, use_gateway, make_gateway):
        gateway, _ = make_gateway("Pro is $9.99/month.")
        client = use_gateway(gateway)

        response = client.post(
            "/api/ai/tutor",
            json={"prompt": "How much is Pro?", "mode": "marketing", "knowledge": "ElevatED costs $9.99/month"},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["message"] == "Pro is $9.99/month."
        assert body["remaining"] is None
        assert body["limit"] is None
        assert body["plan"] is None

    def test_refusal_envelope(self, use_gateway, make_gateway):
        gateway, fake = make_gateway()
        client = use_gateway(gateway)

        response = client.post(
            "/api/ai/tutor",
            json={"prompt": "How do I find my friend's home address?"},
            headers=STUDENT_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["model"] == "guardrail"
        assert response.json()["remaining"] == 3
        assert fake.calls == []

    def test_system_prompt_field_is_forwarded(self, use_gateway, make_gateway):
        gateway, fake = make_gateway()
        client = use_gateway(gateway)

        client.post(
            "/api/ai/tutor",
            json={"prompt": "What is ElevatED?", "mode": "marketing", "systemPrompt": "Answer in one sentence."},
        )

        assert fake.calls[0]["messages"][0]["content"].endswith("\nAnswer in one sentence.")

    def test_missing_prompt(self, use_gateway, make_gateway):
        gateway, _ = make_gateway()
        response = use_gateway(gateway).post("/api/ai/tutor", json={"mode": "learning"})
        assert response.status_code == 400
        assert response.json() == {"message": "Prompt is required."}

    def test_malformed_json(self, use_gateway, make_gateway):
        gateway, _ = make_gateway()
        response = use_gateway(gateway).post(
            "/api/ai/tutor",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json() == {"message": "Invalid request body."}

    def test_unknown_mode(self, use_gateway, make_gateway):
        gateway, _ = make_gateway()
        response = use_gateway(gateway).post("/api/ai/tutor", json={"prompt": "hi", "mode": "homework"})
        assert response.status_code == 400

    def test_rate_limited(self, use_gateway, make_gateway):
        limiter = SlidingWindowRateLimiter(limit=1, window_seconds=300, name="learner")
        gateway, _ = make_gateway(learner_limiter=limiter)
        client = use_gateway(gateway)

        client.post("/api/ai/tutor", json={"prompt": "hi"}, headers=STUDENT_HEADERS)
        response = client.post("/api/ai/tutor", json={"prompt": "hi"}, headers=STUDENT_HEADERS)

        assert response.status_code == 429
        assert response.json() == {"message": "Too many AI requests. Please wait a moment and try again."}

    def test_parent_role_forbidden(self, use_gateway, make_gateway):
        gateway, _ = make_gateway()
        headers = {**STUDENT_HEADERS, "X-User-Role": "parent"}
        response = use_gateway(gateway).post("/api/ai/tutor", json={"prompt": "hi"}, headers=headers)
        assert response.status_code == 403
        assert "student accounts" in response.json()["message"]

    def test_upstream_failure_is_502(self, use_gateway, make_gateway):
        gateway, _ = make_gateway(ConnectionError("reset"), ConnectionError("reset"))
        response = use_gateway(gateway).post("/api/ai/tutor", json={"prompt": "hi"}, headers=STUDENT_HEADERS)
        assert response.status_code == 502
        assert "message" in response.json()


# ============================================================
# Caller context
# ============================================================

class TestCallerContext:

    def test_headers_become_caller_context(self, use_gateway):
        spy = SpyGateway()
        use_gateway(spy).post(
            "/api/ai/tutor",
            json={"prompt": "hi"},
            headers={**STUDENT_HEADERS, "X-Forwarded-For": "198.51.100.4, 10.0.0.1"},
        )

        caller = spy.callers[0]
        assert caller.user_id == "student-10"
        assert caller.role == "student"
        assert caller.client_ip == "198.51.100.4"
        assert caller.plan.slug == "family-free"
        assert caller.plan.tutor_daily_limit == 3

    def test_socket_peer_used_without_forwarded_header(self, use_gateway):
        spy = SpyGateway()
        use_gateway(spy).post("/api/ai/tutor", json={"prompt": "hi"})

        caller = spy.callers[0]
        assert caller.client_ip == "testclient"
        assert caller.user_id is None
        assert caller.role is None

    def test_unknown_plan_falls_back_to_free(self, use_gateway):
        spy = SpyGateway()
        use_gateway(spy).post("/api/ai/tutor", json={"prompt": "hi"}, headers={"X-Plan-Slug": "enterprise"})
        assert spy.callers[0].plan.slug == "family-free"


# ============================================================
# Health and ops
# ============================================================

def test_health(use_gateway):
    response = use_gateway(SpyGateway()).get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "version": __version__}


def test_ops_snapshot(use_gateway, make_gateway):
    gateway, _ = make_gateway()
    client = use_gateway(gateway)
    client.post("/api/ai/tutor", json={"prompt": "hi"}, headers=STUDENT_HEADERS)

    response = client.get("/api/ops/tutor", params={"window_minutes": 15})

    body = response.json()
    assert response.status_code == 200
    assert body["window_seconds"] == 900
    assert body["totals"]["tutor_success"] == 1


def test_ops_window_bounds(use_gateway):
    client = use_gateway(SpyGateway())
    assert client.get("/api/ops/tutor", params={"window_minutes": 0}).status_code == 400
