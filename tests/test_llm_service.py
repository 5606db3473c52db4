"""
Tests for tutor_gateway.services.llm_service: single calls and failover.
"""

import asyncio
import logging

import httpx
import openai
import pytest

from conftest import FALLBACK_MODEL, PRIMARY_MODEL, FakeChatClient
from tutor_gateway.exceptions import ConfigurationError, LLMServiceError, UpstreamUnavailableError
from tutor_gateway.models.messages import ChatMessage
from tutor_gateway.services.llm_service import LLMService


MESSAGES = [
    ChatMessage(role="system", content="You are ElevatED, a patient K-12 tutor."),
    ChatMessage(role="user", content="Help me factor x^2 - 9"),
]

UPSTREAM_REQUEST = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")


def status_error(status):
    return openai.APIStatusError(
        "upstream failure",
        response=httpx.Response(status, request=UPSTREAM_REQUEST),
        body=None,
    )


def make_service(settings, *outcomes):
    client = FakeChatClient(*outcomes)
    return LLMService(settings=settings, client=client), client


# ============================================================
# Single call
# ============================================================

class TestCall:

    def test_request_shape(self, settings):
        service, client = make_service(settings, "Try difference of squares.")
        reply = asyncio.run(service.call(MESSAGES, PRIMARY_MODEL))

        assert reply.model == PRIMARY_MODEL
        assert reply.message == "Try difference of squares."
        assert client.calls == [{
            "model": PRIMARY_MODEL,
            "messages": [
                {"role": "system", "content": "You are ElevatED, a patient K-12 tutor."},
                {"role": "user", "content": "Help me factor x^2 - 9"},
            ],
            "temperature": 0.4,
        }]

    def test_output_is_trimmed_and_sanitized(self, settings):
        service, _ = make_service(settings, "  Ask your teacher at teacher@school.org  \n\n")
        reply = asyncio.run(service.call(MESSAGES, PRIMARY_MODEL))
        assert reply.message == "Ask your teacher at [redacted]"

    def test_output_capped(self, settings):
        service, _ = make_service(settings, "y" * 4000)
        reply = asyncio.run(service.call(MESSAGES, PRIMARY_MODEL))
        assert len(reply.message) == 1600

    @pytest.mark.parametrize("content", ["", "   \n  "])
    def test_empty_content_is_failure(self, settings, content):
        service, _ = make_service(settings, content)
        with pytest.raises(LLMServiceError) as exc_info:
            asyncio.run(service.call(MESSAGES, PRIMARY_MODEL))
        assert "missing content" in exc_info.value.message
        assert exc_info.value.model_name == PRIMARY_MODEL

    def test_status_error_keeps_upstream_status(self, settings):
        service, _ = make_service(settings, status_error(503))
        with pytest.raises(LLMServiceError) as exc_info:
            asyncio.run(service.call(MESSAGES, PRIMARY_MODEL))
        assert exc_info.value.upstream_status == 503

    def test_timeout_is_failure(self, settings):
        service, _ = make_service(settings, openai.APITimeoutError(request=UPSTREAM_REQUEST))
        with pytest.raises(LLMServiceError) as exc_info:
            asyncio.run(service.call(MESSAGES, PRIMARY_MODEL))
        assert "Timed out" in exc_info.value.message

    def test_transport_error_is_failure(self, settings):
        service, _ = make_service(settings, ConnectionError("connection reset"))
        with pytest.raises(LLMServiceError):
            asyncio.run(service.call(MESSAGES, PRIMARY_MODEL))


# ============================================================
# Failover
# ============================================================

class TestCallWithFallback:

    def test_primary_success_makes_one_call(self, settings):
        service, client = make_service(settings, "Primary answer")
        reply = asyncio.run(service.call_with_fallback(MESSAGES))

        assert reply.model == PRIMARY_MODEL
        assert len(client.calls) == 1

    def test_fallback_receives_identical_messages(self, settings, caplog):
        caplog.set_level(logging.INFO, logger="tutor.llm")
        service, client = make_service(settings, ConnectionError("reset"), "Fallback answer")

        reply = asyncio.run(service.call_with_fallback(MESSAGES))

        assert reply.model == FALLBACK_MODEL
        assert reply.message == "Fallback answer"
        assert [call["model"] for call in client.calls] == [PRIMARY_MODEL, FALLBACK_MODEL]
        assert client.calls[0]["messages"] == client.calls[1]["messages"]

        failed = [r for r in caplog.records if getattr(r, "status", None) == "failed"]
        assert [r.attempts for r in failed] == ["primary"]
        assert failed[0].levelno == logging.ERROR
        completed = [r for r in caplog.records if getattr(r, "status", None) == "complete"]
        assert [r.attempts for r in completed] == ["fallback"]

    def test_empty_primary_reply_triggers_fallback(self, settings):
        service, client = make_service(settings, "", "Fallback answer")
        reply = asyncio.run(service.call_with_fallback(MESSAGES))
        assert reply.model == FALLBACK_MODEL
        assert len(client.calls) == 2

    def test_both_failing_raises_upstream_unavailable(self, settings):
        service, client = make_service(settings, status_error(500), ConnectionError("reset"))

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            asyncio.run(service.call_with_fallback(MESSAGES))

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "The tutor is unavailable right now. Please try again shortly."
        assert len(client.calls) == 2

    def test_same_model_id_is_still_retried_once(self, settings):
        same = settings.model_copy(update={"fallback_model": PRIMARY_MODEL})
        service, client = make_service(same, ConnectionError("reset"), "Second try")
        reply = asyncio.run(service.call_with_fallback(MESSAGES))
        assert reply.message == "Second try"
        assert [call["model"] for call in client.calls] == [PRIMARY_MODEL, PRIMARY_MODEL]


# ============================================================
# Client construction
# ============================================================

class TestClient:

    def test_missing_key_is_configuration_error(self, settings):
        service = LLMService(settings=settings.model_copy(update={"openrouter_api_key": None}))
        with pytest.raises(ConfigurationError) as exc_info:
            service.client
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "AI is not configured. Missing OPENROUTER_API_KEY."

    def test_built_client_settings(self, settings):
        client = LLMService(settings=settings).client

        assert client.max_retries == 0
        assert client.timeout == 12.0
        assert str(client.base_url).startswith("https://openrouter.ai/api/v1")
        assert client.default_headers["X-Title"] == "ElevatED"
        assert client.default_headers["HTTP-Referer"] == "https://elevated.chat"
