"""
LLM Service for the Tutor Gateway

This module provides a clean interface to the OpenRouter chat-completions
API through the OpenAI SDK, with:
- A concrete request timeout and no SDK-level retries
- Exactly one failover attempt on a second model
- Output sanitization before anything reaches the caller
- Integration with application logging and Sentry

Design Principles:
- Single Responsibility: Only handles model calls
- Dependency Injection: Settings and client can be passed in
- Testability: Any object exposing chat.completions.create can stand in

Usage:
    from tutor_gateway.services.llm_service import LLMService

    llm = LLMService()
    reply = await llm.call_with_fallback(messages)
    print(reply.model, reply.message)
"""

import time
from typing import Any, Optional

from openai import AsyncOpenAI, APIStatusError, APITimeoutError, OpenAIError
from pydantic import BaseModel

from tutor_gateway.config import Settings, get_settings
from tutor_gateway.exceptions import ConfigurationError, LLMServiceError, UpstreamUnavailableError
from tutor_gateway.logging_config import get_logger, log_llm_event
from tutor_gateway.models.messages import ChatMessage
from tutor_gateway.monitoring import capture_exception
from tutor_gateway.utils.text_utils import sanitize_output, truncate_text


logger = get_logger("llm")


class ModelReply(BaseModel):
    """Sanitized reply from one model."""

    message: str
    model: str


class LLMService:
    """
    Service for OpenRouter chat completions with primary/fallback failover.

    Attributes:
        primary_model: Model id tried first
        fallback_model: Model id tried once when the primary fails
        temperature: Sampling temperature
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[Any] = None,
    ):
        """
        Initialize LLM service.

        Args:
            settings: Application settings (defaults to get_settings())
            client: Preconfigured AsyncOpenAI-compatible client (tests)
        """
        self.settings = settings or get_settings()
        self.primary_model = self.settings.primary_model
        self.fallback_model = self.settings.fallback_model
        self.temperature = self.settings.llm_temperature
        self.timeout = self.settings.llm_timeout_seconds
        self._client = client

    @property
    def client(self) -> Any:
        """Upstream client, created on first use once the API key is known."""
        if self._client is None:
            if not self.settings.openrouter_api_key:
                raise ConfigurationError("OPENROUTER_API_KEY", "Missing OPENROUTER_API_KEY.")
            self._client = AsyncOpenAI(
                api_key=self.settings.openrouter_api_key,
                base_url=self.settings.openrouter_base_url,
                default_headers={
                    "HTTP-Referer": self.settings.app_base_url,
                    "X-Title": self.settings.app_title,
                },
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    async def call(
        self,
        messages: list[ChatMessage],
        model: str,
        attempt: str = "primary",
        caller: str = "gateway",
    ) -> ModelReply:
        """
        Single chat-completions call.

        Args:
            messages: Composed message list
            model: Model id
            attempt: "primary" or "fallback" (for logging)
            caller: Caller component name (for logging)

        Returns:
            ModelReply with sanitized content

        Raises:
            LLMServiceError: On transport/API errors or empty content
        """
        log_llm_event(
            logger=logger,
            model=model,
            status="starting",
            caller=caller,
            attempt=attempt,
            params={"messages": len(messages), "temperature": self.temperature},
        )

        start_time = time.time()

        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[message.model_dump() for message in messages],
                temperature=self.temperature,
            )
        except APITimeoutError as e:
            raise self._failed(model, attempt, caller, start_time, f"Timed out after {self.timeout}s") from e
        except APIStatusError as e:
            raise self._failed(
                model, attempt, caller, start_time,
                f"OpenRouter request failed ({e.status_code}) {e.message}",
                status=e.status_code,
            ) from e
        except (OpenAIError, OSError) as e:
            raise self._failed(model, attempt, caller, start_time, str(e) or type(e).__name__) from e

        content = self._extract_content(response)
        if not content:
            raise self._failed(model, attempt, caller, start_time, "OpenRouter response missing content")

        message = sanitize_output(content)

        log_llm_event(
            logger=logger,
            model=model,
            status="complete",
            caller=caller,
            attempt=attempt,
            output={"response_length": len(message)},
            duration_ms=int((time.time() - start_time) * 1000),
        )

        return ModelReply(message=message, model=model)

    async def call_with_fallback(
        self,
        messages: list[ChatMessage],
        caller: str = "gateway",
    ) -> ModelReply:
        """
        Call the primary model, then the fallback model exactly once.

        Both attempts receive the identical message list.

        Args:
            messages: Composed message list
            caller: Caller component name (for logging)

        Returns:
            ModelReply from whichever model answered

        Raises:
            UpstreamUnavailableError: If both attempts fail
        """
        try:
            return await self.call(messages, self.primary_model, attempt="primary", caller=caller)
        except Exception as primary_error:
            capture_exception(primary_error, model=self.primary_model, attempt="primary")
            logger.warning(
                f"Primary model failed, trying fallback: {self.fallback_model}",
                extra={
                    "component": caller,
                    "event": "llm_fallback",
                    "model": self.fallback_model,
                    "error": str(primary_error),
                },
            )

        try:
            return await self.call(messages, self.fallback_model, attempt="fallback", caller=caller)
        except Exception as fallback_error:
            raise UpstreamUnavailableError(
                details={
                    "primary_model": self.primary_model,
                    "fallback_model": self.fallback_model,
                    "error": str(fallback_error),
                },
            ) from fallback_error

    @staticmethod
    def _extract_content(response: Any) -> str:
        """First choice's message content, trimmed; empty when absent."""
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        return content.strip() if isinstance(content, str) else ""

    def _failed(
        self,
        model: str,
        attempt: str,
        caller: str,
        start_time: float,
        error: str,
        status: Optional[int] = None,
    ) -> LLMServiceError:
        log_llm_event(
            logger=logger,
            model=model,
            status="failed",
            caller=caller,
            attempt=attempt,
            error=truncate_text(error, 300),
            duration_ms=int((time.time() - start_time) * 1000),
        )
        return LLMServiceError(error, model_name=model, status=status)
