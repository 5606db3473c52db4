"""
Custom Exception Hierarchy for the Tutor Gateway

Every error that can end a tutor request carries the HTTP status the host
layer should answer with, so handlers never have to guess.

Exception Hierarchy:
    GatewayError (base)
    ├── ValidationError            400
    ├── PaymentRequiredError       402
    ├── AuthorizationError         403
    ├── RateLimitError             429
    ├── ConfigurationError         500
    ├── ContextUnavailableError    500
    ├── UpstreamUnavailableError   502
    ├── LLMError
    │   └── LLMServiceError        (single model attempt, internal)
    └── PromptTemplateError        500

Usage:
    from tutor_gateway.exceptions import RateLimitError

    if not decision.allowed:
        raise RateLimitError()

    try:
        outcome = await gateway.handle(request, caller)
    except GatewayError as e:
        return JSONResponse(status_code=e.status_code, content={"message": e.message})
"""

from typing import Optional


# ===========================================
# Base Exception
# ===========================================


class GatewayError(Exception):
    """
    Base exception for all tutor gateway errors.

    Attributes:
        message: Human-readable message safe to return to the caller
        status_code: HTTP-equivalent status
        details: Optional structured context for logs (never returned)
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        status_code: Optional[int] = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional error details
            status_code: Override for the class default status
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code

    @property
    def is_server_error(self) -> bool:
        """Whether this error is a 5xx-class failure."""
        return self.status_code >= 500


# ===========================================
# Caller Errors (4xx)
# ===========================================


class ValidationError(GatewayError):
    """Raised when the request payload cannot be used (missing prompt)."""

    status_code = 400


class PaymentRequiredError(GatewayError):
    """Raised when the plan lacks AI access or the daily quota is used up."""

    status_code = 402

    def __init__(self, message: str, plan: Optional[str] = None, reason: str = "payment_required"):
        """
        Initialize payment required error.

        Args:
            message: Upsell-friendly message
            plan: Plan slug, when known
            reason: Short machine-readable reason (plan_gated, daily_limit)
        """
        super().__init__(message, details={"plan": plan, "reason": reason})
        self.plan = plan
        self.reason = reason


class AuthorizationError(GatewayError):
    """Raised when the caller may not use the requested mode."""

    status_code = 403


class RateLimitError(GatewayError):
    """Raised when the IP or learner burst limit is exceeded."""

    status_code = 429

    def __init__(self, scope: str = "learner", remaining: int = 0):
        """
        Initialize rate limit error.

        Args:
            scope: Which limiter rejected the request ("ip" or "learner")
            remaining: Remaining budget reported by the limiter
        """
        super().__init__(
            "Too many AI requests. Please wait a moment and try again.",
            details={"scope": scope, "remaining": remaining},
        )
        self.scope = scope
        self.remaining = remaining


# ===========================================
# Server Errors (5xx)
# ===========================================


class ConfigurationError(GatewayError):
    """Raised when configuration is invalid or missing."""

    status_code = 500

    def __init__(self, config_key: str, reason: str):
        """
        Initialize configuration error.

        Args:
            config_key: Configuration key that is invalid
            reason: Reason for the error
        """
        super().__init__(f"AI is not configured. {reason}", details={"config_key": config_key})
        self.config_key = config_key
        self.reason = reason


class ContextUnavailableError(GatewayError):
    """Raised when the learner profile cannot be loaded."""

    status_code = 500


class UpstreamUnavailableError(GatewayError):
    """Raised when neither the primary nor the fallback model answered."""

    status_code = 502

    def __init__(self, message: str = "The tutor is unavailable right now. Please try again shortly.", details: Optional[dict] = None):
        super().__init__(message, details=details)


# ===========================================
# LLM Errors
# ===========================================


class LLMError(GatewayError):
    """Base exception for model-call errors."""

    status_code = 502


class LLMServiceError(LLMError):
    """Raised when a single upstream model attempt fails."""

    def __init__(
        self,
        message: str,
        model_name: Optional[str] = None,
        status: Optional[int] = None,
    ):
        """
        Initialize LLM service error.

        Args:
            message: Error message
            model_name: Name of the model that failed
            status: Upstream HTTP status, if the provider answered
        """
        super().__init__(message, details={"model": model_name, "upstream_status": status})
        self.model_name = model_name
        self.upstream_status = status


# ===========================================
# Prompt Errors
# ===========================================


class PromptTemplateError(GatewayError):
    """Raised when prompt template rendering fails."""

    status_code = 500

    def __init__(self, template_name: str, missing_vars: list[str]):
        """
        Initialize prompt template error.

        Args:
            template_name: Name of the template
            missing_vars: List of missing template variables
        """
        message = f"Prompt template '{template_name}' missing variables: {', '.join(missing_vars)}"
        super().__init__(message, details={"template": template_name})
        self.template_name = template_name
        self.missing_vars = missing_vars
