"""
Tutor Gateway Orchestrator

The central component that mediates every tutor request between the client
and the upstream model: it throttles, gates, grounds, screens and records.

Design:
- Collaborators (limiters, ledger, context builder, composer, classifier,
  model caller, ops store) are constructed once and injected
- Learning and marketing turns share one pipeline; learning-only steps are
  skipped for marketing
- Every rejection, refusal and success is logged with hashed identities
  and recorded in the ops store

Flow:
1. Upstream API key check
2. IP rate limit, then learner rate limit
3. Role check (learning)
4. Plan AI access (learning)
5. Daily quota check with the plan limit (learning)
6. Learner context build and parental controls (learning, authenticated)
7. Prompt composition
8. Safety classification (learning); a match returns a canned refusal
9. Model call with failover
10. Quota recording (learning)
"""

import logging
import time
import uuid
from typing import Optional

from tutor_gateway.agents.safety import SafetyClassifier
from tutor_gateway.config import Settings, get_settings
from tutor_gateway.exceptions import (
    AuthorizationError,
    ConfigurationError,
    GatewayError,
    PaymentRequiredError,
    RateLimitError,
    UpstreamUnavailableError,
)
from tutor_gateway.logging_config import create_request_logger, get_logger, log_gateway_event
from tutor_gateway.models.context import (
    CallerContext,
    DailyLimit,
    LearningTurn,
    MarketingTurn,
    StudentContext,
)
from tutor_gateway.models.messages import (
    GuardrailRefusal,
    QuotaStatus,
    TutorOutcome,
    TutorReply,
    TutorRequest,
)
from tutor_gateway.models.ops_events import OpsEventStore
from tutor_gateway.monitoring import capture_exception
from tutor_gateway.prompts.composer import PromptComposer
from tutor_gateway.services.llm_service import LLMService
from tutor_gateway.services.rate_limiter import RateLimiter, SlidingWindowRateLimiter
from tutor_gateway.services.student_context import (
    InMemoryStudentDataSource,
    StudentContextBuilder,
    SupabaseStudentDataSource,
)
from tutor_gateway.services.usage_ledger import InMemoryUsageLedger, UsageLedger, merge_tutor_limits
from tutor_gateway.utils.text_utils import anonymize


logger = get_logger("gateway")

STUDENT_ONLY_MESSAGE = "Learning assistant is only available for student accounts."
UPGRADE_REQUIRED_MESSAGE = "Upgrade required to access the AI assistant."
TUTOR_DISABLED_MESSAGE = "Your grown-up turned off tutor chats for now. Ask them if you need it back on."


class TutorGateway:
    """
    Orchestrates a single tutor request end to end.

    Limiter, ledger and ops state live in the injected collaborators, so one
    gateway instance serves the whole process.
    """

    def __init__(
        self,
        llm: LLMService,
        context_builder: StudentContextBuilder,
        composer: Optional[PromptComposer] = None,
        classifier: Optional[SafetyClassifier] = None,
        usage_ledger: Optional[UsageLedger] = None,
        ip_limiter: Optional[RateLimiter] = None,
        learner_limiter: Optional[RateLimiter] = None,
        ops_store: Optional[OpsEventStore] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the gateway.

        Args:
            llm: Model caller with failover
            context_builder: Learner context builder
            composer: Prompt composer
            classifier: Safety classifier
            usage_ledger: Daily quota ledger
            ip_limiter: Burst limiter keyed by hashed client IP
            learner_limiter: Burst limiter keyed by hashed user id
            ops_store: Ops telemetry store
            settings: Application settings
        """
        self.settings = settings or get_settings()
        self.llm = llm
        self.context_builder = context_builder
        self.composer = composer or PromptComposer()
        self.classifier = classifier or SafetyClassifier()
        self.usage_ledger = usage_ledger or InMemoryUsageLedger()
        self.ip_limiter = ip_limiter or SlidingWindowRateLimiter(
            limit=self.settings.ip_rate_limit,
            window_seconds=self.settings.rate_limit_window_seconds,
            name="ip",
        )
        self.learner_limiter = learner_limiter or SlidingWindowRateLimiter(
            limit=self.settings.learner_rate_limit,
            window_seconds=self.settings.rate_limit_window_seconds,
            name="learner",
        )
        self.ops_store = ops_store or OpsEventStore()

    async def handle(self, request: TutorRequest, caller: CallerContext) -> TutorOutcome:
        """
        Process one tutor request.

        Args:
            request: Parsed request body
            caller: Identity, role, IP and plan derived by the host layer

        Returns:
            TutorReply, or GuardrailRefusal when the safety check matched

        Raises:
            GatewayError: Typed rejection carrying its HTTP status; any
                untyped failure surfaces as UpstreamUnavailableError
        """
        mode = request.resolved_mode
        request_log = create_request_logger(logger, f"req_{uuid.uuid4().hex[:8]}", mode)
        hashed_user = anonymize(caller.user_id)
        hashed_ip = anonymize(caller.client_ip)
        plan_slug = caller.plan.slug if caller.plan else None

        try:
            return await self._process(request, caller, request_log, hashed_user, hashed_ip)

        except GatewayError as e:
            self._record_rejection(e, plan_slug)
            level = logging.ERROR if e.is_server_error else logging.WARNING
            log_gateway_event(
                request_log,
                event="tutor_rejected",
                outcome=type(e).__name__,
                learner=hashed_user,
                client=hashed_ip,
                data={"status": e.status_code, "plan": plan_slug, **e.details},
                level=level,
            )
            if e.is_server_error:
                capture_exception(e, mode=mode, learner=hashed_user, plan=plan_slug)
            raise

        except Exception as e:
            request_log.error(
                f"Unexpected gateway failure: {e}",
                exc_info=True,
                extra={"component": "gateway", "event": "tutor_failed", "learner": hashed_user},
            )
            capture_exception(e, mode=mode, learner=hashed_user, plan=plan_slug)
            self.ops_store.record("tutor_error", reason=type(e).__name__, plan=plan_slug, status=502)
            raise UpstreamUnavailableError(details={"error": type(e).__name__}) from e

    # ===========================================
    # Pipeline
    # ===========================================

    async def _process(
        self,
        request: TutorRequest,
        caller: CallerContext,
        request_log: logging.LoggerAdapter,
        hashed_user: Optional[str],
        hashed_ip: Optional[str],
    ) -> TutorOutcome:
        start_time = time.time()
        is_learning = request.resolved_mode == "learning"
        plan = caller.plan
        plan_slug = plan.slug if plan else None
        usage_key = hashed_user or hashed_ip or "anonymous"

        if not self.settings.openrouter_api_key:
            raise ConfigurationError("OPENROUTER_API_KEY", "Missing OPENROUTER_API_KEY.")

        self._enforce_rate_limit(self.ip_limiter, f"ip:{hashed_ip}" if hashed_ip else None)
        self._enforce_rate_limit(self.learner_limiter, f"user:{hashed_user}" if hashed_user else None)

        student_context: Optional[StudentContext] = None
        tutor_limit: DailyLimit = None
        remaining: Optional[int] = None

        if is_learning:
            if caller.role and caller.role != "student":
                raise AuthorizationError(STUDENT_ONLY_MESSAGE, details={"role": caller.role})

            if plan and not plan.ai_access:
                raise PaymentRequiredError(UPGRADE_REQUIRED_MESSAGE, plan=plan_slug, reason="plan_gated")

            tutor_limit = plan.tutor_daily_limit if plan else None
            remaining = self.usage_ledger.enforce(tutor_limit, usage_key, plan_slug)

            if caller.user_id:
                student_context = await self.context_builder.build(caller.user_id)
                tutor_limit, remaining = self._apply_parental_controls(
                    student_context, tutor_limit, remaining, usage_key, plan_slug
                )

            turn = LearningTurn(student_context=student_context)
        else:
            turn = MarketingTurn(knowledge=request.knowledge)

        messages = self.composer.compose(turn, request.prompt, request.system_prompt)
        quota = QuotaStatus(remaining=remaining, limit=tutor_limit, plan=plan_slug) if is_learning else None

        if is_learning:
            reason = self.classifier.classify(messages[-1].content, student_context)
            if reason:
                log_gateway_event(
                    request_log,
                    event="tutor_safety_block",
                    outcome="refused",
                    learner=hashed_user,
                    client=hashed_ip,
                    data={
                        "reason": reason,
                        "plan": plan_slug,
                        "grade": student_context.grade if student_context else None,
                        "chat_mode": student_context.chat_mode if student_context else None,
                    },
                    level=logging.WARNING,
                )
                self.ops_store.record("tutor_safety_block", reason=reason, plan=plan_slug)
                return GuardrailRefusal(
                    message=self.classifier.build_refusal(reason, student_context),
                    reason=reason,
                    quota=quota,
                )

        log_gateway_event(
            request_log,
            event="tutor_request",
            outcome="calling_model",
            learner=hashed_user,
            client=hashed_ip,
            data={
                "prompt_chars": len(messages[-1].content),
                "has_context": student_context is not None,
                "plan": plan_slug,
                "limit": tutor_limit,
                "remaining": remaining,
            },
            level=logging.DEBUG,
        )

        reply = await self.llm.call_with_fallback(messages)

        if is_learning:
            quota.remaining = self.usage_ledger.record(tutor_limit, usage_key)

        duration_ms = int((time.time() - start_time) * 1000)
        log_gateway_event(
            request_log,
            event="tutor_success",
            outcome="ok",
            learner=hashed_user,
            client=hashed_ip,
            data={
                "model": reply.model,
                "response_chars": len(reply.message),
                "plan": plan_slug,
                "remaining": quota.remaining if quota else None,
                "duration_ms": duration_ms,
            },
        )
        self.ops_store.record("tutor_success", plan=plan_slug, model=reply.model)
        self.ops_store.record("tutor_latency", plan=plan_slug, model=reply.model, duration_ms=duration_ms)

        return TutorReply(message=reply.message, model=reply.model, quota=quota)

    # ===========================================
    # Gates
    # ===========================================

    @staticmethod
    def _enforce_rate_limit(limiter: RateLimiter, key: Optional[str]) -> None:
        """Check one limiter; callers without that identity skip it."""
        if not key:
            return
        decision = limiter.check(key)
        if not decision.allowed:
            raise RateLimitError(scope=limiter.name, remaining=decision.remaining)

    def _apply_parental_controls(
        self,
        context: StudentContext,
        plan_limit: DailyLimit,
        remaining: Optional[int],
        usage_key: str,
        plan_slug: Optional[str],
    ) -> tuple[DailyLimit, Optional[int]]:
        """
        Apply the learner-level switches set by a grown-up.

        Returns:
            Effective daily limit and the remaining count under it

        Raises:
            AuthorizationError: If tutor chats are turned off for the learner
            PaymentRequiredError: If the stricter learner cap is used up
        """
        if not context.allow_tutor:
            raise AuthorizationError(TUTOR_DISABLED_MESSAGE, details={"reason": "disabled"})

        if context.tutor_daily_limit is None:
            return plan_limit, remaining

        effective_limit = merge_tutor_limits(plan_limit, context.tutor_daily_limit)
        if effective_limit == 0:
            raise AuthorizationError(TUTOR_DISABLED_MESSAGE, details={"reason": "disabled"})

        return effective_limit, self.usage_ledger.enforce(effective_limit, usage_key, plan_slug)

    def _record_rejection(self, error: GatewayError, plan_slug: Optional[str]) -> None:
        """Record a typed rejection in the ops store."""
        if isinstance(error, RateLimitError):
            self.ops_store.record("tutor_plan_limit", reason="rate_limit", plan=plan_slug)
        elif isinstance(error, PaymentRequiredError):
            self.ops_store.record("tutor_plan_limit", reason=error.reason, plan=plan_slug)
        elif error.details.get("reason") == "disabled":
            self.ops_store.record("tutor_plan_limit", reason="disabled", plan=plan_slug)
        else:
            self.ops_store.record(
                "tutor_error",
                reason=type(error).__name__,
                plan=plan_slug,
                status=error.status_code,
            )


def create_gateway(settings: Optional[Settings] = None) -> TutorGateway:
    """
    Build a gateway with the default in-process collaborators.

    Learner data comes from Supabase when SUPABASE_URL and
    SUPABASE_SERVICE_ROLE_KEY are set, otherwise from an empty in-memory
    source (every learner gets the default context).
    """
    settings = settings or get_settings()

    if settings.supabase_url and settings.supabase_service_role_key:
        data_source = SupabaseStudentDataSource(settings.supabase_url, settings.supabase_service_role_key)
    else:
        logger.warning(
            "Supabase not configured; learner context uses an empty in-memory source",
            extra={"component": "gateway", "event": "context_source_fallback"},
        )
        data_source = InMemoryStudentDataSource()

    return TutorGateway(
        llm=LLMService(settings=settings),
        context_builder=StudentContextBuilder(data_source),
        settings=settings,
    )
