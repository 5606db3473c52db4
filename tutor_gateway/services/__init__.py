"""
Services for the Tutor Gateway

This package contains service classes for external integrations
and in-process state.

Modules:
    - llm_service: OpenRouter chat completions with failover
    - rate_limiter: Sliding-window burst limiting
    - usage_ledger: Daily quota accounting
    - plan_limits: Plan entitlement lookup
    - student_context: Learner context aggregation
"""

from tutor_gateway.services.llm_service import LLMService, ModelReply
from tutor_gateway.services.rate_limiter import (
    RateLimiter,
    RateLimitDecision,
    SlidingWindowRateLimiter,
)
from tutor_gateway.services.usage_ledger import (
    UsageLedger,
    InMemoryUsageLedger,
    merge_tutor_limits,
)
from tutor_gateway.services.plan_limits import PlanCatalog, PlanLimitsProvider
from tutor_gateway.services.student_context import (
    StudentDataSource,
    InMemoryStudentDataSource,
    SupabaseStudentDataSource,
    StudentContextBuilder,
)

__all__ = [
    "LLMService",
    "ModelReply",
    "RateLimiter",
    "RateLimitDecision",
    "SlidingWindowRateLimiter",
    "UsageLedger",
    "InMemoryUsageLedger",
    "merge_tutor_limits",
    "PlanCatalog",
    "PlanLimitsProvider",
    "StudentDataSource",
    "InMemoryStudentDataSource",
    "SupabaseStudentDataSource",
    "StudentContextBuilder",
]
