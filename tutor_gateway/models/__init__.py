"""
Data Models for the Tutor Gateway

This package contains all Pydantic models for the application.

Modules:
    - context: Collaborator inputs, learner context and tutor mode variants
    - messages: Wire payloads, upstream chat messages and outcomes
    - ops_events: Telemetry events and their in-memory store
"""

from tutor_gateway.models.context import (
    DailyLimit,
    TutorMode,
    PlanLimits,
    CallerContext,
    LessonSnapshot,
    SubjectMastery,
    StudentContext,
    LearningTurn,
    MarketingTurn,
    TutorTurn,
)
from tutor_gateway.models.messages import (
    RefusalReason,
    ChatMessage,
    TutorRequest,
    TutorResponse,
    ErrorResponse,
    QuotaStatus,
    TutorReply,
    GuardrailRefusal,
    TutorOutcome,
    create_error_response,
)
from tutor_gateway.models.ops_events import OpsEvent, OpsEventStore

__all__ = [
    # Context
    "DailyLimit",
    "TutorMode",
    "PlanLimits",
    "CallerContext",
    "LessonSnapshot",
    "SubjectMastery",
    "StudentContext",
    "LearningTurn",
    "MarketingTurn",
    "TutorTurn",
    # Messages
    "RefusalReason",
    "ChatMessage",
    "TutorRequest",
    "TutorResponse",
    "ErrorResponse",
    "QuotaStatus",
    "TutorReply",
    "GuardrailRefusal",
    "TutorOutcome",
    "create_error_response",
    # Ops
    "OpsEvent",
    "OpsEventStore",
]
