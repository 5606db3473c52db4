"""
Message Models for the Tutor Gateway

This module defines the wire payloads of the tutor endpoint, the chat
messages sent upstream, and the internal outcome variants the orchestrator
produces before they are flattened into the response envelope.

Models:
    - ChatMessage: One entry of the upstream chat-completions message list
    - TutorRequest: Request body from the client
    - TutorResponse: Response envelope returned to the client
    - ErrorResponse: Body of every error response
    - QuotaStatus: Daily quota snapshot (learning mode only)
    - TutorReply / GuardrailRefusal: Orchestrator outcomes
"""

from typing import Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from tutor_gateway.config import GatewayConfig
from tutor_gateway.models.context import DailyLimit, TutorMode


RefusalReason = Literal["unsafe_keyword", "personal_contact", "age_inappropriate", "prompt_attack"]


# ===========================================
# Upstream Messages
# ===========================================


class ChatMessage(BaseModel):
    """Single message in the upstream chat-completions request."""

    role: Literal["system", "user"] = Field(
        description="Role of the message sender"
    )
    content: str = Field(
        description="Message content text"
    )


# ===========================================
# Wire Payloads
# ===========================================


class TutorRequest(BaseModel):
    """
    Request body for the tutor endpoint.

    The prompt is optional at the schema level so that a missing prompt is
    reported by the gateway with its own 400 message.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {"prompt": "Help me factor x^2 - 9", "mode": "learning"},
                {
                    "prompt": "How much does the Pro plan cost?",
                    "mode": "marketing",
                    "knowledge": "ElevatED costs $9.99/month",
                },
            ]
        },
    )

    prompt: Optional[str] = Field(
        default=None,
        description="Learner or visitor prompt"
    )
    system_prompt: Optional[str] = Field(
        default=None,
        alias="systemPrompt",
        description="Appended to the built-in system prompt"
    )
    mode: Optional[TutorMode] = Field(
        default=None,
        description="learning (default) or marketing"
    )
    knowledge: Optional[str] = Field(
        default=None,
        description="Extra product facts for marketing mode"
    )

    @property
    def resolved_mode(self) -> TutorMode:
        """Mode with the learning default applied."""
        return self.mode or "learning"


class TutorResponse(BaseModel):
    """Response envelope returned to the client."""

    message: str
    model: str
    remaining: Optional[int] = None
    limit: DailyLimit = None
    plan: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: "TutorOutcome") -> "TutorResponse":
        """Flatten an orchestrator outcome into the wire envelope."""
        quota = outcome.quota
        return cls(
            message=outcome.message,
            model=outcome.model,
            remaining=quota.remaining if quota else None,
            limit=quota.limit if quota else None,
            plan=quota.plan if quota else None,
        )


class ErrorResponse(BaseModel):
    """Body of every error response."""

    message: str


# ===========================================
# Orchestrator Outcomes
# ===========================================


class QuotaStatus(BaseModel):
    """Daily quota snapshot reported with learning-mode responses."""

    remaining: Optional[int] = None
    limit: DailyLimit = None
    plan: Optional[str] = None


class TutorReply(BaseModel):
    """A model-generated reply."""

    kind: Literal["reply"] = "reply"
    message: str
    model: str
    quota: Optional[QuotaStatus] = None


class GuardrailRefusal(BaseModel):
    """A canned refusal issued instead of calling the model."""

    kind: Literal["refusal"] = "refusal"
    message: str
    reason: RefusalReason
    model: str = GatewayConfig.GUARDRAIL_MODEL
    quota: Optional[QuotaStatus] = None


TutorOutcome = Union[TutorReply, GuardrailRefusal]


def create_error_response(message: str) -> dict:
    """Build an error body."""
    return ErrorResponse(message=message).model_dump()
