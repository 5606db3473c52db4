"""
Context Models for the Tutor Gateway

This module defines the read-only data the gateway receives from its
collaborators (plan limits from billing, learner data from the store) and
the per-request caller context derived by the host layer.

Models:
    - PlanLimits: AI access and daily tutor cap for a plan
    - CallerContext: Authenticated identity, role, IP and plan of a request
    - LessonSnapshot: Condensed view of an active or upcoming lesson
    - SubjectMastery: Average mastery for one subject
    - StudentContext: Anonymized learner summary used for grounding
    - LearningTurn / MarketingTurn: The tagged tutor mode of a request
"""

from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field


DailyLimit = Union[int, Literal["unlimited"], None]
TutorMode = Literal["learning", "marketing"]
ChatMode = Literal["guided_only", "guided_preferred", "free"]
StudyMode = Literal["catch_up", "keep_up", "get_ahead"]


# ===========================================
# Collaborator Inputs
# ===========================================


class PlanLimits(BaseModel):
    """Plan entitlements supplied by the billing collaborator."""

    slug: Optional[str] = Field(
        default=None,
        description="Plan slug (e.g., family-free)"
    )
    ai_access: bool = Field(
        default=True,
        description="Whether the plan includes the AI tutor"
    )
    tutor_daily_limit: DailyLimit = Field(
        default=None,
        description="Tutor requests per UTC day, 'unlimited' or None"
    )


class CallerContext(BaseModel):
    """
    Execution context of one request, derived by the host layer.

    Raw identifiers live here only until the gateway hashes them.
    """

    user_id: Optional[str] = None
    role: Optional[str] = None
    client_ip: Optional[str] = None
    plan: Optional[PlanLimits] = None


# ===========================================
# Learner Context
# ===========================================


class LessonSnapshot(BaseModel):
    """Condensed view of a lesson for prompt grounding."""

    title: str
    module_title: Optional[str] = None
    subject: Optional[str] = None
    status: Optional[str] = None
    mastery_pct: Optional[float] = None
    last_activity_at: Optional[str] = None


class SubjectMastery(BaseModel):
    """Average mastery percentage for a subject."""

    subject: str
    mastery: float


class StudentContext(BaseModel):
    """
    Anonymized learner summary built fresh for each learning request.

    Never carries raw ids, names or contact details; learner_ref is a hash.
    """

    learner_ref: str = Field(
        description="Hashed learner identifier"
    )
    grade: Optional[int] = None
    level: Optional[int] = None
    strengths: list[str] = Field(default_factory=list)
    focus_areas: list[str] = Field(default_factory=list)
    active_lesson: Optional[LessonSnapshot] = None
    next_lesson: Optional[LessonSnapshot] = None
    mastery_by_subject: list[SubjectMastery] = Field(default_factory=list)

    # Learner-level controls set by a parent or teacher
    chat_mode: ChatMode = "free"
    chat_mode_locked: bool = False
    study_mode: Optional[StudyMode] = None
    study_mode_locked: bool = False
    allow_tutor: bool = True
    tutor_lesson_only: bool = False
    tutor_daily_limit: Optional[int] = None

    @property
    def lesson_subject(self) -> Optional[str]:
        """Subject of the active lesson, else of the next lesson."""
        if self.active_lesson and self.active_lesson.subject:
            return self.active_lesson.subject
        if self.next_lesson and self.next_lesson.subject:
            return self.next_lesson.subject
        return None


# ===========================================
# Tutor Mode Variants
# ===========================================


class LearningTurn(BaseModel):
    """A student tutoring request, optionally grounded in learner context."""

    mode: Literal["learning"] = "learning"
    student_context: Optional[StudentContext] = None


class MarketingTurn(BaseModel):
    """A product-information request grounded only in product facts."""

    mode: Literal["marketing"] = "marketing"
    knowledge: Optional[str] = None


TutorTurn = Annotated[Union[LearningTurn, MarketingTurn], Field(discriminator="mode")]
