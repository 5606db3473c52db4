"""
Prompt Utilities for the Tutor Gateway

This module renders the learner context summary and assembles the learning
guardrail message from the grade-band, subject and parental-control snippets.

Usage:
    from tutor_gateway.utils.prompt_utils import format_student_context, build_learning_guardrails

    summary = format_student_context(student_context)
    guardrails = build_learning_guardrails(student_context)
"""

import math
from typing import Optional

from tutor_gateway.models.context import LessonSnapshot, StudentContext
from tutor_gateway.prompts.templates import (
    CHAT_MODE_INSTRUCTIONS,
    GRADE_BAND_GUIDANCE,
    HINT_FIRST_INSTRUCTION,
    LEARNER_HEADER_TEMPLATE,
    LESSON_ONLY_INSTRUCTION,
    STUDY_MODE_INSTRUCTIONS,
    STUDY_MODE_LOCKED_NOTE,
    SUBJECT_GUIDANCE,
)


SUMMARY_STRENGTHS = 3
SUMMARY_FOCUS_AREAS = 3
SUMMARY_SUBJECTS = 4


def _percent(value: float) -> str:
    """Whole percentage, halves rounded up (72.5 -> 73%)."""
    return f"{math.floor(value + 0.5)}%"


def _lesson_line(label: str, lesson: LessonSnapshot, detailed: bool) -> str:
    bits = [f"{label}: {lesson.title}"]
    if lesson.module_title:
        bits.append(f"Module: {lesson.module_title}")
    if lesson.subject:
        bits.append(f"Subject: {lesson.subject}")
    if detailed:
        if lesson.status:
            bits.append(f"Status: {lesson.status}")
        if lesson.mastery_pct is not None:
            bits.append(f"Mastery: {_percent(lesson.mastery_pct)}")
    return " | ".join(bits)


def format_student_context(context: Optional[StudentContext]) -> str:
    """
    Render a learner context as compact text for the model.

    Args:
        context: Anonymized learner context

    Returns:
        Multi-line summary, or an empty string when there is no context

    Example:
        >>> print(format_student_context(ctx))
        Learner ref 3f2a9c0d11be | grade 5 | level 2
        Focus areas: Fractions
        Recent mastery: Math: 48% | Science: 71%
        Chat mode: guided_preferred
    """
    if context is None:
        return ""

    lines = [
        LEARNER_HEADER_TEMPLATE.render(
            learner_ref=context.learner_ref,
            grade=context.grade,
            level=context.level,
        )
    ]

    if context.strengths:
        lines.append(f"Strength areas: {', '.join(context.strengths[:SUMMARY_STRENGTHS])}")
    if context.focus_areas:
        lines.append(f"Focus areas: {', '.join(context.focus_areas[:SUMMARY_FOCUS_AREAS])}")
    if context.mastery_by_subject:
        mastery = " | ".join(
            f"{entry.subject}: {_percent(entry.mastery)}"
            for entry in context.mastery_by_subject[:SUMMARY_SUBJECTS]
        )
        lines.append(f"Recent mastery: {mastery}")
    if context.active_lesson:
        lines.append(_lesson_line("Active lesson", context.active_lesson, detailed=True))
    if context.next_lesson:
        lines.append(_lesson_line("Next lesson", context.next_lesson, detailed=False))

    locked = " (parent locked)" if context.chat_mode_locked else ""
    lines.append(f"Chat mode: {context.chat_mode}{locked}")
    if context.study_mode:
        lines.append(f"Study mode: {context.study_mode}")
    if not context.allow_tutor:
        lines.append("Tutor access: disabled by parent/guardian.")
    if context.tutor_lesson_only:
        lines.append("Tutor scope: lesson-only; decline unrelated prompts.")
    if context.tutor_daily_limit is not None:
        lines.append(f"Tutor cap: {context.tutor_daily_limit} chats/day.")

    return "\n".join(lines)


def grade_band_guidance(grade: Optional[int]) -> Optional[str]:
    """Guidance for the K-3, 4-8 or 9-12 band; None when the grade is unknown."""
    if grade is None:
        return None
    if grade <= 3:
        return GRADE_BAND_GUIDANCE["k-3"]
    if grade <= 8:
        return GRADE_BAND_GUIDANCE["4-8"]
    return GRADE_BAND_GUIDANCE["9-12"]


def subject_guidance(subject: Optional[str]) -> Optional[str]:
    """Guidance for math, ELA, science or social studies; None otherwise."""
    if not subject:
        return None
    normalized = subject.lower()
    for needles, guidance in SUBJECT_GUIDANCE:
        if any(needle in normalized for needle in needles):
            return guidance
    return None


def build_learning_guardrails(context: Optional[StudentContext]) -> str:
    """
    Combine the learning guardrail snippets into one system message.

    The hint-before-answer instruction is always present, so the result is
    never empty.

    Args:
        context: Learner context, when one was built

    Returns:
        Newline-joined guardrail text
    """
    snippets = [
        grade_band_guidance(context.grade if context else None),
        subject_guidance(context.lesson_subject if context else None),
        HINT_FIRST_INSTRUCTION,
    ]

    if context:
        if context.tutor_lesson_only:
            snippets.append(LESSON_ONLY_INSTRUCTION)
        snippets.append(CHAT_MODE_INSTRUCTIONS.get(context.chat_mode))
        if context.study_mode:
            snippets.append(STUDY_MODE_INSTRUCTIONS.get(context.study_mode))
        if context.study_mode_locked:
            snippets.append(STUDY_MODE_LOCKED_NOTE)

    return "\n".join(snippet for snippet in snippets if snippet)
