"""
Shared Utilities for the Tutor Gateway

Modules:
    - text_utils: Sanitization, identity hashing, truncation
    - prompt_utils: Learner context summary, learning guardrails
"""

from tutor_gateway.utils.text_utils import (
    sanitize_text,
    sanitize_output,
    anonymize,
    truncate_text,
)
from tutor_gateway.utils.prompt_utils import (
    format_student_context,
    build_learning_guardrails,
)

__all__ = [
    # text_utils
    "sanitize_text",
    "sanitize_output",
    "anonymize",
    "truncate_text",
    # prompt_utils
    "format_student_context",
    "build_learning_guardrails",
]
