"""
Safety Classifier - Deterministic Prompt Screening

Screens sanitized learner prompts before any upstream call and produces the
canned refusal returned instead of a model answer.

Checks, in order (first match wins):
    - unsafe_keyword: violence, self-harm, weapons, drugs, dating
    - personal_contact: requests to share or collect location/contact info
    - age_inappropriate: social/dating/meetup topics for learners under 13
    - prompt_attack: attempts to override the tutor's instructions

The word lists live in a SafetyPolicy so they can be tuned without touching
the classifier.
"""

import re
from typing import Iterable, Optional, Pattern

from tutor_gateway.config import GatewayConfig
from tutor_gateway.logging_config import get_logger
from tutor_gateway.models.context import StudentContext
from tutor_gateway.models.messages import RefusalReason
from tutor_gateway.prompts.templates import REFUSAL_ADDENDA, SAFETY_REFUSAL_MESSAGE


logger = get_logger("safety")


DEFAULT_UNSAFE_KEYWORDS = (
    "violence",
    "harm",
    "weapon",
    "fight",
    "drugs",
    "self-harm",
    "suicide",
    "kill",
    "dating",
    "boyfriend",
    "girlfriend",
)

DEFAULT_CONTACT_PATTERNS = (
    r"address",
    r"where.*live",
    r"meet you",
    r"come over",
    r"phone number",
    r"snapchat",
    r"instagram",
)

DEFAULT_AGE_RESTRICTED_TERMS = (
    "social media",
    "dating",
    "meet up",
)

DEFAULT_PROMPT_ATTACK_PHRASES = (
    "ignore previous",
    "jailbreak",
    "prompt injection",
)


# Words that start with an unsafe keyword but are harmless ("harmony", "harmonica")
DEFAULT_ALLOWED_PREFIXES = (
    "harmon",
)


def _keyword_pattern(keywords: Iterable[str]) -> Pattern[str]:
    """Whole-word match with simple inflections ("fights", "killed")."""
    alternatives = "|".join(re.escape(keyword) for keyword in keywords)
    return re.compile(rf"\b(?:{alternatives})(?:s|es|ed|ing)?\b", re.IGNORECASE)


def _word_start_pattern(keywords: Iterable[str], allowed_prefixes: Iterable[str] = ()) -> Pattern[str]:
    """Keyword at the start of a word with any ending ("killer", "harmful", "weaponry")."""
    alternatives = "|".join(re.escape(keyword) for keyword in keywords)
    allowed = "|".join(re.escape(prefix) for prefix in allowed_prefixes)
    guard = rf"(?!(?:{allowed}))" if allowed else ""
    return re.compile(rf"\b{guard}(?:{alternatives})", re.IGNORECASE)


class SafetyPolicy:
    """
    Word lists and patterns used by the classifier.

    Attributes:
        unsafe_keywords: Topics refused for every learner, matched at word start
        allowed_prefixes: Word beginnings exempt from the unsafe-keyword check
        contact_patterns: Regex fragments for contact/location requests
        age_restricted_terms: Topics refused for learners under the teen threshold
        prompt_attack_phrases: Instruction-override phrases
        teen_grade_threshold: Grades below this count as under 13
    """

    def __init__(
        self,
        unsafe_keywords: Iterable[str] = DEFAULT_UNSAFE_KEYWORDS,
        contact_patterns: Iterable[str] = DEFAULT_CONTACT_PATTERNS,
        age_restricted_terms: Iterable[str] = DEFAULT_AGE_RESTRICTED_TERMS,
        prompt_attack_phrases: Iterable[str] = DEFAULT_PROMPT_ATTACK_PHRASES,
        teen_grade_threshold: int = GatewayConfig.TEEN_GRADE_THRESHOLD,
        allowed_prefixes: Iterable[str] = DEFAULT_ALLOWED_PREFIXES,
    ):
        self.unsafe_keywords = tuple(unsafe_keywords)
        self.allowed_prefixes = tuple(allowed_prefixes)
        self.contact_patterns = tuple(contact_patterns)
        self.age_restricted_terms = tuple(age_restricted_terms)
        self.prompt_attack_phrases = tuple(prompt_attack_phrases)
        self.teen_grade_threshold = teen_grade_threshold

        self._unsafe = _word_start_pattern(self.unsafe_keywords, self.allowed_prefixes)
        self._contact = re.compile(
            rf"\b(?:{'|'.join(self.contact_patterns)})\b", re.IGNORECASE
        )
        self._age_restricted = _keyword_pattern(self.age_restricted_terms)

    def is_unsafe(self, text: str) -> bool:
        return bool(self.unsafe_keywords) and self._unsafe.search(text) is not None

    def asks_for_contact(self, text: str) -> bool:
        return bool(self.contact_patterns) and self._contact.search(text) is not None

    def is_age_restricted(self, text: str) -> bool:
        return bool(self.age_restricted_terms) and self._age_restricted.search(text) is not None

    def is_prompt_attack(self, text: str) -> bool:
        normalized = text.lower()
        return any(phrase in normalized for phrase in self.prompt_attack_phrases)

    def is_under_teen(self, context: Optional[StudentContext]) -> bool:
        return (
            context is not None
            and context.grade is not None
            and context.grade < self.teen_grade_threshold
        )


class SafetyClassifier:
    """
    Deterministic classifier for learning-mode prompts.

    Runs on the sanitized prompt after composition and before the model is
    called. A match short-circuits the request with a canned refusal.
    """

    def __init__(self, policy: Optional[SafetyPolicy] = None):
        self.policy = policy or SafetyPolicy()

    def classify(
        self,
        prompt: str,
        context: Optional[StudentContext] = None,
    ) -> Optional[RefusalReason]:
        """
        Classify a prompt.

        Args:
            prompt: Sanitized learner prompt
            context: Learner context, when one was built

        Returns:
            Refusal reason of the first matching check, or None if safe
        """
        reason: Optional[RefusalReason] = None

        if self.policy.is_unsafe(prompt):
            reason = "unsafe_keyword"
        elif self.policy.asks_for_contact(prompt):
            reason = "personal_contact"
        elif self.policy.is_under_teen(context) and self.policy.is_age_restricted(prompt):
            reason = "age_inappropriate"
        elif self.policy.is_prompt_attack(prompt):
            reason = "prompt_attack"

        if reason:
            logger.debug(
                f"Prompt flagged: {reason}",
                extra={
                    "component": "safety",
                    "event": "prompt_flagged",
                    "data": {"reason": reason, "grade": context.grade if context else None},
                },
            )

        return reason

    def build_refusal(
        self,
        reason: RefusalReason,
        context: Optional[StudentContext] = None,
    ) -> str:
        """
        Canned refusal text for a reason.

        The under-13 wording is only used when the learner's grade confirms it.
        """
        if reason == "age_inappropriate" and not self.policy.is_under_teen(context):
            return SAFETY_REFUSAL_MESSAGE

        addendum = REFUSAL_ADDENDA.get(reason)
        if addendum:
            return f"{SAFETY_REFUSAL_MESSAGE} {addendum}"
        return SAFETY_REFUSAL_MESSAGE
