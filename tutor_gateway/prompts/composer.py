"""
Prompt Composer - Upstream Message Assembly

Builds the ordered chat-completions message list for a tutor turn:

    1. system: base prompt for the mode (+ sanitized caller override)
    2. system: product facts (marketing) or learner context (learning)
    3. system: learning guardrails (learning only)
    4. user:   sanitized prompt

Every caller-supplied string is sanitized before it is placed in a message.
"""

from typing import Optional

from tutor_gateway.config import GatewayConfig
from tutor_gateway.exceptions import ValidationError
from tutor_gateway.models.context import LearningTurn, MarketingTurn, TutorTurn
from tutor_gateway.models.messages import ChatMessage
from tutor_gateway.prompts.templates import (
    KNOWLEDGE_TEMPLATE,
    LEARNER_CONTEXT_TEMPLATE,
    MARKETING_KNOWLEDGE,
    MARKETING_SYSTEM_PROMPT,
    TUTOR_SYSTEM_PROMPT,
)
from tutor_gateway.utils.prompt_utils import build_learning_guardrails, format_student_context
from tutor_gateway.utils.text_utils import sanitize_text


class PromptComposer:
    """
    Composes upstream messages for learning and marketing turns.

    Attributes:
        tutor_prompt: Base system prompt for learning mode
        marketing_prompt: Base system prompt for marketing mode
        product_facts: Built-in fact sheet merged into marketing knowledge
    """

    def __init__(
        self,
        tutor_prompt: str = TUTOR_SYSTEM_PROMPT,
        marketing_prompt: str = MARKETING_SYSTEM_PROMPT,
        product_facts: str = MARKETING_KNOWLEDGE,
    ):
        self.tutor_prompt = tutor_prompt
        self.marketing_prompt = marketing_prompt
        self.product_facts = product_facts

    def compose(
        self,
        turn: TutorTurn,
        user_prompt: Optional[str],
        system_prompt_override: Optional[str] = None,
    ) -> list[ChatMessage]:
        """
        Build the message list for a turn.

        Args:
            turn: LearningTurn or MarketingTurn
            user_prompt: Raw prompt from the request body
            system_prompt_override: Raw systemPrompt from the request body

        Returns:
            Ordered list of ChatMessage

        Raises:
            ValidationError: If the prompt is empty after sanitization
        """
        prompt = sanitize_text(user_prompt, GatewayConfig.MAX_PROMPT_CHARS)
        if not prompt:
            raise ValidationError("Prompt is required.")

        messages = [
            ChatMessage(role="system", content=self.resolve_system_prompt(turn, system_prompt_override))
        ]

        if isinstance(turn, MarketingTurn):
            facts = self.marketing_knowledge(turn.knowledge)
            if facts:
                messages.append(ChatMessage(role="system", content=KNOWLEDGE_TEMPLATE.render(facts=facts)))

        elif isinstance(turn, LearningTurn):
            summary = sanitize_text(
                format_student_context(turn.student_context),
                GatewayConfig.MAX_LEARNER_CONTEXT_CHARS,
            )
            if summary:
                messages.append(
                    ChatMessage(role="system", content=LEARNER_CONTEXT_TEMPLATE.render(summary=summary))
                )
            messages.append(
                ChatMessage(role="system", content=build_learning_guardrails(turn.student_context))
            )

        messages.append(ChatMessage(role="user", content=prompt))
        return messages

    def resolve_system_prompt(self, turn: TutorTurn, override: Optional[str] = None) -> str:
        """Base prompt for the mode, with the sanitized override on a new line."""
        base = self.marketing_prompt if isinstance(turn, MarketingTurn) else self.tutor_prompt
        extra = sanitize_text(override, GatewayConfig.MAX_SYSTEM_PROMPT_CHARS)
        return f"{base}\n{extra}" if extra else base

    def marketing_knowledge(self, knowledge: Optional[str]) -> str:
        """
        Caller knowledge merged with the built-in fact sheet.

        Caller facts come first so the length cap trims the generic sheet
        rather than the request's own facts.
        """
        merged = "\n\n".join(part for part in (knowledge, self.product_facts) if part)
        return sanitize_text(merged, GatewayConfig.MAX_KNOWLEDGE_CHARS)
