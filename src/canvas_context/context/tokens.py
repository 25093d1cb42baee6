"""Token estimation for conversation context.

This module converts text, messages and UI component trees into approximate
token counts:
- Character-based estimation (default, ~4 characters per token)
- Optional tiktoken-backed counting for callers that want real tokenization
- Usage calculation against the token budget
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

from canvas_context.context.config import EstimatorSettings, TokenBudget
from canvas_context.types import Message, UIComponent


class TokenCounter(Protocol):
    """Protocol for text token counting implementations."""

    def count(self, text: str) -> int:
        """Count tokens in the given text."""
        ...


class CharacterEstimateCounter:
    """Token counter using a fixed character-to-token ratio."""

    def __init__(self, chars_per_token: float = 4.0):
        """Initialize character estimate counter.

        Args:
            chars_per_token: Average characters per token.
        """
        self._chars_per_token = chars_per_token

    @property
    def chars_per_token(self) -> float:
        return self._chars_per_token

    def count(self, text: str) -> int:
        """Estimate tokens as ceil(len(text) / chars_per_token).

        Args:
            text: The text to count tokens for.

        Returns:
            Estimated number of tokens, 0 for empty text.
        """
        if not text:
            return 0
        return math.ceil(len(text) / self._chars_per_token)


class TiktokenCounter:
    """Token counter using the tiktoken library."""

    def __init__(self, encoding_name: str = "cl100k_base"):
        """Initialize tiktoken counter.

        Args:
            encoding_name: The tiktoken encoding to use.

        Raises:
            ImportError: If tiktoken is not installed.
        """
        try:
            import tiktoken
            self._tiktoken = tiktoken
        except ImportError:
            raise ImportError(
                "tiktoken is required for accurate token counting. "
                "Install with: pip install canvas-context[tiktoken]"
            )

        self._encoding_name = encoding_name
        self._encoding: Any = None

    @property
    def encoding(self) -> Any:
        """Lazy load tiktoken encoding."""
        if self._encoding is None:
            self._encoding = self._tiktoken.get_encoding(self._encoding_name)
        return self._encoding

    def count(self, text: str) -> int:
        """Count tokens in the given text."""
        if not text:
            return 0
        return len(self.encoding.encode(text))


def serialize_value(value: Any) -> str:
    """Serialize a props/state bag the way it is sent to the model."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


@dataclass
class TokenUsage:
    """Token usage of a context bundle measured against the budget."""

    total: int = 0
    messages: int = 0
    components: int = 0
    system_prompt: int = 0
    remaining: int = 0
    limit: int = 0
    usage_percentage: float = 0.0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "messages": self.messages,
            "components": self.components,
            "system_prompt": self.system_prompt,
            "remaining": self.remaining,
            "limit": self.limit,
            "usage_percentage": self.usage_percentage,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TokenUsage:
        return cls(**{key: data[key] for key in cls.__dataclass_fields__ if key in data})


class TokenEstimator:
    """Estimates token usage for messages, components and system prompts.

    All methods are pure functions of their inputs and never raise on
    empty input.
    """

    def __init__(
        self,
        budget: Optional[TokenBudget] = None,
        settings: Optional[EstimatorSettings] = None,
        counter: Optional[TokenCounter] = None,
    ):
        """Initialize the estimator.

        Args:
            budget: Token budget used by calculate_usage.
            settings: Overhead constants and character ratio.
            counter: Text counter; defaults to character estimation with
                settings.chars_per_token.
        """
        self.budget = budget or TokenBudget()
        self.settings = settings or EstimatorSettings()
        self._custom_counter = counter is not None
        self._counter: TokenCounter = counter or CharacterEstimateCounter(
            self.settings.chars_per_token
        )

    def update_settings(self, settings: EstimatorSettings) -> None:
        """Apply new estimator constants.

        The default character counter is rebuilt with the new ratio; a
        counter passed to the constructor is kept.
        """
        self.settings = settings
        if not self._custom_counter:
            self._counter = CharacterEstimateCounter(settings.chars_per_token)

    def estimate(self, text: Optional[str]) -> int:
        """Estimate tokens in text. Empty or missing text yields 0."""
        if not text:
            return 0
        return self._counter.count(text)

    def estimate_message(self, message: Message) -> int:
        """Estimate tokens in a single message, including fixed overhead."""
        tokens = self.estimate(message.content)
        tokens += self.settings.message_overhead_tokens
        if message.rendered_markup:
            tokens += self.estimate(message.rendered_markup)
        return tokens

    def estimate_messages(self, messages: Iterable[Message]) -> int:
        return sum(self.estimate_message(message) for message in messages)

    def estimate_component(self, component: UIComponent) -> int:
        """Estimate tokens in a component tree, depth-first.

        Children are counted in full, so a parent's estimate is never smaller
        than the sum of its children's.
        """
        tokens = self.estimate(component.type) + self.estimate(component.id)
        tokens += self.estimate(serialize_value(component.props))
        if component.state is not None:
            tokens += self.estimate(serialize_value(component.state))
        for child in component.children:
            tokens += self.estimate_component(child)
        tokens += self.settings.component_overhead_tokens
        return tokens

    def estimate_components(self, components: Mapping[str, UIComponent]) -> int:
        return sum(self.estimate_component(component) for component in components.values())

    def estimate_system_prompt(self, prompt: Optional[str]) -> int:
        return self.estimate(prompt)

    def calculate_usage(
        self,
        messages: Sequence[Message],
        components: Mapping[str, UIComponent],
        system_prompt: Optional[str] = "",
    ) -> TokenUsage:
        """Calculate token usage against the effective limit.

        The effective limit is the total ceiling minus the tokens reserved
        for the response.

        Args:
            messages: Conversation messages.
            components: Mapping of component id to component.
            system_prompt: System prompt text.

        Returns:
            TokenUsage for the bundle.
        """
        messages_count = self.estimate_messages(messages)
        components_count = self.estimate_components(components)
        system_prompt_count = self.estimate_system_prompt(system_prompt)
        total = messages_count + components_count + system_prompt_count
        limit = self.budget.effective_limit

        return TokenUsage(
            total=total,
            messages=messages_count,
            components=components_count,
            system_prompt=system_prompt_count,
            remaining=max(0, limit - total),
            limit=limit,
            usage_percentage=(total / limit) * 100,
        )

    def would_exceed_limit(self, usage: TokenUsage, additional_tokens: int) -> bool:
        """Check if adding content would exceed the effective limit."""
        return usage.total + additional_tokens > usage.limit

    def available_tokens(self, usage: TokenUsage) -> int:
        """Get tokens still available for additional content."""
        return max(0, usage.remaining)
