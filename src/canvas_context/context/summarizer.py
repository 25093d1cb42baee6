"""Conversation summarization for context compaction.

This module folds older conversation messages into one synthetic summary
message while passing the most recent messages through untouched:
- Extractive key points and component references (no model required)
- Optional model-written summary text through a text-generation callable
- Customizable summary prompts
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from canvas_context.context.config import CompressionSettings
from canvas_context.observability.logging import get_logger
from canvas_context.types import Message, MessageRole

logger = get_logger(__name__)

# (prompt, model) -> generated text
TextGenerator = Callable[[str, Optional[str]], str]

COMPONENT_MENTION_PATTERN = re.compile(r"\bcomponent:\s*(\w+)", re.IGNORECASE)

USER_POINT_LENGTH = 100
ASSISTANT_POINT_LENGTH = 80
SHORT_ASSISTANT_LENGTH = 200


class SummaryPrompt(BaseModel):
    """Prompt template for model-written summaries."""

    template: str = Field(
        default=(
            "Summarize the following conversation between a user and a UI-generating "
            "assistant. Preserve the user's requests, decisions made, and the UI "
            "components that were created or changed, so the conversation can continue.\n\n"
            "Conversation:\n{conversation}\n\n"
            "Write at most {max_length} characters."
        ),
        description="Template with {conversation} and {max_length} placeholders",
    )


@dataclass(frozen=True)
class SummarizeOptions:
    """Options for a single summarization call."""

    max_summary_length: int = 2000
    max_key_points: int = 10
    include_component_refs: bool = True


@dataclass(frozen=True)
class ConversationSummary:
    """Summary of a range of older messages.

    Never edited after creation; a newer summary supersedes an older one.
    """

    source_message_count: int
    summary_text: str
    key_points: Tuple[str, ...] = ()
    referenced_component_types: Tuple[str, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def message_count(self) -> int:
        return self.source_message_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_message_count": self.source_message_count,
            "summary_text": self.summary_text,
            "key_points": list(self.key_points),
            "referenced_component_types": list(self.referenced_component_types),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ConversationSummary:
        return cls(
            source_message_count=data["source_message_count"],
            summary_text=data["summary_text"],
            key_points=tuple(data.get("key_points", ())),
            referenced_component_types=tuple(data.get("referenced_component_types", ())),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class SummarizationResult:
    """Messages after summarization, plus the summary if one was made."""

    compacted_messages: List[Message]
    summary: Optional[ConversationSummary] = None


def truncate_text(text: str, max_length: int) -> str:
    """Truncate text to max_length characters, ending with an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


class MessageSummarizer:
    """Summarizes older conversation messages.

    Without a text generator the summary is extractive: user requests and
    short assistant replies become key points. With one, the key points and
    component references are still extracted, but the summary text is
    written by the model.
    """

    def __init__(
        self,
        settings: Optional[CompressionSettings] = None,
        options: Optional[SummarizeOptions] = None,
        text_generator: Optional[TextGenerator] = None,
        model: Optional[str] = None,
        prompt: Optional[SummaryPrompt] = None,
    ):
        """Initialize the summarizer.

        Args:
            settings: Compression settings (retention and thresholds).
            options: Default summarization options.
            text_generator: Optional callable producing summary text.
            model: Model identifier passed to the text generator.
            prompt: Prompt template for the text generator.
        """
        self.settings = settings or CompressionSettings()
        self.options = options or SummarizeOptions()
        self._text_generator = text_generator
        self._model = model
        self._prompt = prompt or SummaryPrompt()

    def should_summarize(self, messages: Sequence[Message]) -> bool:
        """Check whether the conversation is long enough to summarize."""
        if not self.settings.enable_summarization:
            return False
        return len(messages) > self.settings.max_messages_before_summarize

    def summarize_messages(
        self,
        messages: Sequence[Message],
        options: Optional[SummarizeOptions] = None,
    ) -> SummarizationResult:
        """Summarize older messages, keeping recent ones verbatim.

        Args:
            messages: All conversation messages, oldest first.
            options: Optional summarization options.

        Returns:
            SummarizationResult whose messages are the synthetic summary
            message followed by the recent messages in original order. When
            there are no more messages than the retention count, the messages
            are returned unchanged and no summary is made.
        """
        retention = self.settings.recent_message_retention_count
        if len(messages) <= retention:
            return SummarizationResult(compacted_messages=list(messages))

        split_index = len(messages) - retention
        older = messages[:split_index]
        recent = messages[split_index:]

        summary = self.summarize(older, options)
        summary_message = Message(
            id=f"summary-{uuid.uuid4().hex[:12]}",
            role=MessageRole.SYSTEM,
            content=self.format_summary(summary),
            timestamp=summary.created_at.timestamp() * 1000,
        )
        return SummarizationResult(
            compacted_messages=[summary_message, *recent],
            summary=summary,
        )

    def summarize(
        self,
        messages: Sequence[Message],
        options: Optional[SummarizeOptions] = None,
    ) -> ConversationSummary:
        """Summarize a run of messages.

        Args:
            messages: Messages to summarize.
            options: Optional summarization options.

        Returns:
            ConversationSummary of the messages.
        """
        opts = options or self.options
        key_points = self.extract_key_points(messages, opts.max_key_points)
        component_types = (
            self.extract_component_types(messages) if opts.include_component_refs else []
        )

        summary_text = self._generate_summary_text(
            messages, key_points, component_types, opts.max_summary_length
        )

        return ConversationSummary(
            source_message_count=len(messages),
            summary_text=summary_text,
            key_points=tuple(key_points),
            referenced_component_types=tuple(component_types),
        )

    def extract_key_points(self, messages: Sequence[Message], max_points: int) -> List[str]:
        """Extract user requests and short assistant replies, in order."""
        points: List[str] = []
        if max_points <= 0:
            return points

        for message in messages:
            if message.role == MessageRole.USER:
                points.append(f"User: {truncate_text(message.content, USER_POINT_LENGTH)}")
            elif (
                message.role == MessageRole.ASSISTANT
                and len(message.content) < SHORT_ASSISTANT_LENGTH
            ):
                points.append(
                    f"Assistant: {truncate_text(message.content, ASSISTANT_POINT_LENGTH)}"
                )

            if len(points) >= max_points:
                break

        return points[:max_points]

    def extract_component_types(self, messages: Sequence[Message]) -> List[str]:
        """Collect component types mentioned in text or attached to messages.

        Returns:
            Unique component type names in first-seen order.
        """
        found: Dict[str, None] = {}
        for message in messages:
            for name in COMPONENT_MENTION_PATTERN.findall(message.content):
                found.setdefault(name, None)
            for component in message.attached_components:
                found.setdefault(component.type, None)
        return list(found)

    def format_summary(self, summary: ConversationSummary) -> str:
        """Format a summary as the content of a system message."""
        text = f"[CONVERSATION SUMMARY]\n{summary.summary_text}\n"
        if summary.referenced_component_types:
            text += (
                "\nComponents referenced: "
                + ", ".join(summary.referenced_component_types)
            )
        text += f"\n[END SUMMARY - {summary.source_message_count} messages summarized]"
        return text

    def _generate_summary_text(
        self,
        messages: Sequence[Message],
        key_points: List[str],
        component_types: List[str],
        max_length: int,
    ) -> str:
        if self._text_generator is not None:
            try:
                text = self._generate_with_model(messages, max_length)
            except Exception as e:
                logger.warning(
                    "Summary generation failed, using extractive summary",
                    error=str(e),
                    message_count=len(messages),
                )
            else:
                if text.strip():
                    return truncate_text(text.strip(), max_length)
                logger.warning(
                    "Summary generation returned empty text, using extractive summary",
                    message_count=len(messages),
                )

        parts: List[str] = [f"Previous conversation with {len(messages)} messages."]

        if key_points:
            parts.append("\nKey points:")
            parts.extend(f"{index}. {point}" for index, point in enumerate(key_points, start=1))

        if component_types:
            parts.append(f"\nComponents mentioned: {', '.join(component_types)}.")

        return truncate_text("\n".join(parts), max_length)

    def _generate_with_model(self, messages: Sequence[Message], max_length: int) -> str:
        conversation = "\n\n".join(
            f"{message.role.value.upper()}: {message.content}"
            for message in messages
            if message.content.strip()
        )
        prompt = self._prompt.template.format(
            conversation=conversation,
            max_length=max_length,
        )
        return self._text_generator(prompt, self._model)


def create_message_summarizer(
    settings: Optional[CompressionSettings] = None,
    text_generator: Optional[TextGenerator] = None,
    model: Optional[str] = None,
) -> MessageSummarizer:
    """Factory function to create a summarizer with default options."""
    return MessageSummarizer(settings=settings, text_generator=text_generator, model=model)
