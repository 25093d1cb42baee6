"""Context compaction for canvas conversations.

The compactor measures a conversation bundle (messages, component trees and
system prompt) against the token budget and, once usage passes the target
ratio, produces a smaller bundle:
- Older messages are folded into one summary message
- Components are selected newest-first under the components ceiling
- A context-info block describing the conversation is appended to the
  system prompt

Every call is independent. Inputs are never mutated; results hold new
collections.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

from canvas_context.context.config import ContextConfig
from canvas_context.context.summarizer import ConversationSummary, MessageSummarizer
from canvas_context.context.tokens import TokenEstimator, TokenUsage
from canvas_context.observability.logging import get_logger
from canvas_context.types import Message, UIComponent

if TYPE_CHECKING:
    from canvas_context.components.models import CompactComponent

logger = get_logger(__name__)

CONTEXT_INFO_START = "[CONTEXT INFO]"
CONTEXT_INFO_END = "[END CONTEXT INFO]"


@dataclass
class CompactionResult:
    """Result of a compaction call."""

    compacted_messages: List[Message]
    compacted_components: Dict[str, UIComponent]
    compacted_system_prompt: str
    original_token_count: TokenUsage
    compacted_token_count: TokenUsage
    summary: Optional[ConversationSummary] = None
    compression_ratio: float = 1.0
    messages_compacted: int = 0
    was_compacted: bool = False
    dropped_component_ids: List[str] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)

    @property
    def tokens_saved(self) -> int:
        return self.original_token_count.total - self.compacted_token_count.total

    def to_dict(self) -> Dict[str, Any]:
        """Telemetry view of the result, without message bodies."""
        return {
            "original_token_count": self.original_token_count.to_dict(),
            "compacted_token_count": self.compacted_token_count.to_dict(),
            "compression_ratio": self.compression_ratio,
            "messages_compacted": self.messages_compacted,
            "was_compacted": self.was_compacted,
            "message_count": len(self.compacted_messages),
            "component_count": len(self.compacted_components),
            "dropped_component_ids": list(self.dropped_component_ids),
            "summary": self.summary.to_dict() if self.summary else None,
            "timestamp": self.timestamp,
        }


def _format_prop(value: Any) -> str:
    if isinstance(value, str):
        return f'"{value[:17]}..."' if len(value) > 20 else f'"{value}"'
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return f"[{len(value)} items]"
    if isinstance(value, dict):
        return "[object]"
    return str(value)


def describe_component(component: UIComponent) -> str:
    """One-line description: type, first three props, child count."""
    parts = [component.type]
    key_props = ", ".join(
        f"{key}={_format_prop(value)}" for key, value in list(component.props.items())[:3]
    )
    if key_props:
        parts.append(f"({key_props})")
    if component.children:
        parts.append(f"with {len(component.children)} children")
    return " ".join(parts)


def _recency(component: UIComponent) -> float:
    timestamp = component.props.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        return 0.0
    return float(timestamp)


class ContextCompactor:
    """Compacts conversation context to fit the token budget."""

    def __init__(
        self,
        config: Optional[ContextConfig] = None,
        estimator: Optional[TokenEstimator] = None,
        summarizer: Optional[MessageSummarizer] = None,
    ):
        """Initialize the compactor.

        Args:
            config: Context configuration.
            estimator: Token estimator; built from config when omitted.
            summarizer: Message summarizer; built from config when omitted.
        """
        self.config = config or ContextConfig()
        self.estimator = estimator or TokenEstimator(
            budget=self.config.budget, settings=self.config.estimator
        )
        self.summarizer = summarizer or MessageSummarizer(settings=self.config.compression)

    def compact(
        self,
        messages: Sequence[Message],
        components: Mapping[str, UIComponent],
        compact_components: Optional[Mapping[str, "CompactComponent"]] = None,
        system_prompt: str = "",
    ) -> CompactionResult:
        """Compact a conversation bundle if it is over the target usage.

        Args:
            messages: Conversation messages, oldest first.
            components: Mapping of component id to component tree.
            compact_components: Optional registry summaries keyed by id; when
                given, they describe components in the context-info block.
            system_prompt: System prompt text.

        Returns:
            CompactionResult. When no compaction happens the inputs are
            returned unchanged (as new collections) with a ratio of 1.
        """
        system_prompt = system_prompt or ""
        original_usage = self.estimator.calculate_usage(messages, components, system_prompt)

        if not messages and not components:
            return self._unchanged(messages, components, system_prompt, original_usage)

        if not self.needs_compaction(original_usage):
            logger.debug(
                "Compaction not needed",
                usage_percentage=round(original_usage.usage_percentage, 2),
                total_tokens=original_usage.total,
            )
            return self._unchanged(messages, components, system_prompt, original_usage)

        compression = self.config.compression

        compacted_messages = list(messages)
        summary: Optional[ConversationSummary] = None
        if compression.enable_summarization:
            summarized = self.summarizer.summarize_messages(messages)
            compacted_messages = summarized.compacted_messages
            summary = summarized.summary

        if compression.enable_component_compression:
            compacted_components = self.select_components(components)
        else:
            compacted_components = dict(components)
        dropped = [cid for cid in components if cid not in compacted_components]

        compacted_prompt = self._append_context_info(
            system_prompt, compacted_messages, components, compact_components
        )
        compacted_usage = self.estimator.calculate_usage(
            compacted_messages, compacted_components, compacted_prompt
        )

        if compacted_usage.total > original_usage.total:
            logger.warning(
                "Compaction would grow context, sending full context",
                original_tokens=original_usage.total,
                compacted_tokens=compacted_usage.total,
            )
            return self._unchanged(messages, components, system_prompt, original_usage)

        result = CompactionResult(
            compacted_messages=compacted_messages,
            compacted_components=compacted_components,
            compacted_system_prompt=compacted_prompt,
            original_token_count=original_usage,
            compacted_token_count=compacted_usage,
            summary=summary,
            compression_ratio=compacted_usage.total / original_usage.total,
            messages_compacted=summary.source_message_count if summary else 0,
            was_compacted=True,
            dropped_component_ids=dropped,
        )
        logger.info(
            "Context compacted",
            original_tokens=original_usage.total,
            compacted_tokens=compacted_usage.total,
            compression_ratio=round(result.compression_ratio, 3),
            messages_compacted=result.messages_compacted,
            components_dropped=len(dropped),
        )
        return result

    def needs_compaction(self, usage: TokenUsage) -> bool:
        """Check whether usage exceeds the target compression ratio."""
        return usage.usage_percentage > self.config.compression.target_compression_ratio * 100

    def select_components(self, components: Mapping[str, UIComponent]) -> Dict[str, UIComponent]:
        """Select the newest components that fit the components ceiling.

        Components are ordered by their ``timestamp`` prop, newest first
        (missing timestamps count as 0), and added whole until the first one
        that would overflow the ceiling.
        """
        ceiling = self.config.budget.components_ceiling
        ordered = sorted(components.items(), key=lambda item: _recency(item[1]), reverse=True)

        selected: Dict[str, UIComponent] = {}
        running = 0
        for component_id, component in ordered:
            tokens = self.estimator.estimate_component(component)
            if running + tokens > ceiling:
                break
            selected[component_id] = component
            running += tokens
        return selected

    def get_config(self) -> ContextConfig:
        return self.config

    def update_config(self, config: ContextConfig) -> None:
        """Replace the configuration.

        The budget, compression and estimator settings take effect on the
        next call.
        """
        self.config = config
        self.estimator.budget = config.budget
        self.estimator.update_settings(config.estimator)
        self.summarizer.settings = config.compression

    def generate_context_info(
        self,
        messages: Sequence[Message],
        components: Mapping[str, UIComponent],
        compact_components: Optional[Mapping[str, "CompactComponent"]] = None,
    ) -> str:
        """Build the context-info block appended to the system prompt."""
        lines = [
            CONTEXT_INFO_START,
            f"- Messages: {len(messages)}",
            f"- Components: {len(components)}",
        ]

        types = list(dict.fromkeys(component.type for component in components.values()))
        if types:
            lines.append(f"- Component types: {', '.join(types)}")

        if components:
            lines.append("- Component details:")
            for component_id, component in components.items():
                compact = compact_components.get(component_id) if compact_components else None
                description = (
                    compact.natural_language_summary
                    if compact is not None
                    else describe_component(component)
                )
                lines.append(f"  - {component_id}: {description}")

        lines.append(CONTEXT_INFO_END)
        return "\n".join(lines)

    def _append_context_info(
        self,
        system_prompt: str,
        messages: Sequence[Message],
        components: Mapping[str, UIComponent],
        compact_components: Optional[Mapping[str, "CompactComponent"]],
    ) -> str:
        info = self.generate_context_info(messages, components, compact_components)
        if not system_prompt:
            return info
        return f"{system_prompt}\n\n{info}"

    def _unchanged(
        self,
        messages: Sequence[Message],
        components: Mapping[str, UIComponent],
        system_prompt: str,
        usage: TokenUsage,
    ) -> CompactionResult:
        return CompactionResult(
            compacted_messages=list(messages),
            compacted_components=dict(components),
            compacted_system_prompt=system_prompt,
            original_token_count=usage,
            compacted_token_count=usage,
        )


def create_context_compactor(config: Optional[ContextConfig] = None) -> ContextCompactor:
    """Create a context compactor with the default estimator and summarizer."""
    return ContextCompactor(config=config)
