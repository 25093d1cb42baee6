"""Tests for context compaction.

Tests cover:
- The empty and under-target no-op paths
- Summarization and component selection when over target
- The context-info block appended to the system prompt
- Falling back to the full context when compaction would not shrink it
- Configuration updates and the factory
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from canvas_context.components.models import CompactComponent, ComplexityLevel
from canvas_context.context.compactor import (
    CONTEXT_INFO_END,
    CONTEXT_INFO_START,
    CompactionResult,
    ContextCompactor,
    create_context_compactor,
    describe_component,
)
from canvas_context.context.config import CompressionSettings, ContextConfig, EstimatorSettings
from canvas_context.context.tokens import TokenUsage
from canvas_context.types import Message, MessageRole


def _timestamped(component_factory, component_id, timestamp, body_size):
    return component_factory(
        component_id, "Card", props={"timestamp": timestamp, "body": "x" * body_size}
    )


# ============================================================================
# No-op Tests
# ============================================================================


class TestNoOp:
    """Tests for the paths that leave the context unchanged."""

    def test_empty_input(self):
        """Test empty messages and components give a trivial result."""
        result = ContextCompactor().compact([], {})

        assert result.was_compacted is False
        assert result.compression_ratio == 1
        assert result.original_token_count.total == 0
        assert result.compacted_token_count.total == 0
        assert result.compacted_messages == []
        assert result.compacted_components == {}
        assert result.messages_compacted == 0

    def test_under_target(self, sample_messages):
        """Test small conversations are returned unchanged."""
        result = ContextCompactor().compact(sample_messages, {}, system_prompt="Prompt")

        assert result.was_compacted is False
        assert result.compression_ratio == 1
        assert result.compacted_messages == sample_messages
        assert result.compacted_messages is not sample_messages
        assert result.compacted_system_prompt == "Prompt"
        assert result.compacted_token_count == result.original_token_count


# ============================================================================
# Compaction Tests
# ============================================================================


class TestCompaction:
    """Tests for compaction over the target ratio."""

    def test_needs_compaction(self, compactor):
        assert compactor.needs_compaction(TokenUsage(total=601, limit=1500, usage_percentage=40.07))
        assert not compactor.needs_compaction(TokenUsage(total=600, limit=1500, usage_percentage=40.0))

    def test_summarizes_long_conversation(self, compactor, long_conversation):
        """Test older messages fold into one summary."""
        result = compactor.compact(long_conversation, {}, system_prompt="You build UIs.")

        assert result.was_compacted is True
        assert result.messages_compacted == 15
        assert len(result.compacted_messages) == 11
        assert result.compacted_messages[0].role == MessageRole.SYSTEM
        assert result.compacted_messages[1:] == long_conversation[15:]
        assert result.summary is not None

    def test_only_shrinks(self, compactor, long_conversation):
        result = compactor.compact(long_conversation, {}, system_prompt="You build UIs.")

        assert result.compacted_token_count.total <= result.original_token_count.total
        assert result.compression_ratio == pytest.approx(
            result.compacted_token_count.total / result.original_token_count.total
        )
        assert 0 < result.compression_ratio <= 1
        assert result.tokens_saved > 0

    def test_inputs_not_mutated(self, compactor, long_conversation, nested_component):
        components = {nested_component.id: nested_component}
        messages_before = list(long_conversation)
        components_before = dict(components)

        result = compactor.compact(long_conversation, components, system_prompt="P")

        assert long_conversation == messages_before
        assert components == components_before
        assert result.compacted_components is not components

    def test_context_info_appended(self, compactor, long_conversation, nested_component):
        result = compactor.compact(
            long_conversation, {nested_component.id: nested_component}, system_prompt="You build UIs."
        )
        prompt = result.compacted_system_prompt

        assert prompt.startswith("You build UIs.\n\n" + CONTEXT_INFO_START)
        assert prompt.endswith(CONTEXT_INFO_END)
        assert "- Messages: 11" in prompt
        assert "- Components: 1" in prompt
        assert "- Component types: Card" in prompt
        assert '  - comp-card: Card (title="Revenue", variant="outlined") with 2 children' in prompt

    def test_registry_summaries_describe_components(
        self, compactor, long_conversation, nested_component
    ):
        """Test supplied compact components replace the local description."""
        compact = CompactComponent(
            id="comp-card",
            type="Card",
            hash="abc",
            natural_language_summary="Revenue card with a chart",
            estimated_tokens=10,
            complexity_level=ComplexityLevel.MEDIUM,
            last_accessed_at=0.0,
            created_at=0.0,
        )
        result = compactor.compact(
            long_conversation,
            {nested_component.id: nested_component},
            compact_components={"comp-card": compact},
        )

        assert "  - comp-card: Revenue card with a chart" in result.compacted_system_prompt

    def test_empty_system_prompt_gets_context_info_only(self, compactor, long_conversation):
        result = compactor.compact(long_conversation, {})
        assert result.compacted_system_prompt.startswith(CONTEXT_INFO_START)

    def test_summarization_disabled(self, small_config, long_conversation, component_factory):
        """Test only component selection runs when summarization is off."""
        small_config.compression = CompressionSettings(enable_summarization=False)
        compactor = ContextCompactor(config=small_config)
        components = {
            f"c{i}": _timestamped(component_factory, f"c{i}", i, 400) for i in range(1, 4)
        }

        result = compactor.compact(long_conversation, components)

        assert result.was_compacted is True
        assert result.summary is None
        assert result.messages_compacted == 0
        assert result.compacted_messages == long_conversation
        assert result.dropped_component_ids == ["c1"]

    def test_component_compression_disabled(self, small_config, long_conversation, component_factory):
        small_config.compression = CompressionSettings(enable_component_compression=False)
        compactor = ContextCompactor(config=small_config)
        components = {
            f"c{i}": _timestamped(component_factory, f"c{i}", i, 400) for i in range(1, 4)
        }

        result = compactor.compact(long_conversation, components)

        assert set(result.compacted_components) == {"c1", "c2", "c3"}
        assert result.dropped_component_ids == []


# ============================================================================
# Component Selection Tests
# ============================================================================


class TestSelectComponents:
    """Tests for newest-first greedy component selection."""

    def test_newest_first_under_ceiling(self, compactor, component_factory):
        """Test the oldest component is dropped once the ceiling is reached."""
        # Each component estimates to 129 tokens; the ceiling is 300
        components = {
            f"c{i}": _timestamped(component_factory, f"c{i}", i, 400) for i in range(1, 4)
        }
        selected = compactor.select_components(components)

        assert list(selected) == ["c3", "c2"]

    def test_stops_at_first_overflow(self, compactor, component_factory):
        """Test a smaller older component is not packed in after an overflow."""
        components = {
            "b3": _timestamped(component_factory, "b3", 3, 700),
            "b2": _timestamped(component_factory, "b2", 2, 700),
            "s1": component_factory("s1", "Text", props={"timestamp": 1}),
        }
        selected = compactor.select_components(components)

        assert list(selected) == ["b3"]

    def test_missing_timestamp_sorts_last(self, compactor, component_factory):
        components = {
            "old": component_factory("old", "Text"),
            "new": component_factory("new", "Text", props={"timestamp": 5}),
        }
        assert list(compactor.select_components(components)) == ["new", "old"]

    def test_oversized_component_selects_nothing(self, compactor, component_factory):
        components = {"big": _timestamped(component_factory, "big", 1, 5000)}
        assert compactor.select_components(components) == {}


# ============================================================================
# Fallback Tests
# ============================================================================


class TestFallback:
    """Tests for falling back to the full context."""

    def test_growth_returns_uncompacted(self, compactor):
        """Test a few huge messages, which cannot be summarized, stay as-is."""
        messages = [
            Message(id=f"m{i}", role=MessageRole.USER, content="q" * 3000) for i in range(3)
        ]
        result = compactor.compact(messages, {}, system_prompt="P")

        assert result.was_compacted is False
        assert result.compression_ratio == 1
        assert result.compacted_messages == messages
        assert result.compacted_system_prompt == "P"


# ============================================================================
# Config / Result Tests
# ============================================================================


class TestCompactorConfig:
    """Tests for configuration access and updates."""

    def test_get_config(self, compactor, small_config):
        assert compactor.get_config() is small_config

    def test_update_config(self, compactor, long_conversation):
        """Test a higher target stops compaction."""
        config = ContextConfig(
            budget=compactor.get_config().budget,
            compression=CompressionSettings(target_compression_ratio=1.0),
        )
        compactor.update_config(config)

        assert compactor.summarizer.settings is config.compression
        assert compactor.compact(long_conversation, {}).was_compacted is False

    def test_update_config_applies_estimator_settings(self, compactor, sample_messages):
        before = compactor.estimator.estimate_messages(sample_messages)
        config = ContextConfig(
            budget=compactor.get_config().budget,
            estimator=EstimatorSettings(chars_per_token=1.0),
        )
        compactor.update_config(config)

        assert compactor.estimator.settings is config.estimator
        assert compactor.estimator.estimate_messages(sample_messages) > before

    def test_custom_summarizer_used(self, small_config, long_conversation):
        summarizer = MagicMock()
        summarizer.summarize_messages.return_value = MagicMock(
            compacted_messages=long_conversation[-2:], summary=None
        )
        compactor = ContextCompactor(config=small_config, summarizer=summarizer)

        result = compactor.compact(long_conversation, {})

        summarizer.summarize_messages.assert_called_once()
        assert result.compacted_messages == long_conversation[-2:]

    def test_factory(self, small_config):
        compactor = create_context_compactor(small_config)
        assert isinstance(compactor, ContextCompactor)
        assert compactor.estimator.budget is small_config.budget

    def test_result_to_dict(self, compactor, long_conversation):
        data = compactor.compact(long_conversation, {}).to_dict()

        assert data["was_compacted"] is True
        assert data["messages_compacted"] == 15
        assert data["message_count"] == 11
        assert data["summary"]["source_message_count"] == 15
        assert data["original_token_count"]["total"] > data["compacted_token_count"]["total"]

    def test_no_op_result_defaults(self):
        usage = TokenUsage()
        result = CompactionResult(
            compacted_messages=[],
            compacted_components={},
            compacted_system_prompt="",
            original_token_count=usage,
            compacted_token_count=usage,
        )
        assert result.compression_ratio == 1.0
        assert result.was_compacted is False
        assert result.dropped_component_ids == []


def test_describe_component(component_factory):
    component = component_factory(
        "c", "Table", props={"caption": "a" * 30, "rows": [1, 2], "dense": True, "extra": 1}
    )
    assert describe_component(component) == (
        'Table (caption="' + "a" * 17 + '...", rows=[2 items], dense=true)'
    )
