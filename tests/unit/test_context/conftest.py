"""Local fixtures for context module tests."""

from __future__ import annotations

from typing import Callable, List

import pytest

from canvas_context.context import (
    CompressionSettings,
    ContextCompactor,
    ContextConfig,
    MessageSummarizer,
    TokenEstimator,
)
from canvas_context.types import Message, MessageRole


# ============================================================================
# Estimator Fixtures
# ============================================================================


@pytest.fixture
def estimator() -> TokenEstimator:
    """Create an estimator with default settings."""
    return TokenEstimator()


# ============================================================================
# Summarizer Fixtures
# ============================================================================


@pytest.fixture
def compression_settings() -> CompressionSettings:
    """Retain 10 recent messages, summarize past 20."""
    return CompressionSettings(
        recent_message_retention_count=10,
        max_messages_before_summarize=20,
    )


@pytest.fixture
def summarizer(compression_settings: CompressionSettings) -> MessageSummarizer:
    """Create an extractive summarizer."""
    return MessageSummarizer(settings=compression_settings)


@pytest.fixture
def mixed_messages() -> List[Message]:
    """Messages mixing short and long replies with component mentions."""
    return [
        Message(id="u1", role=MessageRole.USER, content="Create a login form"),
        Message(id="a1", role=MessageRole.ASSISTANT, content="Created component: LoginForm"),
        Message(id="u2", role=MessageRole.USER, content="Make the button blue"),
        Message(id="a2", role=MessageRole.ASSISTANT, content="Updated. " + "detail " * 40),
        Message(id="s1", role=MessageRole.SYSTEM, content="Theme changed"),
    ]


# ============================================================================
# Compactor Fixtures
# ============================================================================


@pytest.fixture
def compactor(small_config: ContextConfig) -> ContextCompactor:
    """Compactor using the small budget (effective limit 1500 tokens)."""
    return ContextCompactor(config=small_config)


@pytest.fixture
def long_conversation(conversation_factory: Callable[..., List[Message]]) -> List[Message]:
    """25 messages of about 38 tokens each, over the small budget's target."""
    return conversation_factory(25, content_size=100)
