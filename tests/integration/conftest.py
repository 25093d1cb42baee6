"""Fixtures for integration tests."""

from __future__ import annotations

from typing import List

import pytest

from canvas_context import ContextConfig, get_context_config
from canvas_context.types import Message, MessageRole, UIComponent


@pytest.fixture
def integration_config() -> ContextConfig:
    """Small budget so a realistic session triggers compaction."""
    return get_context_config(
        budget={
            "total_ceiling": 4000,
            "system_prompt_ceiling": 400,
            "conversation_ceiling": 2000,
            "components_ceiling": 600,
            "reserved_for_response": 1000,
        },
        compression={"recent_message_retention_count": 6, "max_messages_before_summarize": 10},
        registry={"capacity": 20},
    )


@pytest.fixture
def canvas_session() -> List[Message]:
    """A design session where each assistant reply attaches a component."""
    messages: List[Message] = []
    for turn in range(12):
        messages.append(
            Message(
                id=f"user-{turn}",
                role=MessageRole.USER,
                content=f"Turn {turn}: please adjust the layout of section {turn} " + "and more " * 20,
            )
        )
        component = UIComponent(
            id=f"comp-{turn}",
            type="Chart" if turn % 2 else "Table",
            props={"title": f"Section {turn}", "timestamp": turn, "rows": list(range(turn))},
        )
        messages.append(
            Message(
                id=f"assistant-{turn}",
                role=MessageRole.ASSISTANT,
                content=f"Updated component: {component.type} for section {turn}",
                attached_components=[component],
            )
        )
    return messages
