"""Common test fixtures and configuration for canvas_context tests."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest

from canvas_context.context.config import ContextConfig, TokenBudget
from canvas_context.types import Message, MessageRole, UIComponent


# ============================================================================
# Message Fixtures
# ============================================================================


def build_conversation(count: int, content_size: int = 40) -> List[Message]:
    """Alternating user/assistant messages with predictable ids."""
    messages = []
    for i in range(count):
        role = MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT
        messages.append(
            Message(
                id=f"msg-{i}",
                role=role,
                content=f"message {i} " + "x" * content_size,
                timestamp=1000.0 + i,
            )
        )
    return messages


@pytest.fixture
def sample_messages() -> List[Message]:
    """Create a short conversation."""
    return [
        Message(id="m1", role=MessageRole.USER, content="Build me a dashboard"),
        Message(id="m2", role=MessageRole.ASSISTANT, content="Here is a dashboard component: Dashboard"),
        Message(id="m3", role=MessageRole.USER, content="Add a chart for revenue"),
    ]


@pytest.fixture
def conversation_factory() -> Callable[..., List[Message]]:
    """Factory for conversations of a given length."""
    return build_conversation


# ============================================================================
# Component Fixtures
# ============================================================================


def make_component(
    component_id: str,
    component_type: str = "Card",
    props: Optional[Dict[str, Any]] = None,
    state: Optional[Dict[str, Any]] = None,
    children: Optional[List[UIComponent]] = None,
    parent_id: Optional[str] = None,
) -> UIComponent:
    """Build a UIComponent with sensible defaults."""
    return UIComponent(
        id=component_id,
        type=component_type,
        props=dict(props or {}),
        state=state,
        children=list(children or []),
        parent_id=parent_id,
    )


@pytest.fixture
def component_factory() -> Callable[..., UIComponent]:
    """Factory for UI components."""
    return make_component


@pytest.fixture
def nested_component() -> UIComponent:
    """A card with a header and a chart child."""
    return make_component(
        "comp-card",
        "Card",
        props={"title": "Revenue", "variant": "outlined"},
        state={"expanded": True},
        children=[
            make_component("comp-header", "Header", props={"text": "Q3"}, parent_id="comp-card"),
            make_component(
                "comp-chart",
                "Chart",
                props={"data": [1, 2, 3], "kind": "bar"},
                parent_id="comp-card",
            ),
        ],
    )


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def small_budget() -> TokenBudget:
    """A budget small enough that modest conversations need compaction."""
    return TokenBudget(
        total_ceiling=2000,
        system_prompt_ceiling=200,
        conversation_ceiling=1000,
        components_ceiling=300,
        reserved_for_response=500,
    )


@pytest.fixture
def small_config(small_budget: TokenBudget) -> ContextConfig:
    """Configuration using the small budget."""
    return ContextConfig(budget=small_budget)
