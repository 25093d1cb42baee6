"""Local fixtures for component module tests."""

from __future__ import annotations

import pytest

from canvas_context.components import (
    ComponentRegistry,
    EditableComponentManager,
    StructuralHasher,
)
from canvas_context.context.config import RegistrySettings


# ============================================================================
# Hasher / Registry Fixtures
# ============================================================================


@pytest.fixture
def hasher() -> StructuralHasher:
    """Create a DJB2 structural hasher."""
    return StructuralHasher()


@pytest.fixture
def registry() -> ComponentRegistry:
    """Create a registry with default settings."""
    return ComponentRegistry()


@pytest.fixture
def tiny_registry() -> ComponentRegistry:
    """Registry holding at most two components."""
    return ComponentRegistry(RegistrySettings(capacity=2))


# ============================================================================
# Editing Fixtures
# ============================================================================


@pytest.fixture
def manager() -> EditableComponentManager:
    """Create an empty editable component manager."""
    return EditableComponentManager()


@pytest.fixture
def editable_card(manager, component_factory):
    """A managed card with string, number and state fields."""
    component = component_factory(
        "card-1",
        "Card",
        props={"title": "A", "count": 3, "tags": ["x"]},
        state={"open": False},
    )
    return manager.make_editable(component)
