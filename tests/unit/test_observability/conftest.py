"""Local fixtures for observability tests."""

from __future__ import annotations

from typing import Iterator

import pytest

from canvas_context.observability.logging import (
    LogContext,
    clear_context,
    configure_logging,
)


# ============================================================================
# Logging Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Restore the default logging setup after each test."""
    yield
    clear_context()
    configure_logging()


@pytest.fixture
def log_context() -> LogContext:
    """Create a log context for a conversation."""
    return LogContext(conversation_id="conv-1", extra={"tenant": "acme"})
