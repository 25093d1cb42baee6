"""Context window management for canvas conversations.

This package provides:
- Token budget and compression configuration
- Token estimation for messages, component trees and system prompts
- Summarization of older messages
- Compaction of a conversation bundle to fit the budget
- Conversation state and compaction persistence

Example:
    from canvas_context.context import ContextCompactor, get_context_config

    config = get_context_config(compression={"recent_message_retention_count": 6})
    compactor = ContextCompactor(config=config)

    result = compactor.compact(messages, components, system_prompt=prompt)
    if result.was_compacted:
        send(result.compacted_messages, result.compacted_system_prompt)
"""

# Configuration
from .config import (
    CompressionSettings,
    ConfigurationError,
    ContextConfig,
    EstimatorSettings,
    RegistrySettings,
    TokenBudget,
    get_context_config,
    validate_config,
)

# Token estimation
from .tokens import (
    CharacterEstimateCounter,
    TiktokenCounter,
    TokenCounter,
    TokenEstimator,
    TokenUsage,
)

# Summarization
from .summarizer import (
    ConversationSummary,
    MessageSummarizer,
    SummarizationResult,
    SummarizeOptions,
    SummaryPrompt,
    TextGenerator,
    create_message_summarizer,
)

# Compaction
from .compactor import (
    CompactionResult,
    ContextCompactor,
    create_context_compactor,
)

# Conversation state and persistence
from .conversation import (
    CompactionRecord,
    CompactionStore,
    ConversationContext,
    FileCompactionStore,
    InMemoryCompactionStore,
)

__all__ = [
    # Configuration
    "CompressionSettings",
    "ConfigurationError",
    "ContextConfig",
    "EstimatorSettings",
    "RegistrySettings",
    "TokenBudget",
    "get_context_config",
    "validate_config",
    # Token estimation
    "CharacterEstimateCounter",
    "TiktokenCounter",
    "TokenCounter",
    "TokenEstimator",
    "TokenUsage",
    # Summarization
    "ConversationSummary",
    "MessageSummarizer",
    "SummarizationResult",
    "SummarizeOptions",
    "SummaryPrompt",
    "TextGenerator",
    "create_message_summarizer",
    # Compaction
    "CompactionResult",
    "ContextCompactor",
    "create_context_compactor",
    # Conversation
    "CompactionRecord",
    "CompactionStore",
    "ConversationContext",
    "FileCompactionStore",
    "InMemoryCompactionStore",
]
