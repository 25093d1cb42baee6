"""canvas_context - context window management for generative UI canvases.

The package tracks how many tokens a conversation (messages, generated UI
component trees and the system prompt) consumes and compacts it to fit:
- Token budget configuration and estimation
- Summarization of older messages
- Context compaction with component selection under a ceiling
- A deduplicating, LRU-bounded component registry
- Field-level component editing with undo/redo

Example:
    from canvas_context import ConversationContext, Message, MessageRole

    conversation = ConversationContext("conv-1", system_prompt="You build UIs.")
    conversation.add_message(Message(id="m1", role=MessageRole.USER, content="Add a chart"))

    result = conversation.compact()
    print(result.compression_ratio, result.compacted_system_prompt)
"""

__version__ = "0.1.0"

from .types import HashAlgorithm, JSONValue, Message, MessageRole, UIComponent

# Context must load before components; the registry builds on its config
from .context import (
    CompactionRecord,
    CompactionResult,
    CompactionStore,
    ConfigurationError,
    ContextCompactor,
    ContextConfig,
    ConversationContext,
    ConversationSummary,
    FileCompactionStore,
    InMemoryCompactionStore,
    MessageSummarizer,
    TokenBudget,
    TokenEstimator,
    TokenUsage,
    get_context_config,
)
from .components import (
    CompactComponent,
    ComponentRegistry,
    EditableComponentManager,
    RegistryStats,
    StructuralHasher,
)

__all__ = [
    "__version__",
    # Types
    "HashAlgorithm",
    "JSONValue",
    "Message",
    "MessageRole",
    "UIComponent",
    # Context
    "CompactionRecord",
    "CompactionResult",
    "CompactionStore",
    "ConfigurationError",
    "ContextCompactor",
    "ContextConfig",
    "ConversationContext",
    "ConversationSummary",
    "FileCompactionStore",
    "InMemoryCompactionStore",
    "MessageSummarizer",
    "TokenBudget",
    "TokenEstimator",
    "TokenUsage",
    "get_context_config",
    # Components
    "CompactComponent",
    "ComponentRegistry",
    "EditableComponentManager",
    "RegistryStats",
    "StructuralHasher",
]
