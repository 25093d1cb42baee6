"""Conversation state and compaction persistence.

ConversationContext holds one conversation's messages, component trees and
system prompt, and feeds them to the compactor. It is owned by a single
caller; nothing here locks.

Compaction records are persisted through a CompactionStore:
- InMemoryCompactionStore: process-local dict
- FileCompactionStore: one JSON file written with aiofiles
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import aiofiles
import aiofiles.os

from canvas_context.components.models import CompactComponent
from canvas_context.components.registry import ComponentRegistry
from canvas_context.context.compactor import CompactionResult, ContextCompactor
from canvas_context.context.config import ContextConfig
from canvas_context.context.summarizer import ConversationSummary
from canvas_context.context.tokens import TokenEstimator, TokenUsage
from canvas_context.observability.logging import get_logger
from canvas_context.types import Message, UIComponent

logger = get_logger(__name__)


@dataclass
class CompactionRecord:
    """Serializable snapshot of one compaction of a conversation."""

    conversation_id: str
    compacted_messages: List[Message]
    compacted_system_prompt: str
    original_token_count: TokenUsage
    compacted_token_count: TokenUsage
    compression_ratio: float
    messages_compacted: int
    was_compacted: bool
    summary: Optional[ConversationSummary] = None
    dropped_component_ids: List[str] = field(default_factory=list)
    timestamp: float = 0.0

    @classmethod
    def from_result(cls, conversation_id: str, result: CompactionResult) -> CompactionRecord:
        return cls(
            conversation_id=conversation_id,
            compacted_messages=list(result.compacted_messages),
            compacted_system_prompt=result.compacted_system_prompt,
            original_token_count=result.original_token_count,
            compacted_token_count=result.compacted_token_count,
            compression_ratio=result.compression_ratio,
            messages_compacted=result.messages_compacted,
            was_compacted=result.was_compacted,
            summary=result.summary,
            dropped_component_ids=list(result.dropped_component_ids),
            timestamp=result.timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to dictionary format."""
        return {
            "conversation_id": self.conversation_id,
            "compacted_messages": [message.to_dict() for message in self.compacted_messages],
            "compacted_system_prompt": self.compacted_system_prompt,
            "original_token_count": self.original_token_count.to_dict(),
            "compacted_token_count": self.compacted_token_count.to_dict(),
            "compression_ratio": self.compression_ratio,
            "messages_compacted": self.messages_compacted,
            "was_compacted": self.was_compacted,
            "summary": self.summary.to_dict() if self.summary else None,
            "dropped_component_ids": list(self.dropped_component_ids),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CompactionRecord:
        """Create record from dictionary."""
        summary = data.get("summary")
        return cls(
            conversation_id=data["conversation_id"],
            compacted_messages=[
                Message.from_dict(message) for message in data.get("compacted_messages", [])
            ],
            compacted_system_prompt=data.get("compacted_system_prompt", ""),
            original_token_count=TokenUsage.from_dict(data.get("original_token_count", {})),
            compacted_token_count=TokenUsage.from_dict(data.get("compacted_token_count", {})),
            compression_ratio=data.get("compression_ratio", 1.0),
            messages_compacted=data.get("messages_compacted", 0),
            was_compacted=data.get("was_compacted", False),
            summary=ConversationSummary.from_dict(summary) if summary else None,
            dropped_component_ids=list(data.get("dropped_component_ids", [])),
            timestamp=data.get("timestamp", 0.0),
        )


class ConversationContext:
    """Messages, components and system prompt of one conversation.

    Components attached to messages, or added directly, are registered in
    the component registry so compaction can describe them with registry
    summaries.
    """

    def __init__(
        self,
        conversation_id: str,
        system_prompt: str = "",
        registry: Optional[ComponentRegistry] = None,
        config: Optional[ContextConfig] = None,
    ):
        """Initialize the conversation.

        Args:
            conversation_id: Identifier used for persisted records.
            system_prompt: System prompt text.
            registry: Component registry; built from config when omitted.
            config: Context configuration.
        """
        self.conversation_id = conversation_id
        self.system_prompt = system_prompt
        self.config = config or ContextConfig()
        self.estimator = TokenEstimator(budget=self.config.budget, settings=self.config.estimator)
        if registry is None:
            registry = ComponentRegistry(settings=self.config.registry, estimator=self.estimator)
        self.registry = registry
        self._messages: List[Message] = []
        self._components: Dict[str, UIComponent] = {}
        self._last_result: Optional[CompactionResult] = None

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    @property
    def components(self) -> Dict[str, UIComponent]:
        return dict(self._components)

    @property
    def last_result(self) -> Optional[CompactionResult]:
        """Result of the most recent compact() call, if any."""
        return self._last_result

    def add_message(self, message: Message) -> None:
        """Append a message and register its attached components."""
        self._messages.append(message)
        for component in message.attached_components:
            self.add_component(component)

    def get_message(self, message_id: str) -> Optional[Message]:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def append_to_message(self, message_id: str, chunk: str) -> bool:
        """Append streamed text to a message.

        Returns:
            True if the message exists, False otherwise.
        """
        message = self.get_message(message_id)
        if message is None:
            return False
        message.append_content(chunk)
        return True

    def add_component(self, component: UIComponent) -> CompactComponent:
        """Add a component tree to the canvas and register it."""
        self._components[component.id] = component
        return self.registry.register(component).to_compact()

    def remove_component(self, component_id: str) -> bool:
        """Remove a component from the canvas and the registry."""
        removed = self._components.pop(component_id, None) is not None
        self.registry.remove(component_id)
        return removed

    def usage(self) -> TokenUsage:
        """Current token usage of the whole conversation."""
        return self.estimator.calculate_usage(
            self._messages, self._components, self.system_prompt
        )

    def compact(self, compactor: Optional[ContextCompactor] = None) -> CompactionResult:
        """Compact the conversation for the next generation request.

        The conversation itself is left unchanged; the result holds the
        compacted bundle.
        """
        compactor = compactor or ContextCompactor(config=self.config, estimator=self.estimator)
        result = compactor.compact(
            self._messages,
            self._components,
            compact_components=self.registry.compact_snapshot(),
            system_prompt=self.system_prompt,
        )
        self._last_result = result
        logger.debug(
            "Conversation compaction finished",
            conversation_id=self.conversation_id,
            was_compacted=result.was_compacted,
        )
        return result

    def to_record(self) -> Optional[CompactionRecord]:
        """Snapshot of the last compaction, or None before the first."""
        if self._last_result is None:
            return None
        return CompactionRecord.from_result(self.conversation_id, self._last_result)


@runtime_checkable
class CompactionStore(Protocol):
    """Protocol for compaction record storage backends."""

    async def save(self, record: CompactionRecord) -> None:
        """Save the latest record for its conversation."""
        ...

    async def load(self, conversation_id: str) -> Optional[CompactionRecord]:
        """Load the latest record, or None if none was saved."""
        ...

    async def delete(self, conversation_id: str) -> bool:
        """Delete a conversation's record. Returns True if it existed."""
        ...

    async def list_ids(self) -> List[str]:
        """List conversation ids with saved records."""
        ...


class InMemoryCompactionStore:
    """Compaction store kept in process memory."""

    def __init__(self) -> None:
        self._records: Dict[str, CompactionRecord] = {}

    async def save(self, record: CompactionRecord) -> None:
        self._records[record.conversation_id] = record

    async def load(self, conversation_id: str) -> Optional[CompactionRecord]:
        return self._records.get(conversation_id)

    async def delete(self, conversation_id: str) -> bool:
        if conversation_id in self._records:
            del self._records[conversation_id]
            return True
        return False

    async def list_ids(self) -> List[str]:
        return list(self._records)

    async def clear(self) -> None:
        self._records.clear()


class FileCompactionStore:
    """Compaction store backed by one JSON file.

    Directory layout:
        base_path/
        └── compactions.json  # conversation id -> latest record
    """

    FILE_NAME = "compactions.json"

    def __init__(self, base_path: Path) -> None:
        """Initialize the store.

        Args:
            base_path: Directory holding the JSON file.
        """
        self._base_path = Path(base_path)
        self._records_file = self._base_path / self.FILE_NAME
        self._cache: Optional[Dict[str, Dict[str, Any]]] = None

    async def _ensure_directory(self) -> None:
        if not self._base_path.exists():
            await aiofiles.os.makedirs(str(self._base_path), exist_ok=True)

    async def _load_cache(self) -> Dict[str, Dict[str, Any]]:
        if self._cache is not None:
            return self._cache

        if not self._records_file.exists():
            self._cache = {}
            return self._cache

        try:
            async with aiofiles.open(self._records_file, "r", encoding="utf-8") as f:
                content = await f.read()
                self._cache = json.loads(content) if content.strip() else {}
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(
                "Unreadable compaction store, starting empty",
                path=str(self._records_file),
                error=str(e),
            )
            self._cache = {}

        return self._cache

    async def _save_cache(self) -> None:
        await self._ensure_directory()
        async with aiofiles.open(self._records_file, "w", encoding="utf-8") as f:
            await f.write(json.dumps(self._cache, indent=2, ensure_ascii=False))

    async def save(self, record: CompactionRecord) -> None:
        cache = await self._load_cache()
        cache[record.conversation_id] = record.to_dict()
        await self._save_cache()

    async def load(self, conversation_id: str) -> Optional[CompactionRecord]:
        cache = await self._load_cache()
        data = cache.get(conversation_id)
        if data is None:
            return None
        return CompactionRecord.from_dict(data)

    async def delete(self, conversation_id: str) -> bool:
        cache = await self._load_cache()
        if conversation_id in cache:
            del cache[conversation_id]
            await self._save_cache()
            return True
        return False

    async def list_ids(self) -> List[str]:
        cache = await self._load_cache()
        return list(cache)
