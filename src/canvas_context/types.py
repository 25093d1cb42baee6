"""Core data types shared by the context and component modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

# Props and state bags hold JSON-serializable values only.
JSONValue = Union[str, int, float, bool, None, List[Any], Dict[str, Any]]


class HashAlgorithm(str, Enum):
    """Non-cryptographic 32-bit string hashes used for structural hashing."""

    DJB2 = "djb2"
    SDBM = "sdbm"
    FNV1A = "fnv1a"


class MessageRole(str, Enum):
    """Role of a message in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class UIComponent:
    """A node in a generated UI component tree.

    A child belongs to exactly one parent; trees are never shared between
    components.
    """

    id: str
    type: str
    props: Dict[str, JSONValue] = field(default_factory=dict)
    state: Optional[Dict[str, JSONValue]] = None
    children: List[UIComponent] = field(default_factory=list)
    parent_id: Optional[str] = None

    def iter_tree(self):
        """Yield this component and all descendants depth-first."""
        yield self
        for child in self.children:
            yield from child.iter_tree()

    def to_dict(self) -> Dict[str, Any]:
        """Convert component tree to dictionary format."""
        result: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "props": dict(self.props),
        }
        if self.state is not None:
            result["state"] = dict(self.state)
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        if self.parent_id:
            result["parentId"] = self.parent_id
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> UIComponent:
        """Build a component tree from its dictionary format."""
        return cls(
            id=data["id"],
            type=data["type"],
            props=dict(data.get("props") or {}),
            state=dict(data["state"]) if data.get("state") is not None else None,
            children=[cls.from_dict(child) for child in data.get("children") or []],
            parent_id=data.get("parentId", data.get("parent_id")),
        )


@dataclass
class Message:
    """A message in a canvas conversation."""

    id: str
    role: MessageRole
    content: str
    rendered_markup: Optional[str] = None  # Markup generated alongside the text
    timestamp: Optional[float] = None
    attached_components: List[UIComponent] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.role, MessageRole):
            self.role = MessageRole(self.role)

    def append_content(self, chunk: str) -> None:
        """Append streamed text to the message content."""
        self.content += chunk

    def to_dict(self) -> Dict[str, Any]:
        """Convert message to dictionary format."""
        result: Dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
        }
        if self.rendered_markup is not None:
            result["renderedMarkup"] = self.rendered_markup
        if self.timestamp is not None:
            result["timestamp"] = self.timestamp
        if self.attached_components:
            result["attachedComponents"] = [
                component.to_dict() for component in self.attached_components
            ]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Message:
        """Build a message from its dictionary format."""
        return cls(
            id=data["id"],
            role=MessageRole(data["role"]),
            content=data.get("content", ""),
            rendered_markup=data.get("renderedMarkup", data.get("rendered_markup")),
            timestamp=data.get("timestamp"),
            attached_components=[
                UIComponent.from_dict(component)
                for component in data.get("attachedComponents", []) or []
            ],
        )
