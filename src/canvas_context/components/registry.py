"""Content-addressable registry for generated UI components.

The registry provides:
- Structural-hash deduplication of component trees
- Compact natural-language summaries for prompt building
- Complexity scoring and dependency extraction
- Least-recently-used eviction under a capacity cap

The registry is not thread-safe; one conversation session owns it.
"""

from __future__ import annotations

import math
from collections import OrderedDict
from typing import Any, Dict, List, Mapping, Optional

from canvas_context.components.hashing import HashOptions, StructuralHasher
from canvas_context.components.models import (
    CompactComponent,
    ComplexityAssessment,
    ComplexityLevel,
    RegistryEntry,
    RegistryStats,
    SummaryOptions,
)
from canvas_context.context.config import RegistrySettings
from canvas_context.context.tokens import TokenEstimator
from canvas_context.observability.logging import get_logger
from canvas_context.types import UIComponent

logger = get_logger(__name__)

# String prop values with this prefix reference another component by id.
COMPONENT_REF_PREFIX = "comp-"

# Props shown first in component summaries
PRIORITY_PROP_KEYS = ("title", "name", "label", "text", "value", "data")


def format_value(value: Any) -> str:
    """Format a prop value for display in a summary."""
    if isinstance(value, str):
        return value[:17] + "..." if len(value) > 20 else value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return f"[{len(value)} items]"
    if isinstance(value, dict):
        return "[object]"
    return str(value)


def calculate_nesting_depth(component: UIComponent) -> int:
    """Depth of a component tree; a leaf has depth 1."""
    if not component.children:
        return 1
    return 1 + max(calculate_nesting_depth(child) for child in component.children)


def extract_dependencies(component: UIComponent) -> List[str]:
    """Collect ids a component tree depends on.

    A component depends on its parent and on any prop value (or list element)
    that is a component reference string. Children are searched recursively.
    The result is deduplicated in first-seen order.
    """
    found: List[str] = []
    if component.parent_id:
        found.append(component.parent_id)

    for child in component.children:
        found.extend(extract_dependencies(child))

    for value in component.props.values():
        if isinstance(value, str) and value.startswith(COMPONENT_REF_PREFIX):
            found.append(value)
        elif isinstance(value, list):
            found.extend(
                item
                for item in value
                if isinstance(item, str) and item.startswith(COMPONENT_REF_PREFIX)
            )

    return list(dict.fromkeys(found))


def assess_complexity(component: UIComponent) -> ComplexityAssessment:
    """Score a component's complexity on a 0-100 scale."""
    factors = {
        "property_count": len(component.props),
        "nesting_depth": calculate_nesting_depth(component),
        "child_count": len(component.children),
        "dependency_count": len(extract_dependencies(component)),
    }
    score = (
        factors["property_count"] * 2
        + factors["nesting_depth"] * 10
        + factors["child_count"] * 5
        + factors["dependency_count"] * 8
    )
    score = max(0, min(100, score))

    if score < 30:
        level = ComplexityLevel.LOW
    elif score < 60:
        level = ComplexityLevel.MEDIUM
    else:
        level = ComplexityLevel.HIGH

    return ComplexityAssessment(level=level, score=score, factors=factors)


def summarize_component(
    component: UIComponent, options: Optional[SummaryOptions] = None
) -> str:
    """Generate a short natural-language summary of a component."""
    opts = options or SummaryOptions()
    parts: List[str] = []

    if opts.include_type:
        parts.append(component.type)

    if opts.include_key_props and component.props:
        key_props = _key_properties(component.props, opts.key_props_count)
        if key_props:
            parts.append(f"with {', '.join(key_props)}")

    if component.children:
        parts.append(f"containing {len(component.children)} child component(s)")

    if component.state:
        parts.append(f"with {len(component.state)} state properties")

    summary = " ".join(parts)
    if opts.max_length and len(summary) > opts.max_length:
        summary = summary[: opts.max_length - 3] + "..."

    return summary or f"{component.type} component"


def _key_properties(props: Mapping[str, Any], count: int) -> List[str]:
    key_props: List[str] = []
    for key in PRIORITY_PROP_KEYS:
        if len(key_props) >= count:
            break
        if key in props:
            key_props.append(f'{key}="{format_value(props[key])}"')

    for key, value in props.items():
        if len(key_props) >= count:
            break
        if key not in PRIORITY_PROP_KEYS:
            key_props.append(f'{key}="{format_value(value)}"')

    return key_props


class ComponentRegistry:
    """Bounded component store keyed by id and indexed by structural hash.

    Entries are kept in an OrderedDict in least-recently-used order, so a
    touch and an eviction are both O(1). Every entry lives in both the id
    index and the hash index, or in neither.
    """

    def __init__(
        self,
        settings: Optional[RegistrySettings] = None,
        estimator: Optional[TokenEstimator] = None,
        summary_options: Optional[SummaryOptions] = None,
    ):
        """Initialize the registry.

        Args:
            settings: Capacity, eviction fraction and hash algorithm.
            estimator: Token estimator used for per-component estimates.
            summary_options: Default options for component summaries.
        """
        self.settings = settings or RegistrySettings()
        self.hasher = StructuralHasher(self.settings.hash_algorithm)
        self._estimator = estimator or TokenEstimator()
        self._summary_options = summary_options or SummaryOptions()

        self._entries: "OrderedDict[str, RegistryEntry]" = OrderedDict()
        self._hash_index: Dict[str, str] = {}
        self._duplicates_avoided = 0

    @property
    def capacity(self) -> int:
        return self.settings.capacity

    def register(
        self,
        component: UIComponent,
        hash_options: Optional[HashOptions] = None,
        summary_options: Optional[SummaryOptions] = None,
    ) -> RegistryEntry:
        """Register a component, deduplicating by structural hash.

        If a structurally identical tree is already registered, the existing
        entry is touched and returned; the incoming component's id is not
        stored.

        Args:
            component: Component tree to register.
            hash_options: Optional hash options.
            summary_options: Optional summary options.

        Returns:
            The new or existing RegistryEntry.
        """
        component_hash = self.hasher.hash(component, hash_options)

        existing_id = self._hash_index.get(component_hash)
        if existing_id is not None:
            entry = self._entries[existing_id]
            self._touch(entry)
            self._duplicates_avoided += 1
            logger.debug(
                "Duplicate component registration",
                component_id=component.id,
                existing_id=existing_id,
                hash=component_hash,
            )
            return entry

        # Same id with a new structure replaces the old entry
        if component.id in self._entries:
            self._drop(component.id)

        entry = RegistryEntry(
            component=component,
            hash=component_hash,
            summary=summarize_component(component, summary_options or self._summary_options),
            estimated_tokens=self._estimator.estimate_component(component),
            complexity=assess_complexity(component),
            dependencies=tuple(extract_dependencies(component)),
        )
        self._entries[entry.id] = entry
        self._hash_index[component_hash] = entry.id

        self._evict_if_needed()
        return entry

    def get_compact(self, component_id: str) -> Optional[CompactComponent]:
        """Get the compact view of a component, counting it as an access."""
        entry = self._entries.get(component_id)
        if entry is None:
            return None
        self._touch(entry)
        return entry.to_compact()

    def get_full(self, component_id: str) -> Optional[UIComponent]:
        """Get the full component tree, counting it as an access."""
        entry = self._entries.get(component_id)
        if entry is None:
            return None
        self._touch(entry)
        return entry.component

    def get_by_hash(self, component_hash: str) -> Optional[RegistryEntry]:
        """Look up an entry by structural hash without touching it."""
        component_id = self._hash_index.get(component_hash)
        if component_id is None:
            return None
        return self._entries.get(component_id)

    def remove(self, component_id: str) -> bool:
        """Remove a component from both indexes.

        Returns:
            True if the component was removed, False if not found.
        """
        if component_id not in self._entries:
            return False
        self._drop(component_id)
        return True

    def clear(self) -> None:
        """Remove all components and reset the dedup counter."""
        self._entries.clear()
        self._hash_index.clear()
        self._duplicates_avoided = 0

    def has(self, component_id: str) -> bool:
        return component_id in self._entries

    def ids(self) -> List[str]:
        """Component ids from least to most recently used."""
        return list(self._entries)

    def compact_snapshot(self) -> Dict[str, CompactComponent]:
        """Compact views of every entry, without touching usage stats."""
        return {component_id: entry.to_compact() for component_id, entry in self._entries.items()}

    def stats(self) -> RegistryStats:
        """Get registry statistics."""
        entries = list(self._entries.values())
        total = len(entries)
        distribution = {level.value: 0 for level in ComplexityLevel}
        for entry in entries:
            distribution[entry.complexity.level.value] += 1

        return RegistryStats(
            total_components=total,
            unique_components=len(self._hash_index),
            duplicates_avoided=self._duplicates_avoided,
            avg_access_count=(
                sum(entry.access_count for entry in entries) / total if total else 0.0
            ),
            total_estimated_tokens=sum(entry.estimated_tokens for entry in entries),
            complexity_distribution=distribution,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._entries

    def _touch(self, entry: RegistryEntry) -> None:
        entry.touch()
        self._entries.move_to_end(entry.id)

    def _drop(self, component_id: str) -> RegistryEntry:
        entry = self._entries.pop(component_id)
        if self._hash_index.get(entry.hash) == component_id:
            del self._hash_index[entry.hash]
        return entry

    def _evict_if_needed(self) -> None:
        """Evict the least recently used entries once over capacity.

        Evicts a fraction of the capacity at once, and never fewer entries
        than needed to get back under the cap.
        """
        overflow = len(self._entries) - self.capacity
        if overflow <= 0:
            return

        batch = math.floor(self.capacity * self.settings.eviction_fraction)
        to_evict = min(max(overflow, batch), len(self._entries) - 1)
        evicted = [self._drop(component_id).id for component_id in list(self._entries)[:to_evict]]
        logger.debug(
            "Evicted least recently used components",
            evicted=len(evicted),
            remaining=len(self._entries),
            capacity=self.capacity,
        )


def create_component_registry(capacity: int = 1000, **settings: Any) -> ComponentRegistry:
    """Create a component registry with the given capacity."""
    return ComponentRegistry(RegistrySettings(capacity=capacity, **settings))
