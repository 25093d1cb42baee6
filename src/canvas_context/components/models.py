"""Data models for the component registry."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, Field

from canvas_context.types import UIComponent


class ComplexityLevel(str, Enum):
    """Complexity buckets for registered components."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ComplexityAssessment(BaseModel):
    """Complexity score of a component and the factors behind it."""

    level: ComplexityLevel
    score: int = Field(ge=0, le=100, description="Complexity score 0-100")
    factors: Dict[str, int] = Field(
        default_factory=dict, description="Individual factor counts"
    )


class CompactComponent(BaseModel):
    """Lightweight view of a registered component for prompt building.

    Regenerated from the registry entry on every read; never the source
    of truth.
    """

    id: str
    type: str
    hash: str
    natural_language_summary: str
    estimated_tokens: int = Field(ge=0)
    complexity_level: ComplexityLevel
    dependency_ids: List[str] = Field(default_factory=list)
    access_count: int = Field(default=0, ge=0)
    last_accessed_at: float
    created_at: float


@dataclass
class RegistryEntry:
    """A registered component with its derived data and usage statistics."""

    component: UIComponent
    hash: str
    summary: str
    estimated_tokens: int
    complexity: ComplexityAssessment
    dependencies: Tuple[str, ...] = ()
    access_count: int = 1
    created_at: float = field(default_factory=time.time)
    last_accessed_at: float = 0.0

    def __post_init__(self) -> None:
        if not self.last_accessed_at:
            self.last_accessed_at = self.created_at

    @property
    def id(self) -> str:
        return self.component.id

    @property
    def type(self) -> str:
        return self.component.type

    def touch(self) -> None:
        """Record an access."""
        self.access_count += 1
        self.last_accessed_at = time.time()

    def to_compact(self) -> CompactComponent:
        """Build the compact view of this entry."""
        return CompactComponent(
            id=self.id,
            type=self.type,
            hash=self.hash,
            natural_language_summary=self.summary,
            estimated_tokens=self.estimated_tokens,
            complexity_level=self.complexity.level,
            dependency_ids=list(self.dependencies),
            access_count=self.access_count,
            last_accessed_at=self.last_accessed_at,
            created_at=self.created_at,
        )


@dataclass
class RegistryStats:
    """Registry statistics, suitable for telemetry."""

    total_components: int = 0
    unique_components: int = 0
    duplicates_avoided: int = 0
    avg_access_count: float = 0.0
    total_estimated_tokens: int = 0
    complexity_distribution: Dict[str, int] = field(
        default_factory=lambda: {level.value: 0 for level in ComplexityLevel}
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_components": self.total_components,
            "unique_components": self.unique_components,
            "duplicates_avoided": self.duplicates_avoided,
            "avg_access_count": self.avg_access_count,
            "total_estimated_tokens": self.total_estimated_tokens,
            "complexity_distribution": dict(self.complexity_distribution),
        }


@dataclass(frozen=True)
class SummaryOptions:
    """Options for natural-language component summaries."""

    max_length: int = 200
    include_type: bool = True
    include_key_props: bool = True
    key_props_count: int = 3
