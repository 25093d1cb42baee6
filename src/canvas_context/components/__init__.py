"""UI component registry and editing.

This package provides:
- Structural hashing of component trees
- A deduplicating, LRU-bounded component registry with compact summaries
- Field-level editing with validation and undo/redo

Example:
    from canvas_context.components import ComponentRegistry

    registry = ComponentRegistry()
    entry = registry.register(component)
    compact = registry.get_compact(entry.id)
"""

from .hashing import (
    HASH_FUNCTIONS,
    HashOptions,
    StructuralHasher,
    djb2_hash,
    fnv1a_hash,
    sdbm_hash,
)
from .models import (
    CompactComponent,
    ComplexityAssessment,
    ComplexityLevel,
    RegistryEntry,
    RegistryStats,
    SummaryOptions,
)
from .registry import (
    ComponentRegistry,
    assess_complexity,
    create_component_registry,
    extract_dependencies,
    summarize_component,
)
from .editing import (
    EditableComponent,
    EditableComponentManager,
    EditableField,
    EditHistoryEntry,
    FieldType,
    FieldUpdateResult,
    FieldValidation,
    ValidationKind,
)

__all__ = [
    # Hashing
    "HASH_FUNCTIONS",
    "HashOptions",
    "StructuralHasher",
    "djb2_hash",
    "fnv1a_hash",
    "sdbm_hash",
    # Models
    "CompactComponent",
    "ComplexityAssessment",
    "ComplexityLevel",
    "RegistryEntry",
    "RegistryStats",
    "SummaryOptions",
    # Registry
    "ComponentRegistry",
    "assess_complexity",
    "create_component_registry",
    "extract_dependencies",
    "summarize_component",
    # Editing
    "EditableComponent",
    "EditableComponentManager",
    "EditableField",
    "EditHistoryEntry",
    "FieldType",
    "FieldUpdateResult",
    "FieldValidation",
    "ValidationKind",
]
