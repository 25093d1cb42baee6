"""Field-level editing of generated UI components.

EditableComponentManager wraps component trees for direct editing:
- Field extraction from ``props`` and ``state``
- Validation rules (required, min, max, pattern, range, custom)
- Per-component edit history with undo and redo
- Dirty tracking and change listeners

A field update either passes validation and is applied in full, or is
rejected with its error messages and changes nothing.
"""

from __future__ import annotations

import copy
import re
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from canvas_context.observability.logging import get_logger
from canvas_context.types import UIComponent

logger = get_logger(__name__)

EDITABLE_ROOTS = ("props", "state")

# (component_id, field_path, old_value, new_value)
ChangeListener = Callable[[str, str, Any, Any], None]

# Returns True when valid, or an error message (False uses the rule's message)
CustomValidator = Callable[[Any], Union[bool, str]]


class FieldType(str, Enum):
    """JSON value type of an editable field."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    NULL = "null"


class ValidationKind(str, Enum):
    """Kinds of field validation rules."""

    REQUIRED = "required"
    MIN = "min"
    MAX = "max"
    PATTERN = "pattern"
    CUSTOM = "custom"
    RANGE = "range"


def value_type(value: Any) -> FieldType:
    """Map a Python value to its JSON field type."""
    if value is None:
        return FieldType.NULL
    if isinstance(value, bool):
        return FieldType.BOOLEAN
    if isinstance(value, (int, float)):
        return FieldType.NUMBER
    if isinstance(value, str):
        return FieldType.STRING
    if isinstance(value, (list, tuple)):
        return FieldType.ARRAY
    return FieldType.OBJECT


def format_label(name: str) -> str:
    """Turn a camelCase or snake_case key into a display label."""
    spaced = re.sub(r"([A-Z])", r" \1", name).replace("_", " ").strip()
    return spaced[:1].upper() + spaced[1:]


@dataclass
class FieldValidation:
    """A validation rule attached to a field.

    Attributes:
        kind: Rule kind.
        value: Bound for min/max, regex for pattern, (low, high) for range.
        validator: Callable for custom rules.
        message: Error message overriding the default one.
    """

    kind: ValidationKind
    value: Any = None
    validator: Optional[CustomValidator] = None
    message: Optional[str] = None

    def __post_init__(self) -> None:
        self.kind = ValidationKind(self.kind)


@dataclass
class EditableField:
    """An editable field of a component."""

    name: str
    type: FieldType
    value: Any
    validation: Optional[FieldValidation] = None
    required: bool = False
    label: Optional[str] = None
    description: Optional[str] = None


@dataclass
class EditHistoryEntry:
    """One applied field change."""

    component_id: str
    field_path: str
    old_value: Any
    new_value: Any
    existed: bool = True  # False when the field was created by this edit
    # Outermost path created by this edit; undo removes it
    created_path: Optional[str] = None
    reason: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = field(default_factory=time.time)


@dataclass
class EditableComponent:
    """A component under edit, with its fields and history."""

    id: str
    type: str
    spec: UIComponent
    fields: Dict[str, EditableField] = field(default_factory=dict)
    version: int = 1
    last_modified: float = field(default_factory=time.time)
    history: List[EditHistoryEntry] = field(default_factory=list)
    history_position: int = -1
    is_dirty: bool = False


@dataclass
class FieldUpdateResult:
    """Outcome of a field update, undo or redo."""

    success: bool
    errors: List[str] = field(default_factory=list)
    component: Optional[EditableComponent] = None

    @property
    def error(self) -> Optional[str]:
        return ", ".join(self.errors) if self.errors else None


_MISSING = object()


def validate_value(value: Any, editable_field: EditableField) -> List[str]:
    """Validate a value against a field's type, required flag and rule.

    Returns:
        Error messages, empty when the value is valid.
    """
    errors: List[str] = []
    label = editable_field.label or editable_field.name

    if editable_field.required and (value is None or value == ""):
        errors.append(f"{label} is required")

    if value is not None and editable_field.type != FieldType.NULL:
        actual = value_type(value)
        if actual != editable_field.type:
            errors.append(f"Expected type {editable_field.type.value}, got {actual.value}")

    rule = editable_field.validation
    if rule is None:
        return errors

    is_number = isinstance(value, (int, float)) and not isinstance(value, bool)

    if rule.kind == ValidationKind.REQUIRED:
        if value is None or value == "":
            errors.append(rule.message or f"{label} is required")
    elif rule.kind == ValidationKind.MIN:
        if is_number and value < rule.value:
            errors.append(rule.message or f"Minimum value is {rule.value}")
        elif isinstance(value, str) and len(value) < rule.value:
            errors.append(rule.message or f"Minimum length is {rule.value}")
    elif rule.kind == ValidationKind.MAX:
        if is_number and value > rule.value:
            errors.append(rule.message or f"Maximum value is {rule.value}")
        elif isinstance(value, str) and len(value) > rule.value:
            errors.append(rule.message or f"Maximum length is {rule.value}")
    elif rule.kind == ValidationKind.PATTERN:
        if isinstance(value, str) and not re.search(rule.value, value):
            errors.append(rule.message or "Invalid format")
    elif rule.kind == ValidationKind.RANGE:
        low, high = rule.value
        if is_number and not low <= value <= high:
            errors.append(rule.message or f"Value must be between {low} and {high}")
    elif rule.kind == ValidationKind.CUSTOM and rule.validator is not None:
        outcome = rule.validator(value)
        if outcome is not True:
            errors.append(
                outcome if isinstance(outcome, str) else (rule.message or "Validation failed")
            )

    return errors


def _split_path(field_path: str) -> Optional[Tuple[str, List[str]]]:
    root, _, rest = field_path.partition(".")
    if root not in EDITABLE_ROOTS or not rest:
        return None
    return root, rest.split(".")


class EditableComponentManager:
    """Manages editable components with validation and history.

    Each managed component is a deep copy of the tree passed to
    make_editable, so edits never touch the caller's original.
    """

    def __init__(self) -> None:
        self._components: Dict[str, EditableComponent] = {}
        self._listeners: List[ChangeListener] = []

    def make_editable(self, component: UIComponent) -> EditableComponent:
        """Start editing a component.

        If the component is already managed, its spec is replaced and its
        history kept.
        """
        spec = copy.deepcopy(component)
        existing = self._components.get(component.id)
        if existing is not None:
            existing.spec = spec
            existing.fields = self._extract_fields(spec, existing.fields)
            existing.last_modified = time.time()
            return existing

        editable = EditableComponent(
            id=component.id,
            type=component.type,
            spec=spec,
            fields=self._extract_fields(spec),
        )
        self._components[component.id] = editable
        return editable

    def get_editable_component(self, component_id: str) -> Optional[EditableComponent]:
        return self._components.get(component_id)

    def get_all_editable_components(self) -> List[EditableComponent]:
        return list(self._components.values())

    def set_validation(
        self,
        component_id: str,
        field_path: str,
        rule: Optional[FieldValidation] = None,
        required: bool = False,
    ) -> bool:
        """Attach a validation rule to a field.

        Returns:
            False if the component is not managed or the path is not
            editable, True otherwise.
        """
        editable = self._components.get(component_id)
        if editable is None or _split_path(field_path) is None:
            return False

        editable_field = editable.fields.get(field_path)
        if editable_field is None:
            current = self._get_value(editable.spec, field_path)
            editable_field = self._new_field(field_path, None if current is _MISSING else current)
            editable.fields[field_path] = editable_field

        editable_field.validation = rule
        editable_field.required = required
        return True

    def update_field(
        self,
        component_id: str,
        field_path: str,
        new_value: Any,
        reason: Optional[str] = None,
    ) -> FieldUpdateResult:
        """Validate and apply a field change.

        Args:
            component_id: Managed component id.
            field_path: ``props.<key>`` or ``state.<key>`` path.
            new_value: New field value.
            reason: Optional reason recorded in history.

        Returns:
            FieldUpdateResult; on failure nothing was changed.
        """
        editable = self._components.get(component_id)
        if editable is None:
            return FieldUpdateResult(
                success=False,
                errors=[f"Component {component_id} not found or not editable"],
            )
        if _split_path(field_path) is None:
            return FieldUpdateResult(
                success=False,
                errors=[f"Field path must start with props. or state.: {field_path}"],
            )

        blocking = self._non_object_parent(editable.spec, field_path)
        if blocking is not None:
            return FieldUpdateResult(
                success=False,
                errors=[f"Cannot set {field_path}: {blocking} is not an object"],
                component=editable,
            )

        old_value = self._get_value(editable.spec, field_path)
        existed = old_value is not _MISSING

        editable_field = editable.fields.get(field_path)
        if editable_field is None:
            # Nested or new paths are tracked as fields from their first write
            editable_field = self._new_field(field_path, old_value if existed else None)
        errors = validate_value(new_value, editable_field)
        if errors:
            return FieldUpdateResult(success=False, errors=errors, component=editable)
        editable.fields[field_path] = editable_field

        created_path = None if existed else self._outermost_missing(editable.spec, field_path)
        self._set_value(editable, field_path, new_value)

        entry = EditHistoryEntry(
            component_id=component_id,
            field_path=field_path,
            old_value=old_value if existed else None,
            new_value=new_value,
            existed=existed,
            created_path=created_path,
            reason=reason,
        )
        # A new edit discards anything that could have been redone
        del editable.history[editable.history_position + 1:]
        editable.history.append(entry)
        editable.history_position = len(editable.history) - 1
        self._mark_changed(editable)

        self._notify(component_id, field_path, entry.old_value, new_value)
        return FieldUpdateResult(success=True, component=editable)

    def undo(self, component_id: str) -> FieldUpdateResult:
        """Revert the most recent applied edit of a component."""
        editable = self._components.get(component_id)
        if editable is None:
            return FieldUpdateResult(
                success=False,
                errors=[f"Component {component_id} not found or not editable"],
            )
        if editable.history_position < 0:
            return FieldUpdateResult(success=False, errors=["Nothing to undo"], component=editable)

        entry = editable.history[editable.history_position]
        if entry.existed:
            self._set_value(editable, entry.field_path, entry.old_value)
        else:
            self._delete_value(editable, entry.created_path or entry.field_path)
            created_field = editable.fields.get(entry.field_path)
            if created_field is not None:
                created_field.value = None
        editable.history_position -= 1
        self._mark_changed(editable)

        self._notify(component_id, entry.field_path, entry.new_value, entry.old_value)
        return FieldUpdateResult(success=True, component=editable)

    def redo(self, component_id: str) -> FieldUpdateResult:
        """Re-apply the most recently undone edit of a component."""
        editable = self._components.get(component_id)
        if editable is None:
            return FieldUpdateResult(
                success=False,
                errors=[f"Component {component_id} not found or not editable"],
            )
        if editable.history_position >= len(editable.history) - 1:
            return FieldUpdateResult(success=False, errors=["Nothing to redo"], component=editable)

        entry = editable.history[editable.history_position + 1]
        self._set_value(editable, entry.field_path, entry.new_value)
        editable.history_position += 1
        self._mark_changed(editable)

        self._notify(component_id, entry.field_path, entry.old_value, entry.new_value)
        return FieldUpdateResult(success=True, component=editable)

    def can_undo(self, component_id: str) -> bool:
        editable = self._components.get(component_id)
        return editable is not None and editable.history_position >= 0

    def can_redo(self, component_id: str) -> bool:
        editable = self._components.get(component_id)
        return editable is not None and editable.history_position < len(editable.history) - 1

    def get_edit_history(self, component_id: str) -> List[EditHistoryEntry]:
        editable = self._components.get(component_id)
        return list(editable.history) if editable else []

    def mark_saved(self, component_id: str) -> None:
        """Clear the dirty flag of a component."""
        editable = self._components.get(component_id)
        if editable is not None:
            editable.is_dirty = False

    def get_dirty_components(self) -> List[EditableComponent]:
        return [editable for editable in self._components.values() if editable.is_dirty]

    def add_change_listener(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def remove_editable_component(self, component_id: str) -> bool:
        return self._components.pop(component_id, None) is not None

    def clear(self) -> None:
        self._components.clear()

    def _extract_fields(
        self,
        spec: UIComponent,
        previous: Optional[Dict[str, EditableField]] = None,
    ) -> Dict[str, EditableField]:
        fields: Dict[str, EditableField] = {}
        for root in EDITABLE_ROOTS:
            bag = getattr(spec, root) or {}
            for key, value in bag.items():
                path = f"{root}.{key}"
                fields[path] = EditableField(
                    name=path,
                    type=value_type(value),
                    value=value,
                    label=format_label(key),
                )
                # Keep rules set before the spec was replaced
                if previous and path in previous:
                    fields[path].validation = previous[path].validation
                    fields[path].required = previous[path].required
        return fields

    @staticmethod
    def _new_field(field_path: str, value: Any) -> EditableField:
        return EditableField(
            name=field_path,
            type=value_type(value),
            value=value,
            label=format_label(field_path.rsplit(".", 1)[-1]),
        )

    def _non_object_parent(self, spec: UIComponent, field_path: str) -> Optional[str]:
        """Return the first intermediate path holding a non-object value."""
        root, keys = _split_path(field_path)
        current = getattr(spec, root) or {}
        for depth, key in enumerate(keys[:-1]):
            if key not in current:
                return None
            current = current[key]
            if not isinstance(current, dict):
                return ".".join([root, *keys[: depth + 1]])
        return None

    def _outermost_missing(self, spec: UIComponent, field_path: str) -> str:
        root, keys = _split_path(field_path)
        current = getattr(spec, root) or {}
        for depth, key in enumerate(keys):
            if key not in current:
                return ".".join([root, *keys[: depth + 1]])
            current = current[key]
        return field_path

    def _get_value(self, spec: UIComponent, field_path: str) -> Any:
        root, keys = _split_path(field_path)
        current: Any = getattr(spec, root)
        for key in keys:
            if not isinstance(current, dict) or key not in current:
                return _MISSING
            current = current[key]
        return current

    def _set_value(self, editable: EditableComponent, field_path: str, value: Any) -> None:
        root, keys = _split_path(field_path)
        if getattr(editable.spec, root) is None:
            setattr(editable.spec, root, {})
        current = getattr(editable.spec, root)
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[keys[-1]] = value

        editable_field = editable.fields.get(field_path)
        if editable_field is not None:
            editable_field.value = value
            if value is not None:
                editable_field.type = value_type(value)

    def _delete_value(self, editable: EditableComponent, field_path: str) -> None:
        root, keys = _split_path(field_path)
        current = getattr(editable.spec, root) or {}
        for key in keys[:-1]:
            current = current.get(key)
            if not isinstance(current, dict):
                return
        current.pop(keys[-1], None)

        editable_field = editable.fields.get(field_path)
        if editable_field is not None:
            editable_field.value = None

    def _mark_changed(self, editable: EditableComponent) -> None:
        editable.version += 1
        editable.last_modified = time.time()
        editable.is_dirty = True

    def _notify(self, component_id: str, field_path: str, old_value: Any, new_value: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(component_id, field_path, old_value, new_value)
            except Exception:
                logger.exception(
                    "Change listener failed",
                    component_id=component_id,
                    field_path=field_path,
                )
