"""Structural hashing of UI component trees.

A structural hash depends on a component's type, props, state and children,
not on its id, so two structurally identical trees always hash identically.
Hashes are 32-bit and only compared within one running process; collisions
between different structures are possible and only lower the dedup rate.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, Optional

from canvas_context.types import HashAlgorithm, UIComponent

_MASK_32 = 0xFFFFFFFF


def _to_int32(value: int) -> int:
    """Wrap an integer to a signed 32-bit value."""
    value &= _MASK_32
    return value - 0x100000000 if value & 0x80000000 else value


def djb2_hash(text: str) -> str:
    """DJB2 rolling multiply-add hash, rendered as hex."""
    h = 5381
    for ch in text:
        h = _to_int32((h << 5) + h + ord(ch))
    return format(abs(h), "x")


def sdbm_hash(text: str) -> str:
    """SDBM hash, rendered as hex."""
    h = 0
    for ch in text:
        h = _to_int32(ord(ch) + (h << 6) + (h << 16) - h)
    return format(abs(h), "x")


def fnv1a_hash(text: str) -> str:
    """32-bit FNV-1a hash, rendered as hex."""
    h = 0x811C9DC5
    for ch in text:
        h = _to_int32(h ^ ord(ch))
        h = _to_int32(h * 0x01000193)
    return format(abs(h), "x")


HASH_FUNCTIONS: Dict[HashAlgorithm, Callable[[str], str]] = {
    HashAlgorithm.DJB2: djb2_hash,
    HashAlgorithm.SDBM: sdbm_hash,
    HashAlgorithm.FNV1A: fnv1a_hash,
}


@dataclass(frozen=True)
class HashOptions:
    """Options for structural hash generation.

    Attributes:
        include_id: Fold the component id into the hash (identity hashing).
        include_timestamp: Fold the ``timestamp`` prop into the hash.
        algorithm: Hash algorithm; None uses the hasher's default.
    """

    include_id: bool = False
    include_timestamp: bool = False
    algorithm: Optional[HashAlgorithm] = None


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def _sorted_entries(bag: Mapping[str, Any], tag: str) -> List[str]:
    return [f"{tag}:{_canonical_json(key)}:{_canonical_json(bag[key])}" for key in sorted(bag)]


class StructuralHasher:
    """Produces deterministic content hashes of component trees."""

    def __init__(self, algorithm: HashAlgorithm = HashAlgorithm.DJB2):
        self.algorithm = HashAlgorithm(algorithm)

    def canonical_form(
        self, component: UIComponent, options: Optional[HashOptions] = None
    ) -> str:
        """Build the string that gets hashed.

        Parts, joined with ``|``: type, sorted props, sorted child hashes,
        sorted state, then the optional id and timestamp. Every part after the
        type carries a section tag (``p:``, ``c:``, ``s:``, ``id:``, ``t:``)
        and keys are JSON-encoded, so one string maps to one structure.
        """
        opts = self._resolve(options)
        parts: List[str] = [component.type]
        parts.extend(_sorted_entries(component.props, "p"))

        if component.children:
            parts.extend(sorted("c:" + self.hash(child, opts) for child in component.children))

        if component.state:
            parts.extend(_sorted_entries(component.state, "s"))

        if opts.include_id:
            parts.append(f"id:{component.id}")
        if opts.include_timestamp:
            timestamp = component.props.get("timestamp")
            if timestamp:
                parts.append(f"t:{timestamp}")

        return "|".join(parts)

    def hash(self, component: UIComponent, options: Optional[HashOptions] = None) -> str:
        """Hash a component tree.

        Args:
            component: Root of the tree to hash.
            options: Optional hash options.

        Returns:
            Hex string of the 32-bit hash.
        """
        opts = self._resolve(options)
        return HASH_FUNCTIONS[opts.algorithm](self.canonical_form(component, opts))

    def _resolve(self, options: Optional[HashOptions]) -> HashOptions:
        opts = options or HashOptions()
        if opts.algorithm is None:
            opts = replace(opts, algorithm=self.algorithm)
        return opts
