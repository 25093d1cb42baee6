"""Configuration for context window management.

Defines the token ceilings, compression settings, registry settings and
estimator constants. Every section validates itself on construction and
raises ConfigurationError; invalid values are never clamped.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from canvas_context.types import HashAlgorithm


class ConfigurationError(ValueError):
    """Raised when a context configuration is invalid."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid context configuration: " + "; ".join(self.errors))


def validate_budget(budget: TokenBudget) -> List[str]:
    """Return the problems with a token budget (empty when valid)."""
    errors: List[str] = []
    ceilings = {
        "total_ceiling": budget.total_ceiling,
        "system_prompt_ceiling": budget.system_prompt_ceiling,
        "conversation_ceiling": budget.conversation_ceiling,
        "components_ceiling": budget.components_ceiling,
        "reserved_for_response": budget.reserved_for_response,
    }
    for name, value in ceilings.items():
        if value <= 0:
            errors.append(f"{name} must be positive")

    sub_total = budget.allocated_tokens
    if sub_total > budget.total_ceiling:
        errors.append(
            f"Sum of individual token limits ({sub_total}) exceeds "
            f"total_ceiling ({budget.total_ceiling})"
        )
    return errors


def validate_compression(settings: CompressionSettings) -> List[str]:
    """Return the problems with compression settings (empty when valid)."""
    errors: List[str] = []
    if not 0 < settings.target_compression_ratio <= 1:
        errors.append("target_compression_ratio must be in (0, 1]")
    if settings.recent_message_retention_count < 0:
        errors.append("recent_message_retention_count must be non-negative")
    if settings.max_messages_before_summarize < 2:
        errors.append("max_messages_before_summarize must be at least 2")
    return errors


def validate_registry(settings: RegistrySettings) -> List[str]:
    """Return the problems with registry settings (empty when valid)."""
    errors: List[str] = []
    if settings.capacity < 1:
        errors.append("capacity must be at least 1")
    if not 0 < settings.eviction_fraction <= 1:
        errors.append("eviction_fraction must be in (0, 1]")
    try:
        HashAlgorithm(settings.hash_algorithm)
    except ValueError:
        errors.append(f"Unknown hash algorithm: {settings.hash_algorithm}")
    return errors


def validate_estimator(settings: EstimatorSettings) -> List[str]:
    """Return the problems with estimator settings (empty when valid)."""
    errors: List[str] = []
    if settings.chars_per_token <= 0:
        errors.append("chars_per_token must be positive")
    if settings.message_overhead_tokens < 0:
        errors.append("message_overhead_tokens must be non-negative")
    if settings.component_overhead_tokens < 0:
        errors.append("component_overhead_tokens must be non-negative")
    return errors


@dataclass
class TokenBudget:
    """Token ceilings for each category of context content."""

    total_ceiling: int = 128000
    system_prompt_ceiling: int = 8000
    conversation_ceiling: int = 80000
    components_ceiling: int = 30000
    reserved_for_response: int = 10000

    def __post_init__(self) -> None:
        errors = validate_budget(self)
        if errors:
            raise ConfigurationError(errors)

    @property
    def allocated_tokens(self) -> int:
        """Sum of the sub-ceilings."""
        return (
            self.system_prompt_ceiling
            + self.conversation_ceiling
            + self.components_ceiling
            + self.reserved_for_response
        )

    @property
    def effective_limit(self) -> int:
        """Tokens available for input once the response reserve is taken out."""
        return self.total_ceiling - self.reserved_for_response


@dataclass
class CompressionSettings:
    """Settings controlling when and how context is compressed."""

    target_compression_ratio: float = 0.4  # Compact once usage exceeds 40%
    recent_message_retention_count: int = 10  # Kept verbatim
    max_messages_before_summarize: int = 20
    enable_component_compression: bool = True
    enable_summarization: bool = True

    def __post_init__(self) -> None:
        errors = validate_compression(self)
        if errors:
            raise ConfigurationError(errors)


@dataclass
class RegistrySettings:
    """Settings for the component registry."""

    capacity: int = 1000
    eviction_fraction: float = 0.1
    hash_algorithm: HashAlgorithm = HashAlgorithm.DJB2

    def __post_init__(self) -> None:
        if not isinstance(self.hash_algorithm, HashAlgorithm):
            try:
                self.hash_algorithm = HashAlgorithm(self.hash_algorithm)
            except ValueError:
                raise ConfigurationError(
                    [f"Unknown hash algorithm: {self.hash_algorithm}"]
                ) from None

        errors = validate_registry(self)
        if errors:
            raise ConfigurationError(errors)


@dataclass
class EstimatorSettings:
    """Heuristic constants used by the token estimator.

    These are approximations, not derived from a real tokenizer.
    """

    chars_per_token: float = 4.0
    message_overhead_tokens: int = 10
    component_overhead_tokens: int = 20

    def __post_init__(self) -> None:
        errors = validate_estimator(self)
        if errors:
            raise ConfigurationError(errors)


@dataclass
class ContextConfig:
    """Complete context management configuration."""

    budget: TokenBudget = field(default_factory=TokenBudget)
    compression: CompressionSettings = field(default_factory=CompressionSettings)
    registry: RegistrySettings = field(default_factory=RegistrySettings)
    estimator: EstimatorSettings = field(default_factory=EstimatorSettings)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]] = None) -> ContextConfig:
        """Build a configuration from partial section overrides.

        Args:
            data: Mapping of section name to a mapping of field overrides,
                e.g. ``{"budget": {"total_ceiling": 200000}}``.

        Returns:
            ContextConfig with defaults filled in for omitted fields.

        Raises:
            ConfigurationError: If a section is unknown or a value invalid.
        """
        data = data or {}
        sections = {
            "budget": TokenBudget,
            "compression": CompressionSettings,
            "registry": RegistrySettings,
            "estimator": EstimatorSettings,
        }
        unknown = sorted(set(data) - set(sections))
        if unknown:
            raise ConfigurationError([f"Unknown configuration section: {name}" for name in unknown])

        kwargs: Dict[str, Any] = {}
        for name, section_cls in sections.items():
            overrides = dict(data.get(name) or {})
            try:
                kwargs[name] = section_cls(**overrides)
            except TypeError as e:
                raise ConfigurationError([f"Invalid {name} setting: {e}"]) from e
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Export the configuration as plain data."""
        result = asdict(self)
        result["registry"]["hash_algorithm"] = self.registry.hash_algorithm.value
        return result


def get_context_config(**overrides: Mapping[str, Any]) -> ContextConfig:
    """Get configuration with optional per-section overrides.

    Example:
        config = get_context_config(compression={"recent_message_retention_count": 6})
    """
    return ContextConfig.from_dict(overrides)


def validate_config(config: ContextConfig) -> List[str]:
    """Re-validate an assembled configuration.

    Useful after a caller mutated a section in place.
    """
    return (
        validate_budget(config.budget)
        + validate_compression(config.compression)
        + validate_registry(config.registry)
        + validate_estimator(config.estimator)
    )
