"""Tests for context configuration and validation."""

from __future__ import annotations

import pytest

from canvas_context.context.config import (
    CompressionSettings,
    ConfigurationError,
    ContextConfig,
    EstimatorSettings,
    RegistrySettings,
    TokenBudget,
    get_context_config,
    validate_config,
)
from canvas_context.types import HashAlgorithm


# ============================================================================
# TokenBudget Tests
# ============================================================================


class TestTokenBudget:
    """Tests for TokenBudget."""

    def test_defaults(self):
        """Test default ceilings."""
        budget = TokenBudget()
        assert budget.total_ceiling == 128000
        assert budget.system_prompt_ceiling == 8000
        assert budget.conversation_ceiling == 80000
        assert budget.components_ceiling == 30000
        assert budget.reserved_for_response == 10000

    def test_effective_limit_excludes_reserve(self):
        """Test the effective limit subtracts the response reserve."""
        assert TokenBudget().effective_limit == 118000

    def test_allocated_tokens(self):
        """Test sub-ceilings are summed."""
        assert TokenBudget().allocated_tokens == 128000

    def test_sub_ceilings_over_total_rejected(self):
        """Test that sub-ceilings summing past the total fail at construction."""
        with pytest.raises(ConfigurationError) as exc_info:
            TokenBudget(
                total_ceiling=120000,
                system_prompt_ceiling=8000,
                conversation_ceiling=80000,
                components_ceiling=30000,
                reserved_for_response=10000,
            )
        assert "exceeds" in str(exc_info.value)
        assert len(exc_info.value.errors) == 1

    @pytest.mark.parametrize(
        "field_name",
        ["system_prompt_ceiling", "conversation_ceiling", "components_ceiling", "reserved_for_response"],
    )
    def test_non_positive_ceiling_rejected(self, field_name):
        """Test that zero ceilings are rejected."""
        with pytest.raises(ConfigurationError):
            TokenBudget(**{field_name: 0})

    def test_configuration_error_is_value_error(self):
        """Test ConfigurationError can be caught as ValueError."""
        with pytest.raises(ValueError):
            TokenBudget(total_ceiling=-1)


# ============================================================================
# CompressionSettings Tests
# ============================================================================


class TestCompressionSettings:
    """Tests for CompressionSettings."""

    def test_defaults(self):
        """Test default compression settings."""
        settings = CompressionSettings()
        assert settings.target_compression_ratio == 0.4
        assert settings.recent_message_retention_count == 10
        assert settings.max_messages_before_summarize == 20
        assert settings.enable_component_compression is True
        assert settings.enable_summarization is True

    @pytest.mark.parametrize("ratio", [0, -0.1, 1.5])
    def test_invalid_ratio_rejected(self, ratio):
        """Test ratio must be in (0, 1]."""
        with pytest.raises(ConfigurationError):
            CompressionSettings(target_compression_ratio=ratio)

    def test_ratio_of_one_allowed(self):
        """Test the upper bound is inclusive."""
        assert CompressionSettings(target_compression_ratio=1.0).target_compression_ratio == 1.0

    def test_negative_retention_rejected(self):
        """Test negative retention counts are rejected."""
        with pytest.raises(ConfigurationError):
            CompressionSettings(recent_message_retention_count=-1)

    def test_zero_retention_allowed(self):
        """Test zero retention is valid."""
        assert CompressionSettings(recent_message_retention_count=0).recent_message_retention_count == 0

    def test_summarize_threshold_below_two_rejected(self):
        """Test the summarization threshold must be at least 2."""
        with pytest.raises(ConfigurationError):
            CompressionSettings(max_messages_before_summarize=1)


# ============================================================================
# RegistrySettings / EstimatorSettings Tests
# ============================================================================


class TestRegistrySettings:
    """Tests for RegistrySettings."""

    def test_hash_algorithm_coerced_from_string(self):
        """Test string algorithm names are accepted."""
        settings = RegistrySettings(hash_algorithm="fnv1a")
        assert settings.hash_algorithm is HashAlgorithm.FNV1A

    def test_unknown_hash_algorithm_rejected(self):
        """Test unknown algorithms raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            RegistrySettings(hash_algorithm="md5")

    def test_capacity_must_be_positive(self):
        """Test capacity below one is rejected."""
        with pytest.raises(ConfigurationError):
            RegistrySettings(capacity=0)

    def test_eviction_fraction_bounds(self):
        """Test eviction fraction must be in (0, 1]."""
        with pytest.raises(ConfigurationError):
            RegistrySettings(eviction_fraction=0)
        with pytest.raises(ConfigurationError):
            RegistrySettings(eviction_fraction=1.5)


class TestEstimatorSettings:
    """Tests for EstimatorSettings."""

    def test_chars_per_token_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            EstimatorSettings(chars_per_token=0)

    def test_negative_overhead_rejected(self):
        with pytest.raises(ConfigurationError):
            EstimatorSettings(message_overhead_tokens=-1)


# ============================================================================
# ContextConfig Tests
# ============================================================================


class TestContextConfig:
    """Tests for ContextConfig assembly."""

    def test_from_dict_applies_overrides(self):
        """Test partial overrides keep defaults elsewhere."""
        config = ContextConfig.from_dict(
            {"compression": {"recent_message_retention_count": 6}, "registry": {"capacity": 50}}
        )
        assert config.compression.recent_message_retention_count == 6
        assert config.compression.max_messages_before_summarize == 20
        assert config.registry.capacity == 50
        assert config.budget == TokenBudget()

    def test_from_dict_unknown_section(self):
        """Test unknown sections are rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            ContextConfig.from_dict({"cache": {}})
        assert "cache" in str(exc_info.value)

    def test_from_dict_unknown_field(self):
        """Test unknown fields surface as ConfigurationError."""
        with pytest.raises(ConfigurationError):
            ContextConfig.from_dict({"budget": {"max_tokens": 10}})

    def test_from_dict_invalid_value(self):
        """Test invalid values in a section are rejected."""
        with pytest.raises(ConfigurationError):
            ContextConfig.from_dict({"budget": {"total_ceiling": 1000}})

    def test_to_dict_is_plain_data(self):
        """Test export uses plain values."""
        data = ContextConfig().to_dict()
        assert data["registry"]["hash_algorithm"] == "djb2"
        assert data["budget"]["total_ceiling"] == 128000
        assert ContextConfig.from_dict(data) == ContextConfig()

    def test_get_context_config(self):
        """Test keyword overrides."""
        config = get_context_config(estimator={"chars_per_token": 3.5})
        assert config.estimator.chars_per_token == 3.5

    def test_validate_config_after_mutation(self):
        """Test re-validation catches in-place changes."""
        config = ContextConfig()
        assert validate_config(config) == []

        config.budget.total_ceiling = 1000
        errors = validate_config(config)
        assert any("exceeds" in error for error in errors)

    @pytest.mark.parametrize(
        "section,name,value,message",
        [
            ("registry", "capacity", 0, "capacity must be at least 1"),
            ("registry", "eviction_fraction", 1.5, "eviction_fraction must be in (0, 1]"),
            ("registry", "hash_algorithm", "md5", "Unknown hash algorithm: md5"),
            ("estimator", "chars_per_token", 0, "chars_per_token must be positive"),
            ("estimator", "message_overhead_tokens", -1, "message_overhead_tokens must be non-negative"),
        ],
    )
    def test_validate_config_checks_every_section(self, section, name, value, message):
        config = ContextConfig()
        setattr(getattr(config, section), name, value)

        assert validate_config(config) == [message]
